"""Video generation API endpoints.

This module implements REST endpoints over the lifecycle manager:
- POST /api/videos - Generate a video (text, image-to-video or transition), blocking or background
- GET /api/videos/operations/{operation_id} - Advance and report a background operation
- POST /api/videos/extend - Continue a previously generated video
- GET /api/videos - List videos generated in this session, newest first
- POST /api/videos/cleanup - Delete one or all generated videos

Unknown operations and videos answer 404; content-policy filtering answers
200 with status "filtered". Lifecycle errors are rendered by the handlers in
reelforge.api.errors.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from reelforge.api.dependencies import get_manager, get_settings
from reelforge.core.config import Settings
from reelforge.models.artifact import Artifact
from reelforge.models.outcome import (
    Filtered,
    Materialized,
    NotFound,
    OutcomeStatus,
    Pending,
    Submitted,
)
from reelforge.models.request import GenerationRequest
from reelforge.services.lifecycle.manager import CleanupResult, LifecycleManager

router = APIRouter(prefix="/api/videos", tags=["videos"])


# Request/Response Models


class GenerateVideoRequest(BaseModel):
    """Request model for video generation."""

    prompt: str = Field(..., description="Detailed video description", min_length=1)
    model: Optional[str] = Field(
        default=None, description="Model identifier (defaults to DEFAULT_MODEL)"
    )
    aspect_ratio: str = Field(default="16:9", description="16:9 (landscape) or 9:16 (portrait)")
    duration: int = Field(default=8, description="Video duration in seconds: 4, 6, or 8")
    resolution: str = Field(default="720p", description="720p or 1080p")
    negative_prompt: Optional[str] = Field(
        default=None, description="Elements to exclude from the video"
    )
    seed: Optional[int] = Field(default=None, description="RNG seed for reproducible results")
    enhance_prompt: Optional[bool] = Field(
        default=None, description="Let the model rewrite the prompt"
    )
    image_path: Optional[str] = Field(
        default=None, description="Source image to animate (first frame for transitions)"
    )
    last_frame_path: Optional[str] = Field(
        default=None, description="Ending image for a transition (requires image_path)"
    )
    reference_image_paths: list[str] = Field(
        default_factory=list, description="Up to 3 reference images for subject consistency"
    )
    background: bool = Field(
        default=False, description="Return immediately with an operation id instead of waiting"
    )


class ExtendVideoRequest(BaseModel):
    """Request model for extending a previously generated video."""

    prompt: str = Field(..., description="Continuation description", min_length=1)
    video_path: Optional[str] = Field(
        default=None,
        description="Path of a video generated in this session (defaults to the latest one)",
    )
    background: bool = Field(default=False, description="Return immediately")


class CleanupRequest(BaseModel):
    """Request model for deleting generated videos."""

    video_id: Optional[str] = Field(default=None, description="Specific video id to delete")
    all: bool = Field(default=False, description="Delete all session videos")


class VideoDTO(BaseModel):
    """Data Transfer Object for a generated video."""

    id: str
    path: str
    prompt: str
    model: str
    kind: str
    duration_seconds: int
    resolution: str
    aspect_ratio: str
    operation_id: str
    extension_count: int
    max_extensions: int
    parent_id: Optional[str] = None
    root_id: Optional[str] = None
    timestamp: datetime
    file_exists: Optional[bool] = None


class OperationResponse(BaseModel):
    """Response model for generation, extension and status queries."""

    status: str = Field(
        ..., description="submitted, pending, completed or filtered"
    )
    message: str
    operation_id: Optional[str] = None
    video: Optional[VideoDTO] = None
    elapsed_seconds: Optional[float] = None
    attempt: Optional[int] = None
    max_attempts: Optional[int] = None
    reasons: list[str] = Field(default_factory=list)


class HistoryResponse(BaseModel):
    """Response model for the session history."""

    videos: list[VideoDTO]
    total: int


class CleanupResponse(BaseModel):
    """Response model for cleanup operations."""

    deleted: list[str]
    bytes_recovered: int
    mb_recovered: float
    errors: list[str]


# Helpers


def to_dto(
    artifact: Artifact, max_extensions: int, file_exists: Optional[bool] = None
) -> VideoDTO:
    return VideoDTO(
        id=artifact.id,
        path=str(artifact.path),
        prompt=artifact.prompt,
        model=artifact.model,
        kind=artifact.kind.value,
        duration_seconds=artifact.duration_seconds,
        resolution=artifact.resolution,
        aspect_ratio=artifact.aspect_ratio,
        operation_id=artifact.operation_id,
        extension_count=artifact.extension_count,
        max_extensions=max_extensions,
        parent_id=artifact.parent_id,
        root_id=artifact.root_id,
        timestamp=artifact.timestamp,
        file_exists=file_exists,
    )


def render_outcome(outcome, manager: LifecycleManager) -> OperationResponse | JSONResponse:
    """Render a lifecycle outcome as an API response."""
    max_extensions = manager.settings.max_extensions

    if isinstance(outcome, NotFound):
        if outcome.kind == "operation":
            message = (
                f"Unknown operation ID: {outcome.key}. It may have been started in a "
                "different session, or it ended without producing a video."
            )
        else:
            message = (
                f"Video not found: {outcome.key}. Only videos generated in this session "
                "can be referenced."
            )
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"error": {"type": "NotFound", "kind": outcome.kind, "message": message}},
        )

    if isinstance(outcome, Submitted):
        return OperationResponse(
            status=outcome.status.value,
            message="Video generation started in background. Poll the operation for progress.",
            operation_id=outcome.operation_id,
        )

    if isinstance(outcome, Pending):
        return OperationResponse(
            status=outcome.status.value,
            message="Operation in progress",
            elapsed_seconds=round(outcome.elapsed_seconds, 1),
            attempt=outcome.attempt,
            max_attempts=outcome.max_attempts,
        )

    if isinstance(outcome, Filtered):
        return OperationResponse(
            status=outcome.status.value,
            message="Video was filtered by content policy. Try rephrasing your prompt.",
            reasons=list(outcome.reasons) or ["Unknown"],
        )

    if isinstance(outcome, Materialized):
        artifact = outcome.artifact
        return OperationResponse(
            status=OutcomeStatus.COMPLETED.value,
            message=f"Video saved to {artifact.path}",
            operation_id=artifact.operation_id,
            video=to_dto(artifact, max_extensions),
            elapsed_seconds=round(outcome.elapsed_seconds, 1),
        )

    raise TypeError(f"Unexpected outcome: {outcome!r}")


# API Endpoints


@router.post("", response_model=OperationResponse)
async def generate_video(
    body: GenerateVideoRequest,
    manager: LifecycleManager = Depends(get_manager),
    settings: Settings = Depends(get_settings),
):
    """Generate a video from a prompt, optionally animating reference images.

    Blocking requests return the saved video; background requests return an
    operation id to poll via GET /api/videos/operations/{operation_id}.
    """
    request = GenerationRequest(
        prompt=body.prompt,
        model=body.model or settings.default_model,
        duration_seconds=body.duration,
        aspect_ratio=body.aspect_ratio,
        resolution=body.resolution,
        negative_prompt=body.negative_prompt,
        seed=body.seed,
        enhance_prompt=body.enhance_prompt,
        image_path=Path(body.image_path) if body.image_path else None,
        last_frame_path=Path(body.last_frame_path) if body.last_frame_path else None,
        reference_image_paths=tuple(Path(p) for p in body.reference_image_paths),
    )
    outcome = await manager.generate(request, background=body.background)
    return render_outcome(outcome, manager)


@router.get("/operations/{operation_id:path}", response_model=OperationResponse)
async def check_operation_status(
    operation_id: str,
    manager: LifecycleManager = Depends(get_manager),
):
    """Poll a background operation once; saves the video when it has finished."""
    outcome = await manager.check_status(operation_id)
    return render_outcome(outcome, manager)


@router.post("/extend", response_model=OperationResponse)
async def extend_video(
    body: ExtendVideoRequest,
    manager: LifecycleManager = Depends(get_manager),
):
    """Extend a video generated in this session by a fixed increment."""
    outcome = await manager.extend(
        body.prompt, video_path=body.video_path, background=body.background
    )
    return render_outcome(outcome, manager)


@router.get("", response_model=HistoryResponse)
async def list_videos(manager: LifecycleManager = Depends(get_manager)) -> HistoryResponse:
    """List all videos generated in this session, newest first."""
    entries = await manager.list_history()
    max_extensions = manager.settings.max_extensions
    return HistoryResponse(
        videos=[to_dto(e.artifact, max_extensions, e.file_exists) for e in entries],
        total=len(entries),
    )


@router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_videos(
    body: CleanupRequest,
    manager: LifecycleManager = Depends(get_manager),
):
    """Delete generated videos to free disk space."""
    result = await manager.cleanup(video_id=body.video_id, all_videos=body.all)
    if isinstance(result, NotFound):
        return render_outcome(result, manager)
    return _cleanup_response(result)


def _cleanup_response(result: CleanupResult) -> CleanupResponse:
    return CleanupResponse(
        deleted=result.deleted,
        bytes_recovered=result.bytes_recovered,
        mb_recovered=result.mb_recovered,
        errors=result.errors,
    )
