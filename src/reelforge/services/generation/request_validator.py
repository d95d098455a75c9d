"""Request validation for video generation.

Validates generation requests before anything is sent to the generation
service, so a malformed request never costs a remote submission.
"""

from collections.abc import Iterable
from dataclasses import replace
from pathlib import Path

from reelforge.models.request import GenerationRequest, RequestKind
from reelforge.services.exceptions import SubmissionError

MAX_PROMPT_LENGTH = 4000
VALID_DURATIONS = (4, 6, 8)
VALID_ASPECT_RATIOS = ("16:9", "9:16")
VALID_RESOLUTIONS = ("720p", "1080p")
SUPPORTED_IMAGE_FORMATS = (".png", ".jpg", ".jpeg", ".webp")
MAX_REFERENCE_IMAGES = 3


def validate_prompt(prompt: str) -> str:
    """Validate prompt text for video generation.

    Args:
        prompt: Text prompt from caller

    Returns:
        Validated prompt (unchanged if valid)

    Raises:
        SubmissionError: If prompt is empty, not a string, or too long
    """
    if not prompt or not isinstance(prompt, str) or not prompt.strip():
        raise SubmissionError("Prompt cannot be empty")

    if len(prompt) > MAX_PROMPT_LENGTH:
        raise SubmissionError(
            f"Prompt exceeds maximum length of {MAX_PROMPT_LENGTH} characters (got {len(prompt)})"
        )

    return prompt


def validate_model(model: str, valid_models: Iterable[str]) -> str:
    """Reject model identifiers the service is not configured for."""
    allowed = sorted(valid_models)
    if model not in allowed:
        raise SubmissionError(f"Invalid model: {model}. Valid models: {', '.join(allowed)}")
    return model


def validate_image_path(image_path: str | Path) -> Path:
    """Resolve and check a reference image.

    Returns:
        Absolute path to the image

    Raises:
        SubmissionError: If the file is missing or has an unsupported extension
    """
    absolute_path = Path(image_path).expanduser().resolve()
    if not absolute_path.is_file():
        raise SubmissionError(f"Image file not found: {absolute_path}")
    if absolute_path.suffix.lower() not in SUPPORTED_IMAGE_FORMATS:
        raise SubmissionError(
            f"Unsupported image format: {absolute_path.suffix}. "
            f"Supported: {', '.join(SUPPORTED_IMAGE_FORMATS)}"
        )
    return absolute_path


def validate_request(request: GenerationRequest, valid_models: Iterable[str]) -> GenerationRequest:
    """Validate a full generation request.

    Args:
        request: Caller-supplied request
        valid_models: Model identifiers accepted by the service

    Returns:
        Request with every media path resolved to an absolute path

    Raises:
        SubmissionError: On the first invalid field
    """
    validate_prompt(request.prompt)
    validate_model(request.model, valid_models)

    if request.kind is RequestKind.EXTENSION:
        source = Path(request.source_video_path).expanduser().resolve()  # type: ignore[arg-type]
        if not source.is_file():
            raise SubmissionError(f"Source video not found: {source}")
        return replace(request, source_video_path=source)

    if request.duration_seconds not in VALID_DURATIONS:
        raise SubmissionError(
            f"Invalid duration: {request.duration_seconds}. "
            f"Valid durations: {', '.join(str(d) for d in VALID_DURATIONS)} seconds"
        )
    if request.aspect_ratio not in VALID_ASPECT_RATIOS:
        raise SubmissionError(
            f"Invalid aspect ratio: {request.aspect_ratio}. "
            f"Valid: {', '.join(VALID_ASPECT_RATIOS)}"
        )
    if request.resolution not in VALID_RESOLUTIONS:
        raise SubmissionError(
            f"Invalid resolution: {request.resolution}. Valid: {', '.join(VALID_RESOLUTIONS)}"
        )
    if len(request.reference_image_paths) > MAX_REFERENCE_IMAGES:
        raise SubmissionError(
            f"At most {MAX_REFERENCE_IMAGES} reference images are supported "
            f"(got {len(request.reference_image_paths)})"
        )
    if request.last_frame_path is not None and request.image_path is None:
        raise SubmissionError("A last frame requires a first frame image")

    return replace(
        request,
        image_path=validate_image_path(request.image_path) if request.image_path else None,
        last_frame_path=(
            validate_image_path(request.last_frame_path) if request.last_frame_path else None
        ),
        reference_image_paths=tuple(validate_image_path(p) for p in request.reference_image_paths),
    )
