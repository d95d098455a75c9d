"""GenerationRequest entity - caller-supplied parameters for one generation."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class RequestKind(str, Enum):
    """What the request animates, derived from the reference media supplied."""

    TEXT = "text"
    IMAGE = "image"
    TRANSITION = "transition"
    EXTENSION = "extension"


@dataclass(frozen=True)
class GenerationRequest:
    """Immutable parameters for a single video generation.

    duration_seconds is None for extensions: the service decides the length of
    the continuation and the ledger derives the bookkeeping duration from the
    parent artifact.
    """

    prompt: str
    model: str
    duration_seconds: Optional[int] = 8
    aspect_ratio: str = "16:9"
    resolution: str = "720p"
    negative_prompt: Optional[str] = None
    seed: Optional[int] = None
    enhance_prompt: Optional[bool] = None
    image_path: Optional[Path] = None
    last_frame_path: Optional[Path] = None
    reference_image_paths: tuple[Path, ...] = ()
    source_video_path: Optional[Path] = None

    @property
    def kind(self) -> RequestKind:
        if self.source_video_path is not None:
            return RequestKind.EXTENSION
        if self.last_frame_path is not None:
            return RequestKind.TRANSITION
        if self.image_path is not None:
            return RequestKind.IMAGE
        return RequestKind.TEXT
