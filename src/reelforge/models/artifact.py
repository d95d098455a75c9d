"""Artifact entity - a materialized video with extension chain bookkeeping."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional

from reelforge.models.request import GenerationRequest, RequestKind


@dataclass
class Artifact:
    """A downloaded video owned by the history ledger.

    extension_count is only ever incremented, and only on the root of a chain
    (see ExtensionChainManager). Extensions record the root's count at the time
    they were created.
    """

    id: str
    path: Path
    prompt: str
    model: str
    duration_seconds: int
    resolution: str
    aspect_ratio: str
    operation_id: str
    kind: RequestKind = RequestKind.TEXT
    extension_count: int = 0
    parent_id: Optional[str] = None
    root_id: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass(frozen=True)
class ExtensionDraft:
    """Pending continuation of a parent artifact, produced before submission."""

    parent: Artifact
    root: Artifact
    request: GenerationRequest
    duration_seconds: int
