"""Operation entity - one in-flight remote generation job."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Optional

from reelforge.models.artifact import ExtensionDraft
from reelforge.models.request import GenerationRequest


@dataclass
class Operation:
    """In-flight remote operation, owned by the OperationTracker until terminal.

    Only polling bookkeeping changes over its lifetime. Remote status is
    re-fetched on every poll and never stored here.
    """

    operation_id: str
    request: GenerationRequest
    model: str
    started_at: float  # Monotonic clock reading at submission
    submitted_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    extension: Optional[ExtensionDraft] = None

    # Polling bookkeeping (advanced by Poller)
    attempts: int = 0
    last_polled_at: Optional[float] = None

    # Serializes status queries for this operation
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    @property
    def last_contact(self) -> float:
        """Monotonic time of the last remote call (submission counts as one)."""
        return self.last_polled_at if self.last_polled_at is not None else self.started_at
