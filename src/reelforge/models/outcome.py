"""Typed outcomes of polling and of the exposed lifecycle operations.

Each outcome is a small frozen dataclass tagged with an OutcomeStatus, so a
result is always exactly one of these shapes and never a mix of flags.
Filtered and NotFound are expected, user-facing results; they are returned,
not raised.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Union

from reelforge.models.artifact import Artifact


class OutcomeStatus(str, Enum):
    """Outcome tag."""

    SUBMITTED = "submitted"
    PENDING = "pending"
    COMPLETED = "completed"
    FILTERED = "filtered"
    FAILED = "failed"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class RemoteStatus:
    """Status snapshot returned by the generation service for one operation."""

    done: bool
    error: str | None = None
    reference: str | None = None
    filtered_reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class Pending:
    elapsed_seconds: float
    attempt: int
    max_attempts: int
    status: OutcomeStatus = field(default=OutcomeStatus.PENDING, init=False)


@dataclass(frozen=True)
class Completed:
    reference: str
    status: OutcomeStatus = field(default=OutcomeStatus.COMPLETED, init=False)


@dataclass(frozen=True)
class Filtered:
    """Operation finished without producing a video (content policy)."""

    reasons: tuple[str, ...] = ()
    status: OutcomeStatus = field(default=OutcomeStatus.FILTERED, init=False)


@dataclass(frozen=True)
class Failed:
    detail: str
    status: OutcomeStatus = field(default=OutcomeStatus.FAILED, init=False)


@dataclass(frozen=True)
class Submitted:
    """Background submission accepted; poll with the operation id."""

    operation_id: str
    model: str
    status: OutcomeStatus = field(default=OutcomeStatus.SUBMITTED, init=False)


@dataclass(frozen=True)
class Materialized:
    """Operation completed and its video is saved and recorded in the ledger."""

    artifact: Artifact
    elapsed_seconds: float = 0.0
    status: OutcomeStatus = field(default=OutcomeStatus.COMPLETED, init=False)


@dataclass(frozen=True)
class NotFound:
    kind: str  # "operation" or "artifact"
    key: str
    status: OutcomeStatus = field(default=OutcomeStatus.NOT_FOUND, init=False)


PollOutcome = Union[Pending, Completed, Filtered, Failed]
GenerationOutcome = Union[Submitted, Materialized, Filtered]
StatusOutcome = Union[Pending, Materialized, Filtered, NotFound]
