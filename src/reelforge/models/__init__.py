"""In-memory domain entities.

Nothing here is persisted: operations live in the OperationTracker and
artifacts in the HistoryLedger for the lifetime of the process.
"""

from reelforge.models.artifact import Artifact, ExtensionDraft
from reelforge.models.operation import Operation
from reelforge.models.outcome import (
    Completed,
    Failed,
    Filtered,
    GenerationOutcome,
    Materialized,
    NotFound,
    OutcomeStatus,
    Pending,
    PollOutcome,
    RemoteStatus,
    StatusOutcome,
    Submitted,
)
from reelforge.models.request import GenerationRequest, RequestKind

__all__ = [
    "Artifact",
    "ExtensionDraft",
    "GenerationRequest",
    "RequestKind",
    "Operation",
    "OutcomeStatus",
    "RemoteStatus",
    "Pending",
    "Completed",
    "Filtered",
    "Failed",
    "Submitted",
    "Materialized",
    "NotFound",
    "PollOutcome",
    "GenerationOutcome",
    "StatusOutcome",
]
