"""Repository layer for reelforge.

Process-lifetime, in-memory stores for the two owned collections: in-flight
operations and completed artifacts. No base classes - each repository is
self-contained.
"""

from reelforge.repositories.history import HistoryLedger
from reelforge.repositories.operation_tracker import OperationTracker

__all__ = [
    "HistoryLedger",
    "OperationTracker",
]
