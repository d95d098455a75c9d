"""OperationTracker repository for reelforge.

Holds in-flight operations between submission and terminal resolution.
"""

import structlog

from reelforge.models.operation import Operation
from reelforge.services.exceptions import DuplicateOperationError

logger = structlog.get_logger(__name__)


class OperationTracker:
    """In-memory registry of pending operations keyed by operation id.

    Every method is synchronous, so a mutation always completes between two
    suspension points of the event loop.
    """

    def __init__(self) -> None:
        self._pending: dict[str, Operation] = {}

    def register(self, operation: Operation) -> Operation:
        """Start tracking an operation.

        Args:
            operation: Freshly submitted operation

        Returns:
            The registered operation

        Raises:
            DuplicateOperationError: If the operation id is already tracked
        """
        if operation.operation_id in self._pending:
            raise DuplicateOperationError(
                f"Operation {operation.operation_id} is already being tracked"
            )
        self._pending[operation.operation_id] = operation
        logger.debug("operation.registered", operation_id=operation.operation_id)
        return operation

    def lookup(self, operation_id: str) -> Operation | None:
        """Retrieve a pending operation.

        Args:
            operation_id: Remote operation identity

        Returns:
            Operation if still pending, None otherwise (unknown or already resolved)
        """
        return self._pending.get(operation_id)

    def remove(self, operation_id: str) -> None:
        """Stop tracking an operation. No-op if it is not tracked."""
        if self._pending.pop(operation_id, None) is not None:
            logger.debug("operation.untracked", operation_id=operation_id)

    def pending(self) -> list[Operation]:
        """Return pending operations, oldest submission first."""
        return list(self._pending.values())

    def __contains__(self, operation_id: object) -> bool:
        return operation_id in self._pending

    def __len__(self) -> int:
        return len(self._pending)
