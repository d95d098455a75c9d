"""Poller: drives one remote operation from submitted to a terminal state.

`advance` performs exactly one status query. Blocking callers loop over it
with `wait`; background callers invoke it once per external status request.
The poller owns no timers or tasks - time only advances when a caller asks -
so an operation can be resumed after an arbitrarily long gap.

Two upstream constraints are enforced here:
- Spacing: consecutive queries for the same operation are at least
  `poll_interval` seconds apart (the submission counts as the first contact).
- Budget: after `max_attempts` queries that all report "still running" the
  operation times out with PollTimeoutError instead of waiting forever.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Optional

import structlog

from reelforge.models.operation import Operation
from reelforge.models.outcome import Completed, Failed, Filtered, Pending, PollOutcome
from reelforge.services.exceptions import PollTimeoutError
from reelforge.services.generation.replicate_client import (
    ContentPolicyError,
    GenerationService,
    TransientError,
)

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]
ProgressCallback = Callable[[Pending], None]


class Poller:
    """Bounded, rate-respecting status poller."""

    def __init__(
        self,
        service: GenerationService,
        poll_interval: float = 10.0,
        max_attempts: int = 60,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        """Initialize poller.

        Args:
            service: Remote generation service to query
            poll_interval: Minimum seconds between two queries of one operation
            max_attempts: Status queries allowed before timing out
            clock: Monotonic time source
            sleep: Cooperative sleep (yields to the event loop)
        """
        self.service = service
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.clock = clock
        self.sleep = sleep

    def elapsed(self, operation: Operation) -> float:
        return max(0.0, self.clock() - operation.started_at)

    async def advance(self, operation: Operation) -> PollOutcome:
        """Query remote status once and classify the result.

        Callers must not run two `advance` calls for the same operation
        concurrently (the lifecycle manager serializes them with the
        operation's lock).

        Returns:
            Pending while the operation runs, otherwise Completed, Filtered or Failed

        Raises:
            PollTimeoutError: When the attempt budget is exhausted
            PermanentError: Permanent failure of the status query itself
        """
        wait_seconds = operation.last_contact + self.poll_interval - self.clock()
        if wait_seconds > 0:
            await self.sleep(wait_seconds)

        operation.attempts += 1
        attempt = operation.attempts
        try:
            status = await self.service.query_status(operation.operation_id)
        except TransientError as e:
            # A failed status query is just a lost poll; the operation keeps running
            logger.warning(
                "operation.poll_retry",
                operation_id=operation.operation_id,
                attempt=attempt,
                error_message=str(e),
            )
            return self._pending_or_timeout(operation)
        except ContentPolicyError as e:
            logger.warning(
                "operation.filtered",
                operation_id=operation.operation_id,
                stage="status_query",
                reason=str(e),
            )
            return Filtered(reasons=(str(e),))
        finally:
            operation.last_polled_at = self.clock()

        if status.error:
            return Failed(detail=status.error)

        if status.done:
            if status.reference:
                return Completed(reference=status.reference)
            return Filtered(reasons=status.filtered_reasons)

        return self._pending_or_timeout(operation)

    async def wait(
        self,
        operation: Operation,
        on_progress: Optional[ProgressCallback] = None,
    ) -> PollOutcome:
        """Advance until the operation reaches a terminal state (blocking mode).

        Returns:
            Completed, Filtered or Failed

        Raises:
            PollTimeoutError: When the attempt budget is exhausted
        """
        while True:
            outcome = await self.advance(operation)
            if not isinstance(outcome, Pending):
                return outcome
            if on_progress is not None:
                on_progress(outcome)

    def _pending_or_timeout(self, operation: Operation) -> Pending:
        elapsed = self.elapsed(operation)
        if operation.attempts >= self.max_attempts:
            logger.error(
                "operation.timed_out",
                operation_id=operation.operation_id,
                attempts=operation.attempts,
                elapsed_seconds=round(elapsed, 1),
            )
            raise PollTimeoutError(operation.operation_id, operation.attempts, elapsed)

        logger.info(
            "operation.poll",
            operation_id=operation.operation_id,
            attempt=operation.attempts,
            max_attempts=self.max_attempts,
            elapsed_seconds=round(elapsed, 1),
        )
        return Pending(
            elapsed_seconds=elapsed,
            attempt=operation.attempts,
            max_attempts=self.max_attempts,
        )
