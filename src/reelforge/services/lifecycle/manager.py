"""Lifecycle manager: the operations exposed to the API and CLI.

Ties the lifecycle components together:

    submit → operation handle ─┬─ blocking:   Poller.wait → materialize → ledger
                               └─ background: OperationTracker; each status
                                  query runs one Poller.advance and, once
                                  terminal, materializes and records the result

Ownership moves one way. An operation belongs to the tracker until its
terminal result has been resolved; it is removed right after its result (if
any) becomes an artifact owned by the history ledger. Every tracker, ledger and counter
mutation happens in synchronous code between two awaits.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union
from uuid import uuid4

import structlog

from reelforge.context import GenerationContext
from reelforge.models.artifact import Artifact, ExtensionDraft
from reelforge.models.operation import Operation
from reelforge.models.outcome import (
    Failed,
    Filtered,
    GenerationOutcome,
    Materialized,
    NotFound,
    Pending,
    PollOutcome,
    StatusOutcome,
    Submitted,
)
from reelforge.models.request import GenerationRequest
from reelforge.services.exceptions import PollTimeoutError, RemoteFailure, SubmissionError
from reelforge.services.generation.replicate_client import ContentPolicyError
from reelforge.services.generation.request_validator import validate_prompt, validate_request
from reelforge.services.storage.materializer import generate_filename

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class HistoryEntry:
    """History listing row: the artifact and whether its file is still on disk."""

    artifact: Artifact
    file_exists: bool


@dataclass
class CleanupResult:
    """Outcome of a reclamation request."""

    deleted: list[str] = field(default_factory=list)
    bytes_recovered: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def mb_recovered(self) -> float:
        return round(self.bytes_recovered / (1024 * 1024), 2)


class LifecycleManager:
    """Submit, track, materialize, extend and reclaim generated videos."""

    def __init__(self, context: GenerationContext):
        self.context = context
        self.settings = context.settings

    async def generate(
        self, request: GenerationRequest, background: bool = False
    ) -> GenerationOutcome:
        """Submit a generation and either wait for it or hand back its operation id.

        Args:
            request: Caller parameters (text, image-to-video or transition)
            background: Return Submitted immediately instead of polling inline

        Returns:
            Submitted (background), Materialized or Filtered (blocking)

        Raises:
            SubmissionError: Invalid request, nothing was submitted
            RemoteFailure: Service reported a terminal failure
            PollTimeoutError: Operation still running after the attempt budget
            DownloadError: The finished video could not be saved
        """
        request = validate_request(request, self.settings.valid_models_set)
        return await self._start(request, background)

    async def extend(
        self,
        prompt: str,
        video_path: Optional[str | Path] = None,
        background: bool = False,
    ) -> Union[GenerationOutcome, NotFound]:
        """Continue a previously generated video.

        Args:
            prompt: Description of the continuation
            video_path: Path of a ledger artifact; None continues the last artifact
            background: Return Submitted immediately instead of polling inline

        Returns:
            NotFound if the parent is not in the ledger, otherwise as `generate`

        Raises:
            ChainLimitExceeded: Chain is full; raised before any remote call
        """
        history = self.context.history
        parent = history.find_by_path(video_path) if video_path else history.last
        if parent is None:
            return NotFound(kind="artifact", key=str(video_path or "last"))

        validate_prompt(prompt)
        draft = self.context.extensions.extend(parent, prompt)
        try:
            request = validate_request(draft.request, self.settings.valid_models_set)
        except SubmissionError:
            self.context.extensions.release(draft)
            raise
        return await self._start(request, background, extension=draft)

    async def check_status(self, operation_id: str) -> StatusOutcome:
        """Advance a background operation by one poll.

        Returns:
            Materialized if already (or now) resolved, Pending while running,
            Filtered if the service produced nothing, NotFound for unknown ids

        Raises:
            RemoteFailure / PollTimeoutError / DownloadError: Terminal failures
        """
        resolved = self.context.history.find_by_operation_id(operation_id)
        if resolved is not None:
            return Materialized(artifact=resolved)

        operation = self.context.operations.lookup(operation_id)
        if operation is None:
            return NotFound(kind="operation", key=operation_id)

        async with operation.lock:
            if operation_id not in self.context.operations:
                # Resolved by a concurrent status query while waiting for the lock
                resolved = self.context.history.find_by_operation_id(operation_id)
                if resolved is not None:
                    return Materialized(artifact=resolved)
                return NotFound(kind="operation", key=operation_id)

            try:
                outcome = await self.context.poller.advance(operation)
            except PollTimeoutError:
                self.context.operations.remove(operation_id)
                self._abandon(operation)
                raise

            if isinstance(outcome, Pending):
                return outcome

            # Stays tracked while downloading so later queries wait on the lock
            try:
                return await self._resolve(operation, outcome)
            finally:
                self.context.operations.remove(operation_id)

    async def list_history(self) -> list[HistoryEntry]:
        """Return ledger artifacts newest first, flagging files deleted out of band."""
        entries = []
        for artifact in self.context.history.list_newest_first():
            exists = await self.context.materializer.exists(artifact.path)
            entries.append(HistoryEntry(artifact=artifact, file_exists=exists))
        return entries

    async def cleanup(
        self, video_id: Optional[str] = None, all_videos: bool = False
    ) -> Union[CleanupResult, NotFound]:
        """Delete generated videos and drop them from the ledger.

        Args:
            video_id: Single artifact to delete
            all_videos: Delete every artifact of this session

        Returns:
            CleanupResult, or NotFound for an unknown video_id

        Raises:
            SubmissionError: If neither video_id nor all_videos is given
        """
        result = CleanupResult()

        if all_videos:
            for artifact in self.context.history.list_newest_first():
                # Entries whose file could not be removed stay for a later retry
                if await self._delete_file(artifact, result) is not None:
                    self.context.history.remove_by_id(artifact.id)
        elif video_id:
            artifact = self.context.history.find_by_id(video_id)
            if artifact is None:
                return NotFound(kind="artifact", key=video_id)
            if await self._delete_file(artifact, result) is not None:
                self.context.history.remove_by_id(video_id)
        else:
            raise SubmissionError(
                "Specify either 'video_id' to delete a specific video, "
                "or 'all' to delete all videos."
            )

        logger.info(
            "artifact.cleanup",
            deleted=len(result.deleted),
            bytes_recovered=result.bytes_recovered,
            errors=len(result.errors),
        )
        return result

    async def _start(
        self,
        request: GenerationRequest,
        background: bool,
        extension: Optional[ExtensionDraft] = None,
    ) -> GenerationOutcome:
        logger.info(
            "operation.submitting",
            kind=request.kind.value,
            model=request.model,
            prompt_preview=request.prompt[:50],
            background=background,
        )
        try:
            operation_id = await self.context.service.submit(request)
        except ContentPolicyError as e:
            if extension is not None:
                self.context.extensions.release(extension)
            logger.warning("operation.filtered", stage="submission", reason=str(e))
            return Filtered(reasons=(str(e),))
        except Exception:
            if extension is not None:
                self.context.extensions.release(extension)
            raise

        operation = Operation(
            operation_id=operation_id or str(uuid4()),
            request=request,
            model=request.model,
            started_at=self.context.clock(),
            extension=extension,
        )
        logger.info(
            "operation.submitted",
            operation_id=operation.operation_id,
            kind=request.kind.value,
            background=background,
        )

        if background:
            try:
                self.context.operations.register(operation)
            except Exception:
                self._abandon(operation)
                raise
            return Submitted(operation_id=operation.operation_id, model=operation.model)

        try:
            outcome = await self.context.poller.wait(operation)
        except Exception:
            self._abandon(operation)
            raise
        return await self._resolve(operation, outcome)

    async def _resolve(
        self, operation: Operation, outcome: PollOutcome
    ) -> Union[Materialized, Filtered]:
        """Turn a terminal poll outcome into the caller-visible result."""
        elapsed = self.context.poller.elapsed(operation)

        if isinstance(outcome, Failed):
            self._abandon(operation)
            logger.error(
                "operation.failed",
                operation_id=operation.operation_id,
                error_message=outcome.detail,
                attempts=operation.attempts,
                elapsed_seconds=round(elapsed, 1),
            )
            raise RemoteFailure(outcome.detail, operation.operation_id, operation.attempts, elapsed)

        if isinstance(outcome, Filtered):
            self._abandon(operation)
            logger.warning(
                "operation.filtered",
                operation_id=operation.operation_id,
                reasons=list(outcome.reasons),
            )
            return outcome

        if isinstance(outcome, Pending):
            raise ValueError(f"Operation {operation.operation_id} is not terminal")

        filename = generate_filename()
        try:
            path = await self.context.materializer.materialize(outcome.reference, filename)
        except Exception:
            self._abandon(operation)
            raise

        artifact = self._record(operation, Path(filename).stem, path)
        logger.info(
            "operation.completed",
            operation_id=operation.operation_id,
            artifact_id=artifact.id,
            path=str(path),
            attempts=operation.attempts,
            elapsed_seconds=round(elapsed, 1),
        )
        return Materialized(artifact=artifact, elapsed_seconds=elapsed)

    def _record(self, operation: Operation, artifact_id: str, path: Path) -> Artifact:
        if operation.extension is not None:
            return self.context.extensions.complete(
                operation.extension, artifact_id, path, operation.operation_id
            )

        request = operation.request
        return self.context.history.append(
            Artifact(
                id=artifact_id,
                path=path,
                prompt=request.prompt,
                model=operation.model,
                duration_seconds=request.duration_seconds or 0,
                resolution=request.resolution,
                aspect_ratio=request.aspect_ratio,
                operation_id=operation.operation_id,
                kind=request.kind,
            )
        )

    def _abandon(self, operation: Operation) -> None:
        # Operation produced no artifact: free its extension slot, if any
        if operation.extension is not None:
            self.context.extensions.release(operation.extension)

    async def _delete_file(self, artifact: Artifact, result: CleanupResult) -> Optional[int]:
        try:
            freed = await self.context.materializer.delete(artifact.path)
        except OSError as e:
            result.errors.append(f"{artifact.id}: {e}")
            return None
        if freed:
            result.deleted.append(artifact.id)
            result.bytes_recovered += freed
        return freed
