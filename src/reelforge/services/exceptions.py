"""Error hierarchy for the operation lifecycle.

This module defines the exceptions raised while driving a generation from
submission to a materialized artifact:
- GenerationError: Base for all lifecycle errors
- SubmissionError: Bad request shape, caught before any remote call
- RemoteFailure: Terminal failure reported by the generation service
- PollTimeoutError: Poll attempt budget exhausted
- DownloadError: Network or storage failure while materializing an artifact
- ChainLimitExceeded: Extension requested on a chain that reached its cap
- DuplicateOperationError: Operation identity registered twice

Content-policy filtering and unknown identities are not errors here; they are
returned as typed outcomes (see reelforge.models.outcome).
"""


class GenerationError(Exception):
    """Base exception for all lifecycle errors."""

    pass


class SubmissionError(GenerationError):
    """Request rejected before it reached the generation service.

    Examples:
    - Empty prompt
    - Unknown model
    - Unsupported duration, aspect ratio or resolution
    - Missing or unsupported reference image
    """

    pass


class RemoteFailure(GenerationError):
    """The generation service reported a terminal failure for an operation."""

    def __init__(
        self,
        detail: str,
        operation_id: str,
        attempts: int = 0,
        elapsed_seconds: float = 0.0,
    ):
        self.detail = detail
        self.operation_id = operation_id
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds
        super().__init__(
            f"Video generation failed: {detail} "
            f"(operation {operation_id}, {attempts} polls, {elapsed_seconds:.0f}s elapsed)"
        )


class PollTimeoutError(GenerationError, TimeoutError):
    """Operation still running after the maximum number of status queries."""

    def __init__(self, operation_id: str, attempts: int, elapsed_seconds: float):
        self.operation_id = operation_id
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds
        super().__init__(
            f"Video generation timed out after {attempts} polls "
            f"({elapsed_seconds:.0f}s elapsed, operation {operation_id})"
        )


# Materialization errors
class DownloadError(GenerationError):
    """Base exception for artifact download and storage errors."""

    pass


class NetworkError(DownloadError):
    """Download failed: timeout, transport error or non-2xx response."""

    pass


class StoragePermissionError(DownloadError, PermissionError):
    """Output directory or file is not writable."""

    pass


class DiskFullError(DownloadError):
    """No space left on the output device."""

    pass


# Chain and registry errors
class ChainLimitExceeded(GenerationError):
    """Extension rejected because the chain already reached its maximum length."""

    def __init__(self, artifact_id: str, extension_count: int, max_extensions: int):
        self.artifact_id = artifact_id
        self.extension_count = extension_count
        self.max_extensions = max_extensions
        super().__init__(
            f"Maximum extensions reached for {artifact_id} "
            f"({extension_count}/{max_extensions})"
        )


class DuplicateOperationError(GenerationError):
    """An operation with the same identity is already being tracked."""

    pass
