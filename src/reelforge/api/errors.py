"""Exception handlers that render lifecycle errors as structured JSON.

Every error response has the shape:

    {"error": {"type": "<ExceptionClass>", "message": "...", ...context}}

Context fields (operation_id, attempts, elapsed_seconds, extension_count,
max_extensions) are included when the exception carries them.
"""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from reelforge.services.exceptions import (
    ChainLimitExceeded,
    DiskFullError,
    DownloadError,
    DuplicateOperationError,
    GenerationError,
    PollTimeoutError,
    RemoteFailure,
    StoragePermissionError,
    SubmissionError,
)
from reelforge.services.generation.replicate_client import (
    ContentPolicyError,
    PermanentError,
    ReplicateError,
    TransientError,
)

logger = structlog.get_logger()

# Most specific first: StoragePermissionError and DiskFullError are DownloadErrors
STATUS_BY_ERROR: list[tuple[type[Exception], int]] = [
    (SubmissionError, status.HTTP_400_BAD_REQUEST),
    (ChainLimitExceeded, status.HTTP_409_CONFLICT),
    (DuplicateOperationError, status.HTTP_409_CONFLICT),
    (RemoteFailure, status.HTTP_502_BAD_GATEWAY),
    (PollTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (StoragePermissionError, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (DiskFullError, status.HTTP_507_INSUFFICIENT_STORAGE),
    (DownloadError, status.HTTP_502_BAD_GATEWAY),
    (TransientError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (ContentPolicyError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (PermanentError, status.HTTP_502_BAD_GATEWAY),
]

CONTEXT_ATTRIBUTES = (
    "operation_id",
    "attempts",
    "elapsed_seconds",
    "artifact_id",
    "extension_count",
    "max_extensions",
)


def status_for(error: Exception) -> int:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(error: Exception) -> dict:
    """Build the {"error": {...}} payload for an exception."""
    detail: dict = {"type": type(error).__name__, "message": str(error)}
    for name in CONTEXT_ATTRIBUTES:
        value = getattr(error, name, None)
        if value is not None:
            detail[name] = round(value, 1) if isinstance(value, float) else value
    return {"error": detail}


async def handle_lifecycle_error(request: Request, exc: Exception) -> JSONResponse:
    status_code = status_for(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "request.failed",
        path=request.url.path,
        status_code=status_code,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(status_code=status_code, content=error_body(exc))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GenerationError, handle_lifecycle_error)
    app.add_exception_handler(ReplicateError, handle_lifecycle_error)
