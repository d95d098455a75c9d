"""Replicate API client for video generation with error classification.

Wraps the Replicate predictions API in the submit / query-status protocol the
lifecycle manager drives: `submit` creates a prediction and returns its id,
`query_status` fetches it once and reduces it to a RemoteStatus.
"""

import asyncio
from typing import Any, Optional, Protocol

import httpx
import replicate
from replicate.exceptions import ReplicateError as ReplicateAPIError

from reelforge.models.outcome import RemoteStatus
from reelforge.models.request import GenerationRequest, RequestKind


class ReplicateError(Exception):
    """Base class for categorized Replicate API errors."""

    retryable: bool = False


class TransientError(ReplicateError):
    """Transient errors that may succeed on the next poll (network, rate limits, unavailability)."""

    retryable = True


class ContentPolicyError(ReplicateError):
    """Content policy violation - the request will not produce a video."""

    retryable = False


class PermanentError(ReplicateError):
    """Permanent errors that should not be retried (auth, validation)."""

    retryable = False


class GenerationService(Protocol):
    """Remote generation service boundary consumed by the lifecycle manager."""

    async def submit(self, request: GenerationRequest) -> str: ...

    async def query_status(self, operation_id: str) -> RemoteStatus: ...


def classify_error(exception: Exception) -> ReplicateError:
    """Classify exception into retry category.

    Args:
        exception: Original exception from Replicate SDK or network layer

    Returns:
        Classified ReplicateError subclass instance

    Classification rules:
        - Timeout errors → TransientError
        - 429 (rate limit) → TransientError
        - 502/503 (service unavailable) → TransientError
        - 401/403 (authentication) → PermanentError
        - Content policy / safety violations → ContentPolicyError
        - Connection errors → TransientError
        - Anything else → PermanentError
    """
    error_message = str(exception)
    error_message_lower = error_message.lower()

    if "timeout" in error_message_lower or isinstance(exception, TimeoutError):
        return TransientError(f"Network timeout: {error_message}")

    if "429" in error_message or "rate limit" in error_message_lower:
        return TransientError(f"Rate limit exceeded: {error_message}")

    if (
        "502" in error_message
        or "503" in error_message
        or "service unavailable" in error_message_lower
    ):
        return TransientError(f"Service unavailable: {error_message}")

    if (
        "401" in error_message
        or "403" in error_message
        or "unauthorized" in error_message_lower
        or "forbidden" in error_message_lower
        or "authentication" in error_message_lower
        or "invalid api token" in error_message_lower
    ):
        return PermanentError(f"Authentication failed: {error_message}")

    if (
        "content policy" in error_message_lower
        or "nsfw" in error_message_lower
        or "safety" in error_message_lower
        or "sensitive" in error_message_lower
        or "inappropriate" in error_message_lower
    ):
        return ContentPolicyError(f"Content policy violation: {error_message}")

    if isinstance(exception, (ConnectionError, OSError)):
        return TransientError(f"Connection error: {error_message}")

    return PermanentError(f"Permanent error: {error_message}")


def build_input(request: GenerationRequest) -> dict[str, Any]:
    """Translate a GenerationRequest into Replicate model input.

    Local media is passed as Path objects; the Replicate SDK uploads them.
    Extensions only carry the prompt and the source video.
    """
    payload: dict[str, Any] = {"prompt": request.prompt}

    if request.kind is RequestKind.EXTENSION:
        payload["video"] = request.source_video_path
        return payload

    payload["duration"] = request.duration_seconds
    payload["aspect_ratio"] = request.aspect_ratio
    payload["resolution"] = request.resolution

    if request.negative_prompt:
        payload["negative_prompt"] = request.negative_prompt
    if request.seed is not None:
        payload["seed"] = request.seed
    if request.enhance_prompt is not None:
        payload["enhance_prompt"] = request.enhance_prompt
    if request.image_path is not None:
        payload["image"] = request.image_path
    if request.last_frame_path is not None:
        payload["last_frame"] = request.last_frame_path
    if request.reference_image_paths:
        payload["reference_images"] = list(request.reference_image_paths)

    return payload


def extract_output_url(output: Any) -> Optional[str]:
    """Extract the first video URL from prediction output (format varies by model)."""
    if isinstance(output, list):
        return str(output[0]) if output else None
    if isinstance(output, str):
        return output or None
    if output is None:
        return None
    # FileOutput and similar objects expose the delivery URL
    url = getattr(output, "url", None)
    return str(url) if url else None


def to_remote_status(prediction: Any) -> RemoteStatus:
    """Reduce a Replicate prediction to a RemoteStatus.

    Prediction status mapping:
        - starting / processing → not done
        - succeeded → done, reference = first output URL (none means filtered)
        - failed → done with error, or filtered when the error is a content policy hit
        - canceled → done with error
    """
    status = prediction.status

    if status in ("starting", "processing"):
        return RemoteStatus(done=False)

    if status == "succeeded":
        reference = extract_output_url(prediction.output)
        if reference:
            return RemoteStatus(done=True, reference=reference)
        return RemoteStatus(done=True, filtered_reasons=("No video returned by the model",))

    if status == "failed":
        error_message = str(prediction.error or "Unknown error")
        if isinstance(classify_error(Exception(error_message)), ContentPolicyError):
            return RemoteStatus(done=True, filtered_reasons=(error_message,))
        return RemoteStatus(done=True, error=error_message)

    if status == "canceled":
        return RemoteStatus(done=True, error="Prediction was canceled")

    return RemoteStatus(done=True, error=f"Unexpected prediction status: {status}")


class ReplicateVideoClient:
    """GenerationService backed by Replicate predictions."""

    def __init__(self, api_token: str, client: Optional[replicate.Client] = None):
        """Initialize Replicate client.

        Args:
            api_token: Replicate API token (from REPLICATE_API_TOKEN env var)
            client: Preconfigured SDK client (tests inject a stub)
        """
        self.api_token = api_token
        self.client = client or replicate.Client(api_token=api_token)

    async def submit(self, request: GenerationRequest) -> str:
        """Create a prediction for the request.

        Returns:
            Prediction id, used as the operation id

        Raises:
            TransientError: Temporary failure (not retried here - submissions never are)
            ContentPolicyError: Request rejected by content policy
            PermanentError: Authentication or validation failure
        """
        if not self.api_token:
            raise PermanentError("REPLICATE_API_TOKEN not configured")

        payload = build_input(request)

        def _create() -> Any:
            return self.client.predictions.create(model=request.model, input=payload)

        prediction = await self._call(_create)
        return prediction.id

    async def query_status(self, operation_id: str) -> RemoteStatus:
        """Fetch the prediction once and map it to a RemoteStatus.

        Raises:
            TransientError / ContentPolicyError / PermanentError: If the query itself fails
        """

        def _get() -> Any:
            return self.client.predictions.get(operation_id)

        prediction = await self._call(_get)
        return to_remote_status(prediction)

    async def _call(self, fn: Any) -> Any:
        # SDK is synchronous; run in thread pool to keep the event loop free
        try:
            return await asyncio.to_thread(fn)

        except ReplicateAPIError as e:
            classified = classify_error(e)
            raise classified from e

        except httpx.TransportError as e:
            # SDK transport layer (connect/read failures)
            raise TransientError(f"Connection error: {e}") from e

        except (ConnectionError, OSError, TimeoutError) as e:
            classified = classify_error(e)
            raise classified from e

        except Exception as e:
            # Unexpected errors - treat as permanent to avoid silent loops
            raise PermanentError(f"Unexpected error: {e}") from e
