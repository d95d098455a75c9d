"""Artifact materializer: downloads remote videos into the managed output directory."""

import asyncio
import errno
import os
import tempfile
import uuid
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Optional

import httpx
import structlog

from reelforge.services.exceptions import (
    DiskFullError,
    DownloadError,
    NetworkError,
    StoragePermissionError,
)

logger = structlog.get_logger(__name__)

PERMISSION_ERRNOS = (errno.EACCES, errno.EPERM, errno.EROFS)
DISK_FULL_ERRNOS = (errno.ENOSPC, getattr(errno, "EDQUOT", errno.ENOSPC))


@dataclass(frozen=True)
class DownloadAuth:
    """Credential attached to downloads.

    The token goes in `query_param` first when one is configured; if that
    request is rejected and `header` is configured, the download is retried
    once with the token in that header.
    """

    token: str
    query_param: str = ""
    header: str = ""


def generate_filename(kind: str = "video", extension: str = "mp4") -> str:
    """Generate a collision-resistant filename: {kind}-{timestamp}-{random}.{ext}."""
    timestamp = datetime.now(UTC).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    return f"{kind}-{timestamp}-{uuid.uuid4().hex[:8]}.{extension}"


def translate_os_error(error: OSError, target: Path) -> DownloadError:
    """Map a filesystem error to the materialization error taxonomy."""
    if isinstance(error, PermissionError) or error.errno in PERMISSION_ERRNOS:
        return StoragePermissionError(f"Permission denied writing to {target.parent}: {error}")
    if error.errno in DISK_FULL_ERRNOS:
        return DiskFullError(f"Disk full - cannot save video to {target}: {error}")
    return DownloadError(f"Failed to save video to {target}: {error}")


class ArtifactMaterializer:
    """Writes downloaded artifacts atomically into a single flat output directory."""

    def __init__(
        self,
        output_dir: Path,
        auth: Optional[DownloadAuth] = None,
        timeout: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize materializer.

        Args:
            output_dir: Directory receiving artifacts (created on demand)
            auth: Optional download credential
            timeout: Download timeout in seconds
            transport: httpx transport override (tests use httpx.MockTransport)
        """
        self.output_dir = Path(output_dir).expanduser().resolve()
        self.auth = auth
        self.timeout = timeout
        self.transport = transport

    async def materialize(self, reference: str, destination_name: str) -> Path:
        """Download `reference` and save it as `destination_name` in the output directory.

        Args:
            reference: Downloadable URL returned by the generation service
            destination_name: Filename from generate_filename()

        Returns:
            Absolute path of the saved file

        Raises:
            NetworkError: Timeout, transport failure or non-2xx response
            StoragePermissionError: Output directory not writable
            DiskFullError: No space left on device
            DownloadError: Any other storage failure
        """
        target = self.output_dir / destination_name
        content = await self._download(reference)
        await asyncio.to_thread(self._write_atomic, target, content)

        logger.info(
            "artifact.materialized",
            path=str(target),
            size_bytes=len(content),
        )
        return target

    async def delete(self, path: Path) -> int:
        """Delete an artifact file.

        Returns:
            Bytes freed (0 if the file no longer exists)

        Raises:
            OSError: If the file exists but cannot be removed
        """
        return await asyncio.to_thread(self._delete, Path(path))

    async def exists(self, path: Path) -> bool:
        return await asyncio.to_thread(Path(path).exists)

    async def _download(self, reference: str) -> bytes:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport, follow_redirects=True
            ) as client:
                if self.auth and self.auth.token and self.auth.query_param:
                    response = await client.get(
                        reference, params={self.auth.query_param: self.auth.token}
                    )
                    if response.is_success or not self.auth.header:
                        return self._content_or_raise(response)

                    logger.warning(
                        "artifact.download_retry",
                        status_code=response.status_code,
                        reason="query_param_auth_rejected",
                    )
                    response = await client.get(
                        reference, headers={self.auth.header: self.auth.token}
                    )
                    return self._content_or_raise(response)

                headers = {}
                if self.auth and self.auth.token and self.auth.header:
                    headers[self.auth.header] = self.auth.token
                response = await client.get(reference, headers=headers)
                return self._content_or_raise(response)

        except httpx.TimeoutException as e:
            raise NetworkError(f"Download timeout after {self.timeout:.0f}s: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(f"Network error while downloading video: {e}") from e

    @staticmethod
    def _content_or_raise(response: httpx.Response) -> bytes:
        if not response.is_success:
            raise NetworkError(
                f"Failed to download video: HTTP {response.status_code} {response.reason_phrase}"
            )
        return response.content

    def _write_atomic(self, target: Path, content: bytes) -> None:
        # Runs in a worker thread; the partial file never survives a failure
        temp_path: Optional[Path] = None
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(
                dir=target.parent, prefix=f".{target.name}.", suffix=".part"
            )
            temp_path = Path(temp_name)
            with os.fdopen(fd, "wb") as handle:
                handle.write(content)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(temp_path, target)
        except OSError as e:
            if temp_path is not None:
                self._discard(temp_path)
            raise translate_os_error(e, target) from e

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.error("artifact.partial_cleanup_failed", path=str(path), error=str(e))

    @staticmethod
    def _delete(path: Path) -> int:
        try:
            size = path.stat().st_size
        except FileNotFoundError:
            return 0
        path.unlink()
        return size
