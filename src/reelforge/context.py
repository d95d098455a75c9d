"""Generation context for reelforge.

One context per server instance owns all process-lifetime state: the pending
operation registry, the history ledger and the extension counters, plus the
collaborators that act on them.
"""

import asyncio
import time
from typing import Optional

import httpx
import structlog

from reelforge.core.config import Settings
from reelforge.repositories.history import HistoryLedger
from reelforge.repositories.operation_tracker import OperationTracker
from reelforge.services.generation.replicate_client import GenerationService, ReplicateVideoClient
from reelforge.services.lifecycle.extension_chain import ExtensionChainManager
from reelforge.services.lifecycle.poller import Clock, Poller, Sleep
from reelforge.services.storage.materializer import ArtifactMaterializer, DownloadAuth

logger = structlog.get_logger(__name__)


class GenerationContext:
    """Explicit owner of the tracker, ledger and lifecycle collaborators.

    Example:
        context = create_context(settings)
        manager = LifecycleManager(context)
        outcome = await manager.generate(request)
    """

    def __init__(
        self,
        settings: Settings,
        service: GenerationService,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ):
        """Initialize context.

        Args:
            settings: Application settings
            service: Remote generation service
            transport: httpx transport override for downloads (tests)
            clock: Monotonic time source shared by poller and manager
            sleep: Cooperative sleep used between polls
        """
        self.settings = settings
        self.service = service
        self.clock = clock

        self.operations = OperationTracker()
        self.history = HistoryLedger()

        self.poller = Poller(
            service,
            poll_interval=settings.poll_interval_seconds,
            max_attempts=settings.max_poll_attempts,
            clock=clock,
            sleep=sleep,
        )
        self.materializer = ArtifactMaterializer(
            settings.resolved_output_dir,
            auth=_download_auth(settings),
            timeout=settings.download_timeout_seconds,
            transport=transport,
        )
        self.extensions = ExtensionChainManager(
            self.history,
            max_extensions=settings.max_extensions,
            increment_seconds=settings.extension_increment_seconds,
        )


def _download_auth(settings: Settings) -> Optional[DownloadAuth]:
    if not settings.download_auth_token:
        return None
    return DownloadAuth(
        token=settings.download_auth_token,
        query_param=settings.download_auth_query_param,
        header=settings.download_auth_header,
    )


def create_context(settings: Settings) -> GenerationContext:
    """Build a context wired to the Replicate predictions API."""
    service = ReplicateVideoClient(api_token=settings.replicate_api_token)
    context = GenerationContext(settings, service)
    logger.info(
        "context.created",
        output_dir=str(context.materializer.output_dir),
        default_model=settings.default_model,
        poll_interval=settings.poll_interval_seconds,
        max_poll_attempts=settings.max_poll_attempts,
    )
    return context
