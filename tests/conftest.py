"""pytest fixtures for reelforge tests.

Provides:
- FakeClock: Monotonic clock whose sleep advances time instantly
- FakeGenerationService: Scripted stand-in for the remote generation service
- settings: Test settings writing into a temporary output directory
- context / manager: Generation context wired to the fakes and an httpx.MockTransport
"""

import asyncio
import os
from typing import Optional

# Must be set before reelforge.app is imported (it builds Settings at import time)
os.environ["APP_ENV"] = "test"

import httpx  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from reelforge.context import GenerationContext  # noqa: E402
from reelforge.core.config import Settings  # noqa: E402
from reelforge.models.outcome import RemoteStatus  # noqa: E402
from reelforge.models.request import GenerationRequest  # noqa: E402
from reelforge.services.lifecycle.manager import LifecycleManager  # noqa: E402

VIDEO_URL = "https://replicate.delivery/test/output.mp4"
VIDEO_BYTES = b"\x00\x00\x00\x18ftypmp42fake-video-content"

RUNNING = RemoteStatus(done=False)
SUCCEEDED = RemoteStatus(done=True, reference=VIDEO_URL)


class FakeClock:
    """Monotonic clock for tests; `sleep` advances time instead of waiting."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeGenerationService:
    """Scripted generation service.

    Each submission gets id "op-N" and a copy of `script`. Every status query
    consumes the next scripted entry; the final entry repeats forever. An
    exception instance in the script is raised instead of returned.
    """

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.script: list = [SUCCEEDED]
        self.scripts: dict[str, list] = {}
        self.submitted: list[GenerationRequest] = []
        self.queries: list[tuple[str, float]] = []
        self.submit_error: Optional[Exception] = None

    async def submit(self, request: GenerationRequest) -> str:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(request)
        operation_id = f"op-{len(self.submitted)}"
        self.scripts[operation_id] = list(self.script)
        return operation_id

    async def query_status(self, operation_id: str) -> RemoteStatus:
        self.queries.append((operation_id, self.clock.now))
        script = self.scripts[operation_id]
        entry = script.pop(0) if len(script) > 1 else script[0]
        if isinstance(entry, Exception):
            raise entry
        return entry

    def query_count(self, operation_id: str) -> int:
        return sum(1 for op_id, _ in self.queries if op_id == operation_id)


def video_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=VIDEO_BYTES)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service(clock) -> FakeGenerationService:
    return FakeGenerationService(clock)


@pytest.fixture
def output_dir(tmp_path):
    return tmp_path / "videos"


@pytest.fixture
def settings(output_dir) -> Settings:
    """Test settings: 10s poll interval, 5 attempts, temporary output directory."""
    return Settings(
        APP_ENV="test",
        REPLICATE_API_TOKEN="r8_test_token",
        OUTPUT_DIR=output_dir,
        POLL_INTERVAL_SECONDS=10.0,
        MAX_POLL_ATTEMPTS=5,
        MAX_EXTENSIONS=20,
        EXTENSION_INCREMENT_SECONDS=7,
    )


@pytest.fixture
def transport() -> httpx.MockTransport:
    return httpx.MockTransport(video_handler)


@pytest.fixture
def context(settings, service, transport, clock) -> GenerationContext:
    return GenerationContext(
        settings,
        service,
        transport=transport,
        clock=clock,
        sleep=clock.sleep,
    )


@pytest_asyncio.fixture
async def manager(context) -> LifecycleManager:
    return LifecycleManager(context)


def make_request(prompt: str = "A drone shot over a misty forest at dawn", **kwargs):
    """Build a valid text-to-video request with overridable fields."""
    kwargs.setdefault("model", "google/veo-3")
    return GenerationRequest(prompt=prompt, **kwargs)
