"""LifecycleManager tests.

End-to-end scenarios over the fake generation service and a mock download
transport:
- Blocking and background generation, including concurrent status queries
- Failure, filtering and timeout resolution (operations never linger)
- Extension of the last / a specific artifact and the chain cap
- History listing and cleanup
"""

import asyncio
import errno

import httpx
import pytest

from conftest import RUNNING, SUCCEEDED, VIDEO_BYTES, make_request
from reelforge.models.outcome import (
    Filtered,
    Materialized,
    NotFound,
    OutcomeStatus,
    Pending,
    RemoteStatus,
    Submitted,
)
from reelforge.models.request import RequestKind
from reelforge.services.exceptions import (
    ChainLimitExceeded,
    PollTimeoutError,
    RemoteFailure,
    SubmissionError,
)
from reelforge.services.generation.replicate_client import ContentPolicyError

FAILED = RemoteStatus(done=True, error="Model crashed")
FILTERED = RemoteStatus(done=True, filtered_reasons=("Unsafe content",))


# ====================
# Generation
# ====================


@pytest.mark.asyncio
async def test_blocking_generation_saves_and_records(manager, context, service):
    service.script = [RUNNING, SUCCEEDED]

    outcome = await manager.generate(make_request(duration_seconds=6))

    assert isinstance(outcome, Materialized)
    artifact = outcome.artifact
    assert artifact.path.read_bytes() == VIDEO_BYTES
    assert artifact.path.parent == context.settings.resolved_output_dir
    assert artifact.id == artifact.path.stem
    assert artifact.operation_id == "op-1"
    assert artifact.duration_seconds == 6
    assert artifact.kind is RequestKind.TEXT
    assert outcome.elapsed_seconds == pytest.approx(20.0)
    assert context.history.last is artifact
    assert len(context.operations) == 0


@pytest.mark.asyncio
async def test_invalid_request_never_reaches_service(manager, service):
    with pytest.raises(SubmissionError, match="duration"):
        await manager.generate(make_request(duration_seconds=5))

    with pytest.raises(SubmissionError, match="model"):
        await manager.generate(make_request(model="acme/unknown"))

    assert service.submitted == []


@pytest.mark.asyncio
async def test_image_request_resolves_paths(manager, service, tmp_path):
    image = tmp_path / "still.png"
    image.write_bytes(b"\x89PNG")

    outcome = await manager.generate(make_request(image_path=image))

    assert outcome.artifact.kind is RequestKind.IMAGE
    assert service.submitted[0].image_path == image.resolve()


@pytest.mark.asyncio
async def test_background_generation_lifecycle(manager, context, service):
    """Submitted → pending → completed; the operation leaves the tracker on completion."""
    service.script = [RUNNING, SUCCEEDED]

    submitted = await manager.generate(make_request(), background=True)

    assert submitted == Submitted(operation_id="op-1", model="google/veo-3")
    assert submitted.status is OutcomeStatus.SUBMITTED
    assert "op-1" in context.operations
    assert service.query_count("op-1") == 0

    pending = await manager.check_status("op-1")
    assert isinstance(pending, Pending)
    assert pending.attempt == 1

    completed = await manager.check_status("op-1")
    assert isinstance(completed, Materialized)
    assert "op-1" not in context.operations
    assert context.history.find_by_operation_id("op-1") is completed.artifact

    # Already resolved: answered from the ledger without another remote query
    again = await manager.check_status("op-1")
    assert again.artifact is completed.artifact
    assert service.query_count("op-1") == 2


@pytest.mark.asyncio
async def test_unknown_operation_is_not_found(manager, service):
    outcome = await manager.check_status("op-does-not-exist")

    assert outcome == NotFound(kind="operation", key="op-does-not-exist")
    assert service.queries == []


@pytest.mark.asyncio
async def test_concurrent_status_queries_resolve_once(manager, context, service):
    await manager.generate(make_request(), background=True)

    first, second = await asyncio.gather(
        manager.check_status("op-1"), manager.check_status("op-1")
    )

    assert isinstance(first, Materialized)
    assert isinstance(second, Materialized)
    assert first.artifact is second.artifact
    assert service.query_count("op-1") == 1
    assert len(context.history) == 1


@pytest.mark.asyncio
async def test_status_query_during_download_waits_for_result(manager, context, service):
    downloading = asyncio.Event()
    release = asyncio.Event()

    async def held_download(request):
        downloading.set()
        await release.wait()
        return httpx.Response(200, content=VIDEO_BYTES)

    context.materializer.transport = httpx.MockTransport(held_download)
    await manager.generate(make_request(), background=True)

    first = asyncio.create_task(manager.check_status("op-1"))
    await downloading.wait()
    second = asyncio.create_task(manager.check_status("op-1"))
    await asyncio.sleep(0)

    assert "op-1" in context.operations
    assert not second.done()

    release.set()
    first_outcome, second_outcome = await asyncio.gather(first, second)

    assert isinstance(first_outcome, Materialized)
    assert isinstance(second_outcome, Materialized)
    assert second_outcome.artifact is first_outcome.artifact
    assert service.query_count("op-1") == 1
    assert "op-1" not in context.operations


@pytest.mark.asyncio
async def test_blocking_failure_raises_remote_failure(manager, context, service):
    service.script = [RUNNING, FAILED]

    with pytest.raises(RemoteFailure) as exc_info:
        await manager.generate(make_request())

    assert exc_info.value.detail == "Model crashed"
    assert exc_info.value.attempts == 2
    assert len(context.history) == 0


@pytest.mark.asyncio
async def test_background_failure_removes_operation(manager, context, service):
    service.script = [FAILED]
    await manager.generate(make_request(), background=True)

    with pytest.raises(RemoteFailure):
        await manager.check_status("op-1")

    assert "op-1" not in context.operations
    assert isinstance(await manager.check_status("op-1"), NotFound)


@pytest.mark.asyncio
async def test_filtered_result_is_returned_not_raised(manager, context, service):
    service.script = [FILTERED]

    outcome = await manager.generate(make_request())

    assert outcome == Filtered(reasons=("Unsafe content",))
    assert len(context.history) == 0
    assert list(context.materializer.output_dir.glob("*")) == []


@pytest.mark.asyncio
async def test_background_filtered_then_forgotten(manager, context, service):
    service.script = [FILTERED]
    await manager.generate(make_request(), background=True)

    assert isinstance(await manager.check_status("op-1"), Filtered)
    assert isinstance(await manager.check_status("op-1"), NotFound)


@pytest.mark.asyncio
async def test_content_policy_during_status_query_is_filtered(manager, context, service):
    service.script = [ContentPolicyError("Content policy violation: nsfw")]
    await manager.generate(make_request(), background=True)

    outcome = await manager.check_status("op-1")

    assert isinstance(outcome, Filtered)
    assert "nsfw" in outcome.reasons[0]
    assert "op-1" not in context.operations
    assert isinstance(await manager.check_status("op-1"), NotFound)


@pytest.mark.asyncio
async def test_submission_content_policy_is_filtered(manager, service):
    service.submit_error = ContentPolicyError("Content policy violation: nsfw")

    outcome = await manager.generate(make_request())

    assert isinstance(outcome, Filtered)
    assert "nsfw" in outcome.reasons[0]


@pytest.mark.asyncio
async def test_blocking_timeout(manager, context, service):
    service.script = [RUNNING]

    with pytest.raises(PollTimeoutError) as exc_info:
        await manager.generate(make_request())

    assert exc_info.value.attempts == 5
    assert service.query_count("op-1") == 5
    assert len(context.history) == 0


@pytest.mark.asyncio
async def test_background_timeout_removes_operation(manager, context, service):
    service.script = [RUNNING]
    await manager.generate(make_request(), background=True)

    for _ in range(4):
        assert isinstance(await manager.check_status("op-1"), Pending)
    with pytest.raises(PollTimeoutError):
        await manager.check_status("op-1")

    assert "op-1" not in context.operations
    assert isinstance(await manager.check_status("op-1"), NotFound)


# ====================
# Extension
# ====================


@pytest.mark.asyncio
async def test_extend_last_artifact(manager, context, service):
    original = (await manager.generate(make_request(duration_seconds=4))).artifact

    outcome = await manager.extend("The camera pulls back to reveal the valley")

    assert isinstance(outcome, Materialized)
    extension = outcome.artifact
    assert extension.duration_seconds == 11
    assert extension.parent_id == original.id
    assert extension.root_id == original.id
    assert extension.kind is RequestKind.EXTENSION
    assert original.extension_count == 1
    assert context.history.last is extension

    request = service.submitted[1]
    assert request.kind is RequestKind.EXTENSION
    assert request.source_video_path == original.path


@pytest.mark.asyncio
async def test_extend_specific_path(manager):
    first = (await manager.generate(make_request(prompt="First"))).artifact
    await manager.generate(make_request(prompt="Second"))

    outcome = await manager.extend("Continue the first", video_path=str(first.path))

    assert outcome.artifact.parent_id == first.id


@pytest.mark.asyncio
async def test_extend_without_history_is_not_found(manager, service):
    assert isinstance(await manager.extend("Continue"), NotFound)

    await manager.generate(make_request())
    outcome = await manager.extend("Continue", video_path="/tmp/not-generated-here.mp4")

    assert outcome == NotFound(kind="artifact", key="/tmp/not-generated-here.mp4")
    assert len(service.submitted) == 1


@pytest.mark.asyncio
async def test_chain_limit_rejects_without_remote_call(manager, context, service):
    original = (await manager.generate(make_request())).artifact
    for n in range(20):
        await manager.extend(f"Continuation {n}")

    assert original.extension_count == 20
    assert len(service.submitted) == 21

    with pytest.raises(ChainLimitExceeded):
        await manager.extend("One too many")

    assert len(service.submitted) == 21
    assert original.extension_count == 20


@pytest.mark.asyncio
async def test_failed_extension_releases_slot(manager, context, service):
    original = (await manager.generate(make_request())).artifact
    service.script = [FAILED]

    with pytest.raises(RemoteFailure):
        await manager.extend("This one fails")

    assert original.extension_count == 0
    assert context.extensions.in_flight(original.id) == 0
    assert context.history.last is original


@pytest.mark.asyncio
async def test_background_extension(manager, context, service):
    original = (await manager.generate(make_request())).artifact

    submitted = await manager.extend("Later", background=True)
    assert isinstance(submitted, Submitted)
    assert context.extensions.in_flight(original.id) == 1

    outcome = await manager.check_status(submitted.operation_id)

    assert isinstance(outcome, Materialized)
    assert outcome.artifact.parent_id == original.id
    assert original.extension_count == 1
    assert context.extensions.in_flight(original.id) == 0


# ====================
# History and cleanup
# ====================


@pytest.mark.asyncio
async def test_list_history_newest_first_with_file_flags(manager):
    first = (await manager.generate(make_request(prompt="First"))).artifact
    second = (await manager.generate(make_request(prompt="Second"))).artifact
    first.path.unlink()

    entries = await manager.list_history()

    assert [e.artifact.id for e in entries] == [second.id, first.id]
    assert [e.file_exists for e in entries] == [True, False]


@pytest.mark.asyncio
async def test_cleanup_single_video(manager, context):
    first = (await manager.generate(make_request(prompt="First"))).artifact
    second = (await manager.generate(make_request(prompt="Second"))).artifact

    result = await manager.cleanup(video_id=second.id)

    assert result.deleted == [second.id]
    assert result.bytes_recovered == len(VIDEO_BYTES)
    assert result.errors == []
    assert not second.path.exists()
    assert context.history.last is first


@pytest.mark.asyncio
async def test_cleanup_all_videos(manager, context):
    artifacts = [(await manager.generate(make_request())).artifact for _ in range(3)]

    result = await manager.cleanup(all_videos=True)

    assert sorted(result.deleted) == sorted(a.id for a in artifacts)
    assert result.bytes_recovered == 3 * len(VIDEO_BYTES)
    assert len(context.history) == 0
    assert context.history.last is None


@pytest.mark.asyncio
async def test_cleanup_all_keeps_entries_that_fail_to_delete(manager, context, monkeypatch):
    locked = (await manager.generate(make_request(prompt="Locked"))).artifact
    free = (await manager.generate(make_request(prompt="Free"))).artifact
    real_delete = context.materializer.delete

    async def delete(path):
        if path == locked.path:
            raise PermissionError(errno.EACCES, "Permission denied", str(path))
        return await real_delete(path)

    monkeypatch.setattr(context.materializer, "delete", delete)

    result = await manager.cleanup(all_videos=True)

    assert result.deleted == [free.id]
    assert len(result.errors) == 1
    assert result.errors[0].startswith(f"{locked.id}: ")
    assert not free.path.exists()
    assert locked.path.exists()
    assert context.history.find_by_id(locked.id) is locked
    assert context.history.find_by_id(free.id) is None


@pytest.mark.asyncio
async def test_cleanup_file_already_gone(manager, context):
    artifact = (await manager.generate(make_request())).artifact
    artifact.path.unlink()

    result = await manager.cleanup(video_id=artifact.id)

    assert result.deleted == []
    assert result.bytes_recovered == 0
    assert len(context.history) == 0


@pytest.mark.asyncio
async def test_cleanup_unknown_and_missing_arguments(manager):
    assert isinstance(await manager.cleanup(video_id="video-nope"), NotFound)

    with pytest.raises(SubmissionError):
        await manager.cleanup()
