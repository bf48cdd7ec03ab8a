from __future__ import annotations

import asyncio
import uuid
from datetime import datetime
from uuid import UUID

import pytest

from nodeplane.errors import BadRequestError, CapacityExhaustedError, InternalError, NotFoundError
from nodeplane.runtime import StaticInitializer, StatusChanged, WatchDone, WatchFailed
from nodeplane.sessions import SessionService, StatusWatcher, WatchHandle
from nodeplane.store import MemoryStore, StoreError
from nodeplane.types import RuntimeProvider, SessionCreateParams, SessionStatus

from tests.conftest import FakeRuntime

pytestmark = [pytest.mark.unit]


class RecordingStore(MemoryStore):
    def __init__(self, fail_on: SessionStatus | None = None) -> None:
        super().__init__()
        self.writes: list[SessionStatus] = []
        self.fail_on = fail_on

    async def update_session_status(
        self, session_id: UUID, status: SessionStatus, at: datetime | None = None
    ) -> bool:
        if status is self.fail_on:
            raise StoreError("write failed")
        self.writes.append(status)
        return await super().update_session_status(session_id, status, at)


class FailingCreateStore(MemoryStore):
    async def create_session(self, **kwargs: object):  # type: ignore[override]
        raise StoreError("disk full")


def _params(public_key: str, **overrides: object) -> SessionCreateParams:
    values: dict[str, object] = {
        "provider": RuntimeProvider.LAMBDALABS,
        "node_type_id": "gpu_1x_a10",
        "region": "us-west-1",
        "ssh_key_name": "laptop",
        "ssh_public_key": public_key,
    }
    values.update(overrides)
    return SessionCreateParams(**values)  # type: ignore[arg-type]


def _service(store: MemoryStore, runtime: FakeRuntime) -> SessionService:
    return SessionService(store, StaticInitializer.of(runtime))


# =============================================================================
# Create
# =============================================================================


class TestCreate:
    @pytest.mark.asyncio
    async def test_provisions_and_records(
        self, store: MemoryStore, runtime: FakeRuntime, account_id: UUID, project_id: UUID,
        public_key: str,
    ):
        service = _service(store, runtime)

        session = await service.create(account_id, project_id, _params(public_key))

        assert runtime.calls == ["list_ssh_keys", "add_ssh_key", "init_node"]
        assert session.status is SessionStatus.INITIALIZING
        assert session.node_id == "node-1"
        assert session.region == "us-west-1"
        assert session.ssh_key.name == "laptop"
        assert session.name
        assert runtime.closed == 1
        assert (await store.get_session(session.id)).node_id == "node-1"

    @pytest.mark.asyncio
    async def test_round_trip(
        self, store: MemoryStore, runtime: FakeRuntime, account_id: UUID, project_id: UUID,
        public_key: str,
    ):
        service = _service(store, runtime)
        created = await service.create(account_id, project_id, _params(public_key))

        loaded = await service.get(created.id)

        assert loaded.project_id == project_id
        assert loaded.account_id == account_id
        assert loaded.region == "us-west-1"
        assert loaded.node_type_id == "gpu_1x_a10"
        assert loaded.provider is RuntimeProvider.LAMBDALABS
        assert loaded.status is SessionStatus.INITIALIZING
        assert loaded.ssh_key.public_key == public_key

    @pytest.mark.asyncio
    async def test_nothing_persisted_when_launch_fails(
        self, store: MemoryStore, runtime: FakeRuntime, account_id: UUID, project_id: UUID,
        public_key: str,
    ):
        runtime.init_error = CapacityExhaustedError("no capacity")
        service = _service(store, runtime)

        with pytest.raises(CapacityExhaustedError) as exc_info:
            await service.create(account_id, project_id, _params(public_key))

        assert "failed to init node" in exc_info.value.__notes__
        assert store.sessions == {}
        assert runtime.closed == 1

    @pytest.mark.asyncio
    async def test_foreign_failure_becomes_internal(
        self, store: MemoryStore, runtime: FakeRuntime, account_id: UUID, project_id: UUID,
        public_key: str,
    ):
        runtime.init_error = RuntimeError("socket closed")
        service = _service(store, runtime)

        with pytest.raises(InternalError, match="Failed to init node"):
            await service.create(account_id, project_id, _params(public_key))

    @pytest.mark.asyncio
    async def test_unconfigured_provider(
        self, store: MemoryStore, account_id: UUID, project_id: UUID, public_key: str
    ):
        service = SessionService(store, StaticInitializer({}))

        with pytest.raises(BadRequestError, match="not configured"):
            await service.create(account_id, project_id, _params(public_key))

    @pytest.mark.asyncio
    async def test_persist_failure_after_launch(
        self, runtime: FakeRuntime, account_id: UUID, project_id: UUID, public_key: str
    ):
        service = _service(FailingCreateStore(), runtime)

        with pytest.raises(InternalError, match="Failed to create session"):
            await service.create(account_id, project_id, _params(public_key))
        assert "init_node" in runtime.calls


# =============================================================================
# List / Get / Terminate
# =============================================================================


class TestReadAndTerminate:
    @pytest.mark.asyncio
    async def test_get_missing(self, store: MemoryStore, runtime: FakeRuntime):
        with pytest.raises(NotFoundError):
            await _service(store, runtime).get(uuid.uuid4())

    @pytest.mark.asyncio
    async def test_list_excludes_terminated(
        self, store: MemoryStore, runtime: FakeRuntime, account_id: UUID, project_id: UUID,
        public_key: str,
    ):
        service = _service(store, runtime)
        live = await service.create(account_id, project_id, _params(public_key))
        dead = await service.create(account_id, project_id, _params(public_key))
        await service.terminate(dead.id)

        assert [s.id for s in await service.list(project_id)] == [live.id]
        everything = {s.id for s in await service.list(project_id, include_terminated=True)}
        assert everything == {live.id, dead.id}

    @pytest.mark.asyncio
    async def test_terminate(
        self, store: MemoryStore, runtime: FakeRuntime, account_id: UUID, project_id: UUID,
        public_key: str,
    ):
        service = _service(store, runtime)
        session = await service.create(account_id, project_id, _params(public_key))

        await service.terminate(session.id)

        assert runtime.terminated == [session.node_id]
        record = await store.get_session(session.id)
        assert record.status is SessionStatus.TERMINATED
        assert record.exited_at is not None

    @pytest.mark.asyncio
    async def test_terminate_missing(self, store: MemoryStore, runtime: FakeRuntime):
        with pytest.raises(NotFoundError) as exc_info:
            await _service(store, runtime).terminate(uuid.uuid4())
        assert exc_info.value.suggestion == "Make sure the session id is valid"

    @pytest.mark.asyncio
    async def test_terminate_tolerates_failed_status_write(
        self, runtime: FakeRuntime, account_id: UUID, project_id: UUID, public_key: str
    ):
        store = RecordingStore(fail_on=SessionStatus.TERMINATED)
        service = _service(store, runtime)
        session = await service.create(account_id, project_id, _params(public_key))

        await service.terminate(session.id)

        assert runtime.terminated == [session.node_id]
        assert (await store.get_session(session.id)).status is SessionStatus.INITIALIZING

    @pytest.mark.asyncio
    async def test_terminate_provider_failure_keeps_status(
        self, store: MemoryStore, runtime: FakeRuntime, account_id: UUID, project_id: UUID,
        public_key: str,
    ):
        service = _service(store, runtime)
        session = await service.create(account_id, project_id, _params(public_key))
        runtime.terminate_error = NotFoundError("Instance not found")

        with pytest.raises(NotFoundError) as exc_info:
            await service.terminate(session.id)

        assert "failed to terminate node" in exc_info.value.__notes__
        assert (await store.get_session(session.id)).status is SessionStatus.INITIALIZING


# =============================================================================
# Watch
# =============================================================================


async def _record(store: MemoryStore, project_id: UUID) -> UUID:
    record = await store.create_session(
        node_id="node-1",
        created_by=uuid.uuid4(),
        project_id=project_id,
        provider="LambdaLabs",
        region="us-east-1",
        node_type_id="gpu_1x_a10",
        ssh_key_name="laptop",
        name="quiet-river",
    )
    return record.id


class TestStatusWatcher:
    @pytest.mark.asyncio
    async def test_stops_at_first_terminal(self, project_id: UUID):
        store = RecordingStore()
        session_id = await _record(store, project_id)
        runtime = FakeRuntime(
            events=[
                StatusChanged(SessionStatus.INITIALIZING),
                StatusChanged(SessionStatus.ACTIVE),
                StatusChanged(SessionStatus.TERMINATED),
                StatusChanged(SessionStatus.ACTIVE),
            ]
        )

        final = await StatusWatcher(store, runtime, session_id, "node-1").run()

        assert final is SessionStatus.TERMINATED
        assert store.writes == [
            SessionStatus.INITIALIZING,
            SessionStatus.ACTIVE,
            SessionStatus.TERMINATED,
        ]
        assert runtime.consumed == 3
        assert runtime.closed == 1

    @pytest.mark.asyncio
    async def test_ignores_backward_transition(self, project_id: UUID):
        store = RecordingStore()
        session_id = await _record(store, project_id)
        runtime = FakeRuntime(
            events=[
                StatusChanged(SessionStatus.ACTIVE),
                StatusChanged(SessionStatus.INITIALIZING),
                StatusChanged(SessionStatus.TERMINATED),
            ]
        )

        await StatusWatcher(store, runtime, session_id, "node-1").run()

        assert store.writes == [SessionStatus.ACTIVE, SessionStatus.TERMINATED]

    @pytest.mark.asyncio
    async def test_feed_error_stops(self, project_id: UUID):
        store = RecordingStore()
        session_id = await _record(store, project_id)
        runtime = FakeRuntime(
            events=[
                StatusChanged(SessionStatus.ACTIVE),
                WatchFailed(InternalError("poll failed")),
                StatusChanged(SessionStatus.TERMINATED),
            ]
        )

        final = await StatusWatcher(store, runtime, session_id, "node-1").run()

        assert final is SessionStatus.ACTIVE
        assert store.writes == [SessionStatus.ACTIVE]
        assert runtime.closed == 1

    @pytest.mark.asyncio
    async def test_write_failure_stops(self, project_id: UUID):
        store = RecordingStore(fail_on=SessionStatus.ACTIVE)
        session_id = await _record(store, project_id)
        runtime = FakeRuntime(
            events=[StatusChanged(SessionStatus.ACTIVE), StatusChanged(SessionStatus.TERMINATED)]
        )

        final = await StatusWatcher(store, runtime, session_id, "node-1").run()

        assert final is SessionStatus.INITIALIZING
        assert store.writes == []
        assert runtime.consumed == 1

    @pytest.mark.asyncio
    async def test_done_without_terminal(self, store: MemoryStore, project_id: UUID):
        session_id = await _record(store, project_id)
        runtime = FakeRuntime(events=[StatusChanged(SessionStatus.ACTIVE), WatchDone()])

        final = await StatusWatcher(store, runtime, session_id, "node-1").run()

        assert final is SessionStatus.ACTIVE


class TestServiceWatch:
    @pytest.mark.asyncio
    async def test_runs_to_terminal(self, store: MemoryStore, project_id: UUID):
        session_id = await _record(store, project_id)
        runtime = FakeRuntime(
            events=[StatusChanged(SessionStatus.ACTIVE), StatusChanged(SessionStatus.TERMINATED)]
        )
        service = _service(store, runtime)

        handle = await service.watch(session_id)

        assert await handle.wait() is SessionStatus.TERMINATED
        record = await store.get_session(session_id)
        assert record.status is SessionStatus.TERMINATED
        assert record.ready_at is not None

    @pytest.mark.asyncio
    async def test_single_watcher_per_session(self, store: MemoryStore, project_id: UUID):
        session_id = await _record(store, project_id)
        runtime = FakeRuntime(events=[StatusChanged(SessionStatus.ACTIVE)], block=True)
        service = _service(store, runtime)

        first = await service.watch(session_id)
        second = await service.watch(session_id)
        await asyncio.sleep(0)

        assert first is second
        assert service.watcher(session_id) is first

        await service.close()
        assert await first.wait() is None
        assert runtime.closed == 1

    @pytest.mark.asyncio
    async def test_terminated_session_is_not_watched(self, store: MemoryStore, project_id: UUID):
        session_id = await _record(store, project_id)
        await store.update_session_status(session_id, SessionStatus.TERMINATED)
        runtime = FakeRuntime(events=[StatusChanged(SessionStatus.ACTIVE)])
        service = _service(store, runtime)

        handle = await service.watch(session_id)

        assert await handle.wait() is SessionStatus.TERMINATED
        assert runtime.consumed == 0

    @pytest.mark.asyncio
    async def test_terminate_cancels_watcher(
        self, store: MemoryStore, account_id: UUID, project_id: UUID, public_key: str
    ):
        runtime = FakeRuntime(block=True)
        service = _service(store, runtime)
        session = await service.create(account_id, project_id, _params(public_key))
        handle = await service.watch(session.id)
        await asyncio.sleep(0)

        await service.terminate(session.id)

        assert await handle.wait() is None
        assert service.watcher(session.id) is None
        assert (await store.get_session(session.id)).status is SessionStatus.TERMINATED


class TestUnexpectedFailures:
    @pytest.mark.asyncio
    async def test_foreign_feed_exception_stops_watcher(self, project_id: UUID):
        store = RecordingStore()
        session_id = await _record(store, project_id)
        runtime = FakeRuntime(events=[StatusChanged(SessionStatus.ACTIVE)])
        runtime.watch_error = KeyError("status")

        final = await StatusWatcher(store, runtime, session_id, "node-1").run()

        assert final is SessionStatus.ACTIVE
        assert store.writes == [SessionStatus.ACTIVE]
        assert runtime.closed == 1

    @pytest.mark.asyncio
    async def test_crashed_task_waits_to_none(self):
        async def crash() -> SessionStatus:
            raise TypeError("'NoneType' object is not subscriptable")

        handle = WatchHandle(uuid.uuid4(), asyncio.create_task(crash()))

        assert await handle.wait() is None

    @pytest.mark.asyncio
    async def test_service_close_after_feed_crash(self, store: MemoryStore, project_id: UUID):
        session_id = await _record(store, project_id)
        runtime = FakeRuntime()
        runtime.watch_error = TypeError("bad payload")
        service = _service(store, runtime)

        handle = await service.watch(session_id)

        assert await handle.wait() is SessionStatus.INITIALIZING
        await service.close()
        assert runtime.closed == 1
