"""Session lifecycle orchestration.

A session moves ``initializing -> active -> terminated``. ``create``
provisions a node and records the session; a ``StatusWatcher`` task then
reconciles provider-reported status into the store until the node is
terminated. ``terminate`` tears the node down and marks the record.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable
from contextlib import aclosing
from typing import TypeVar
from uuid import UUID

from loguru import logger

from nodeplane.credentials import fetch_credentials, register_credentials
from nodeplane.errors import Error, InternalError, NotFoundError
from nodeplane.runtime.base import Runtime
from nodeplane.runtime.initializer import Initializer
from nodeplane.store import RecordNotFound, SessionRecord, Store
from nodeplane.types import (
    RuntimeProvider,
    Session,
    SessionCreateParams,
    SessionStatus,
    SSHKey,
)
from nodeplane.utils.names import random_phrase

from .watcher import StatusWatcher, WatchHandle

LIST_PAGE_SIZE = 100

T = TypeVar("T")


async def _step(aw: Awaitable[T], note: str) -> T:
    """Await ``aw``, attaching ``note`` as operation context to any failure."""
    try:
        return await aw
    except Error as e:
        e.add_note(note)
        raise
    except Exception as e:
        raise InternalError(note.capitalize(), cause=e) from e


async def _finished(status: SessionStatus) -> SessionStatus:
    return status


class SessionService:
    """Creates, watches, lists and terminates sessions.

    Holds no session state of its own beyond the live watcher handles; the
    store is the single source of truth.
    """

    def __init__(self, store: Store, initializer: Initializer) -> None:
        self._store = store
        self._initializer = initializer
        self._watchers: dict[UUID, WatchHandle] = {}
        self._watch_lock = asyncio.Lock()
        self._log = logger.bind(component="sessions")

    async def _runtime(self, account_id: UUID, provider: RuntimeProvider) -> Runtime:
        return await _step(
            self._initializer.initialize(account_id, provider),
            f"failed to create runtime {provider.value!r}",
        )

    async def _load(self, session_id: UUID, suggestion: str = "") -> SessionRecord:
        try:
            return await self._store.get_session(session_id)
        except RecordNotFound:
            raise NotFoundError("Session not found", suggestion=suggestion) from None
        except Exception as e:
            raise InternalError("Failed to get session", cause=e) from e

    async def _ssh_key(self, record: SessionRecord) -> SSHKey:
        try:
            key = await self._store.get_ssh_key_by_name(record.created_by, record.ssh_key_name)
        except RecordNotFound:
            return SSHKey(name=record.ssh_key_name)
        return SSHKey(name=key.name, public_key=key.public_key, created_at=key.created_at)

    @staticmethod
    def _to_session(record: SessionRecord, ssh_key: SSHKey) -> Session:
        return Session(
            id=record.id,
            account_id=record.created_by,
            project_id=record.project_id,
            node_id=record.node_id,
            provider=RuntimeProvider.parse(record.provider),
            region=record.region,
            node_type_id=record.node_type_id,
            ssh_key=ssh_key,
            status=record.status,
            created_at=record.created_at,
            name=record.name,
            ready_at=record.ready_at,
            exited_at=record.exited_at,
        )

    # =========================================================================
    # Create
    # =========================================================================

    async def create(
        self, account_id: UUID, project_id: UUID, params: SessionCreateParams
    ) -> Session:
        """Provision a node and record a new session in ``initializing``.

        Nothing is persisted unless credentials were resolved and the node
        was launched. If the final write fails the node stays up at the
        provider with no session referencing it; that is logged with the
        node id and the failure is raised.
        """
        log = self._log.bind(
            account_id=str(account_id),
            project_id=str(project_id),
            provider=params.provider.value,
        )
        runtime = await self._runtime(account_id, params.provider)

        async with aclosing(runtime):
            ssh_key = await _step(
                fetch_credentials(
                    self._store, account_id, params.ssh_key_name, params.ssh_public_key
                ),
                "failed to setup credentials",
            )
            await _step(register_credentials(runtime, ssh_key), "failed to register credentials")
            node = await _step(
                runtime.init_node(ssh_key, params.node_type_id, params.region),
                "failed to init node",
            )

        log.info("Node {node_id} launched in {region}", node_id=node.id, region=node.region)
        try:
            record = await self._store.create_session(
                node_id=node.id,
                created_by=account_id,
                project_id=project_id,
                provider=node.provider.value,
                region=node.region,
                node_type_id=node.type_id,
                ssh_key_name=ssh_key.name,
                name=random_phrase(4),
            )
        except Exception as e:
            log.error(
                "Node {node_id} was launched but the session could not be saved; "
                "the node is not tracked by any session",
                node_id=node.id,
            )
            raise InternalError("Failed to create session", cause=e) from e

        log.bind(session_id=str(record.id)).info("Session created")
        return self._to_session(record, node.ssh_key)

    # =========================================================================
    # Watch
    # =========================================================================

    async def watch(self, session_id: UUID) -> WatchHandle:
        """Start reconciling a session's node status in the background.

        Returns as soon as the watcher task is spawned. At most one watcher
        runs per session in this process: while one is live, its handle is
        returned instead of starting another.
        """
        async with self._watch_lock:
            existing = self._watchers.get(session_id)
            if existing is not None and not existing.done():
                return existing

            record = await self._load(session_id)
            if record.status.is_terminal:
                self._log.bind(session_id=str(session_id)).debug("Session already terminated")
                return WatchHandle(session_id, asyncio.create_task(_finished(record.status)))

            runtime = await self._runtime(record.created_by, RuntimeProvider.parse(record.provider))
            watcher = StatusWatcher(self._store, runtime, record.id, record.node_id, record.status)
            task = asyncio.create_task(watcher.run(), name=f"watch-session-{session_id}")
            handle = WatchHandle(session_id, task)
            self._watchers[session_id] = handle
            task.add_done_callback(lambda _t: self._forget(handle))
            return handle

    def _forget(self, handle: WatchHandle) -> None:
        if self._watchers.get(handle.session_id) is handle:
            del self._watchers[handle.session_id]

    def watcher(self, session_id: UUID) -> WatchHandle | None:
        """The live watcher for a session, if any."""
        return self._watchers.get(session_id)

    # =========================================================================
    # Read
    # =========================================================================

    async def get(self, session_id: UUID) -> Session:
        record = await self._load(session_id)
        return self._to_session(record, await self._ssh_key(record))

    async def list(self, project_id: UUID, include_terminated: bool = False) -> list[Session]:
        try:
            records = await self._store.list_sessions(project_id, limit=LIST_PAGE_SIZE, offset=0)
        except Exception as e:
            raise InternalError("Failed to list sessions", cause=e) from e

        return [
            self._to_session(r, SSHKey(name=r.ssh_key_name))
            for r in records
            if include_terminated or r.status is not SessionStatus.TERMINATED
        ]

    # =========================================================================
    # Terminate
    # =========================================================================

    async def terminate(self, session_id: UUID) -> None:
        """Terminate the session's node and mark the session terminated.

        Once the provider confirms termination the call succeeds; a failure
        to record the terminal status afterwards is only logged.
        """
        record = await self._load(session_id, suggestion="Make sure the session id is valid")
        provider = RuntimeProvider.parse(record.provider)
        log = self._log.bind(session_id=str(session_id), provider=provider.value)

        runtime = await self._runtime(record.created_by, provider)
        async with aclosing(runtime):
            await _step(runtime.terminate_node(record.node_id), "failed to terminate node")

        if (handle := self._watchers.pop(session_id, None)) is not None:
            handle.cancel()

        try:
            await self._store.update_session_status(session_id, SessionStatus.TERMINATED)
        except Exception as e:
            log.error("Failed to set session as terminated: {err}", err=e)
            return
        log.info("Session terminated")

    async def close(self) -> None:
        """Cancel every live watcher and wait for them to stop."""
        handles = list(self._watchers.values())
        for handle in handles:
            handle.cancel()
        for handle in handles:
            await handle.wait()


__all__ = ["SessionService"]
