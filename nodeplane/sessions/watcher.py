"""Background reconciliation of provider node status into session records."""

from __future__ import annotations

import asyncio
from contextlib import aclosing
from dataclasses import dataclass, field
from uuid import UUID

from loguru import logger

from nodeplane.errors import Error
from nodeplane.runtime.base import Runtime, StatusChanged, WatchDone, WatchFailed
from nodeplane.store import Store
from nodeplane.types import SessionStatus


class StatusWatcher:
    """Consumes a runtime's watch feed and persists each transition.

    Transitions are written in feed order. Backward transitions are
    ignored. The watcher stops on the first terminal status, on a feed
    error, on a failed write, or when cancelled, and always closes the feed
    and the runtime it was given.
    """

    def __init__(
        self,
        store: Store,
        runtime: Runtime,
        session_id: UUID,
        node_id: str,
        status: SessionStatus = SessionStatus.INITIALIZING,
    ) -> None:
        self._store = store
        self._runtime = runtime
        self._session_id = session_id
        self._node_id = node_id
        self._status = status
        self._log = logger.bind(
            component="watcher",
            session_id=str(session_id),
            node_id=node_id,
            provider=runtime.provider.value,
        )

    @property
    def status(self) -> SessionStatus:
        """Last status persisted (or the initial one)."""
        return self._status

    async def run(self) -> SessionStatus:
        self._log.info("Starting to watch session")
        try:
            async with aclosing(self._runtime.watch(self._node_id)) as feed:
                async for event in feed:
                    match event:
                        case StatusChanged(status=status):
                            if not await self._apply(status):
                                break
                        case WatchFailed(error=err):
                            self._log.error("Failed to watch session: {err}", err=err)
                            break
                        case WatchDone():
                            break
        except Error as e:
            self._log.error("Failed to watch session: {err}", err=e)
        except Exception as e:
            self._log.opt(exception=e).error("Watch feed crashed: {err!r}", err=e)
        finally:
            await self._runtime.aclose()
            self._log.info("Stopped watching session at {status}", status=self._status.value)
        return self._status

    async def _apply(self, status: SessionStatus) -> bool:
        """Persist ``status``; return whether to keep watching."""
        if status.is_behind(self._status):
            self._log.warning(
                "Ignoring backward transition {old} -> {new}",
                old=self._status.value, new=status.value,
            )
            return True

        self._log.info("Session status changed to {status}", status=status.value)
        try:
            await self._store.update_session_status(self._session_id, status)
        except Exception as e:
            self._log.error("Failed to update session status: {err}", err=e)
            return False
        self._status = status
        return not status.is_terminal


@dataclass(eq=False)
class WatchHandle:
    """Handle on a running watcher task."""

    session_id: UUID
    task: asyncio.Task[SessionStatus] = field(repr=False)

    def cancel(self) -> None:
        self.task.cancel()

    def done(self) -> bool:
        return self.task.done()

    async def wait(self) -> SessionStatus | None:
        """Wait for the watcher to stop; ``None`` if it was cancelled or crashed."""
        await asyncio.wait({self.task})
        if self.task.cancelled():
            return None
        if (exc := self.task.exception()) is not None:
            logger.bind(component="watcher", session_id=str(self.session_id)).opt(
                exception=exc
            ).error("Watcher stopped with an unexpected error: {err!r}", err=exc)
            return None
        return self.task.result()


__all__ = ["StatusWatcher", "WatchHandle"]
