"""Container image build ports and build log storage.

The build subsystem itself is external: ``Builder`` and ``LogDriver`` are
the contracts it is consumed through. Stored logs are wrapped in a
versioned envelope, ``{"version": 1, "logs": [...]}``, so the reading path
can evolve without breaking logs written by older versions.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from loguru import logger

from nodeplane.errors import Error, InternalError, NotFoundError
from nodeplane.store import RecordNotFound, Store

LOGS_VERSION = 1

log = logger.bind(component="builder")


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: datetime
    message: str
    level: str = "info"

    def to_dict(self) -> dict[str, Any]:
        return {**asdict(self), "timestamp": self.timestamp.isoformat()}

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> LogEntry:
        return cls(
            timestamp=datetime.fromisoformat(raw["timestamp"]),
            message=raw["message"],
            level=raw.get("level", "info"),
        )


def encode_logs(entries: list[LogEntry]) -> bytes:
    return json.dumps(
        {"version": LOGS_VERSION, "logs": [e.to_dict() for e in entries]}
    ).encode()


def decode_logs(data: bytes) -> list[LogEntry]:
    try:
        envelope = json.loads(data)
    except ValueError as e:
        raise InternalError("Failed to read build logs", cause=e) from e

    match envelope:
        case {"version": 1, "logs": list(raw)}:
            return [LogEntry.from_dict(r) for r in raw]
        case {"version": version}:
            raise InternalError(f"Unsupported build logs version: {version}")
        case _:
            raise InternalError("Failed to read build logs: missing version")


@runtime_checkable
class LogDriver(Protocol):
    async def get_logs(self, build_id: str) -> list[LogEntry]:
        """Logs of a finished build. Raises ``NotFoundError`` if none are stored."""
        ...

    async def save_logs(self, build_id: str, logs: list[LogEntry]) -> None:
        """Save the logs of a build in long term storage."""
        ...


@runtime_checkable
class Builder(Protocol):
    @property
    def builder(self) -> str:
        """Name of the build backend, e.g. ``docker``."""
        ...

    async def build(self, build_id: str, context: bytes) -> None:
        """Build an image from a zipped build context."""
        ...

    async def logs(self, build_id: str) -> list[LogEntry]: ...

    async def push(self, build_id: str, namespace: str, repo: str) -> None:
        """Push the image tagged ``build_id`` to the registry."""
        ...


class MemoryLogDriver:
    """Keeps encoded log envelopes in a dict."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}

    async def get_logs(self, build_id: str) -> list[LogEntry]:
        blob = self.blobs.get(build_id)
        if blob is None:
            raise NotFoundError(f"No logs stored for build {build_id}")
        return decode_logs(blob)

    async def save_logs(self, build_id: str, logs: list[LogEntry]) -> None:
        self.blobs[build_id] = encode_logs(logs)


@dataclass(frozen=True, slots=True)
class BuildInfo:
    id: str
    status: str
    logs: list[LogEntry] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "buildID": self.id,
            "status": self.status,
            "logs": [e.to_dict() for e in self.logs] if self.logs is not None else None,
        }


class BuildService:
    def __init__(self, store: Store, builder: Builder, log_driver: LogDriver) -> None:
        self._store = store
        self._builder = builder
        self._log_driver = log_driver

    async def create(self, account_id: UUID, project_id: UUID, context: bytes) -> str:
        """Run a build and store its logs. Returns the build id."""
        record = await self._store.create_build(
            project_id=project_id, created_by=account_id, builder=self._builder.builder
        )
        blog = log.bind(build_id=record.id, project_id=str(project_id))
        blog.info("Building image with {builder}", builder=self._builder.builder)

        await self._store.update_build_status(record.id, "building")
        try:
            await self._builder.build(record.id, context)
        except Exception as e:
            blog.warning("Build failed: {err}", err=e)
            await self._store.update_build_status(record.id, "failed")
            await self._save_logs(record.id)
            if isinstance(e, Error):
                e.add_note("failed to build image")
                raise
            raise InternalError("Failed to build image", cause=e) from e

        await self._store.update_build_status(record.id, "success")
        await self._save_logs(record.id)
        return record.id

    async def _save_logs(self, build_id: str) -> None:
        entries = await self._builder.logs(build_id)
        await self._log_driver.save_logs(build_id, entries)

    async def get(self, build_id: str, logs: bool = False) -> BuildInfo:
        try:
            record = await self._store.get_build(build_id)
        except RecordNotFound:
            raise NotFoundError("Build not found") from None

        entries: list[LogEntry] | None = None
        if logs:
            try:
                entries = await self._log_driver.get_logs(build_id)
            except NotFoundError:
                entries = await self._builder.logs(build_id)
        return BuildInfo(id=record.id, status=record.status, logs=entries)


__all__ = [
    "BuildInfo",
    "BuildService",
    "Builder",
    "LOGS_VERSION",
    "LogDriver",
    "LogEntry",
    "MemoryLogDriver",
    "decode_logs",
    "encode_logs",
]
