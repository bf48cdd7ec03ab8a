"""Persistence port.

Services consume the ``Store`` protocol; the relational schema and query
layer behind it are owned elsewhere. ``MemoryStore`` is a complete
in-process implementation used for development and tests.

All lookups are scoped by owner where the record has one. Missing rows
raise ``RecordNotFound``; uniqueness violations raise ``DuplicateRecord``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol, runtime_checkable
from uuid import UUID

from nodeplane.types import SessionStatus, utcnow


class StoreError(Exception):
    """Base class for persistence failures."""


class RecordNotFound(StoreError, LookupError):
    pass


class DuplicateRecord(StoreError):
    pass


# =============================================================================
# Records
# =============================================================================


@dataclass(frozen=True, slots=True)
class ProjectRecord:
    id: UUID
    name: str
    owner_id: UUID


@dataclass(frozen=True, slots=True)
class SSHKeyRecord:
    id: UUID
    name: str
    owner_id: UUID
    created_at: datetime
    public_key: str


@dataclass(frozen=True, slots=True)
class SessionRecord:
    id: UUID
    node_id: str
    created_by: UUID
    created_at: datetime
    project_id: UUID
    provider: str
    region: str
    node_type_id: str
    ssh_key_name: str
    name: str
    status: SessionStatus = SessionStatus.INITIALIZING
    ready_at: datetime | None = None
    exited_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class BuildRecord:
    id: str
    project_id: UUID
    created_by: UUID
    builder: str
    status: str
    created_at: datetime


# =============================================================================
# Port
# =============================================================================


@runtime_checkable
class Store(Protocol):
    async def create_project(self, name: str, owner_id: UUID) -> ProjectRecord: ...

    async def get_project(self, project_id: UUID) -> ProjectRecord: ...

    async def create_session(
        self,
        *,
        node_id: str,
        created_by: UUID,
        project_id: UUID,
        provider: str,
        region: str,
        node_type_id: str,
        ssh_key_name: str,
        name: str,
    ) -> SessionRecord: ...

    async def get_session(self, session_id: UUID) -> SessionRecord: ...

    async def update_session_status(
        self, session_id: UUID, status: SessionStatus, at: datetime | None = None
    ) -> bool:
        """Set the status of a session.

        Stamps ``ready_at`` when moving to active and ``exited_at`` when
        moving to terminated. A terminated row is never changed; returns
        whether the write was applied.
        """
        ...

    async def list_sessions(
        self, project_id: UUID, *, limit: int = 100, offset: int = 0
    ) -> list[SessionRecord]:
        """Sessions of a project, newest first."""
        ...

    async def add_ssh_key(self, owner_id: UUID, name: str, public_key: str) -> SSHKeyRecord: ...

    async def get_ssh_key_by_name(self, owner_id: UUID, name: str) -> SSHKeyRecord: ...

    async def get_ssh_key_by_public_key(self, owner_id: UUID, public_key: str) -> SSHKeyRecord: ...

    async def list_ssh_keys(self, owner_id: UUID) -> list[SSHKeyRecord]: ...

    async def create_build(self, *, project_id: UUID, created_by: UUID, builder: str) -> BuildRecord: ...

    async def get_build(self, build_id: str) -> BuildRecord: ...

    async def update_build_status(self, build_id: str, status: str) -> None: ...


# =============================================================================
# In-memory implementation
# =============================================================================


class MemoryStore:
    """Dict-backed ``Store``.

    Safe for concurrent use from a single event loop: no method awaits
    between reading and writing a record.
    """

    def __init__(self) -> None:
        self.projects: dict[UUID, ProjectRecord] = {}
        self.sessions: dict[UUID, SessionRecord] = {}
        self.ssh_keys: dict[UUID, SSHKeyRecord] = {}
        self.builds: dict[str, BuildRecord] = {}

    # ─── Projects ────────────────────────────────────────────────────

    async def create_project(self, name: str, owner_id: UUID) -> ProjectRecord:
        record = ProjectRecord(id=uuid.uuid4(), name=name, owner_id=owner_id)
        self.projects[record.id] = record
        return record

    async def get_project(self, project_id: UUID) -> ProjectRecord:
        try:
            return self.projects[project_id]
        except KeyError:
            raise RecordNotFound(f"project {project_id}") from None

    # ─── Sessions ────────────────────────────────────────────────────

    async def create_session(
        self,
        *,
        node_id: str,
        created_by: UUID,
        project_id: UUID,
        provider: str,
        region: str,
        node_type_id: str,
        ssh_key_name: str,
        name: str,
    ) -> SessionRecord:
        record = SessionRecord(
            id=uuid.uuid4(),
            node_id=node_id,
            created_by=created_by,
            created_at=utcnow(),
            project_id=project_id,
            provider=provider,
            region=region,
            node_type_id=node_type_id,
            ssh_key_name=ssh_key_name,
            name=name,
        )
        self.sessions[record.id] = record
        return record

    async def get_session(self, session_id: UUID) -> SessionRecord:
        try:
            return self.sessions[session_id]
        except KeyError:
            raise RecordNotFound(f"session {session_id}") from None

    async def update_session_status(
        self, session_id: UUID, status: SessionStatus, at: datetime | None = None
    ) -> bool:
        record = await self.get_session(session_id)
        if record.status.is_terminal:
            return False
        at = at or utcnow()
        match status:
            case SessionStatus.ACTIVE:
                record = replace(record, status=status, ready_at=record.ready_at or at)
            case SessionStatus.TERMINATED:
                record = replace(record, status=status, exited_at=at)
            case _:
                record = replace(record, status=status)
        self.sessions[session_id] = record
        return True

    async def list_sessions(
        self, project_id: UUID, *, limit: int = 100, offset: int = 0
    ) -> list[SessionRecord]:
        rows = [s for s in self.sessions.values() if s.project_id == project_id]
        rows.sort(key=lambda s: s.created_at, reverse=True)
        return rows[offset : offset + limit]

    # ─── SSH keys ────────────────────────────────────────────────────

    async def add_ssh_key(self, owner_id: UUID, name: str, public_key: str) -> SSHKeyRecord:
        for key in self.ssh_keys.values():
            if key.owner_id != owner_id:
                continue
            if key.name == name:
                raise DuplicateRecord(f"ssh key name {name!r} already exists")
            if key.public_key == public_key:
                raise DuplicateRecord(f"public key already registered as {key.name!r}")
        record = SSHKeyRecord(
            id=uuid.uuid4(),
            name=name,
            owner_id=owner_id,
            created_at=utcnow(),
            public_key=public_key,
        )
        self.ssh_keys[record.id] = record
        return record

    async def get_ssh_key_by_name(self, owner_id: UUID, name: str) -> SSHKeyRecord:
        for key in self.ssh_keys.values():
            if key.owner_id == owner_id and key.name == name:
                return key
        raise RecordNotFound(f"ssh key {name!r}")

    async def get_ssh_key_by_public_key(self, owner_id: UUID, public_key: str) -> SSHKeyRecord:
        for key in self.ssh_keys.values():
            if key.owner_id == owner_id and key.public_key == public_key:
                return key
        raise RecordNotFound("ssh key with public key")

    async def list_ssh_keys(self, owner_id: UUID) -> list[SSHKeyRecord]:
        keys = [k for k in self.ssh_keys.values() if k.owner_id == owner_id]
        return sorted(keys, key=lambda k: k.created_at)

    # ─── Builds ──────────────────────────────────────────────────────

    async def create_build(self, *, project_id: UUID, created_by: UUID, builder: str) -> BuildRecord:
        record = BuildRecord(
            id=uuid.uuid4().hex,
            project_id=project_id,
            created_by=created_by,
            builder=builder,
            status="initializing",
            created_at=utcnow(),
        )
        self.builds[record.id] = record
        return record

    async def get_build(self, build_id: str) -> BuildRecord:
        try:
            return self.builds[build_id]
        except KeyError:
            raise RecordNotFound(f"build {build_id}") from None

    async def update_build_status(self, build_id: str, status: str) -> None:
        record = await self.get_build(build_id)
        self.builds[build_id] = replace(record, status=status)


__all__ = [
    "BuildRecord",
    "DuplicateRecord",
    "MemoryStore",
    "ProjectRecord",
    "RecordNotFound",
    "SSHKeyRecord",
    "SessionRecord",
    "Store",
    "StoreError",
]
