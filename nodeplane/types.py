"""Core domain types shared by the runtime, the services and the store.

All values are immutable. Providers build them from their wire types and
services pass them across the API boundary unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any
from uuid import UUID


class RuntimeProvider(StrEnum):
    """The platform a node is spawned on. This is where user code runs."""

    LAMBDALABS = "LambdaLabs"
    UNWEAVE = "Unweave"

    @classmethod
    def parse(cls, value: str) -> RuntimeProvider:
        from nodeplane.errors import BadRequestError

        try:
            return cls(value)
        except ValueError:
            raise BadRequestError(
                f"Invalid runtime provider: {value}",
                suggestion=_provider_suggestion(),
            ) from None


def _provider_suggestion() -> str:
    names = " or ".join(f"{p.value!r}" for p in RuntimeProvider)
    return f"Use {names} as the runtime provider"


class SessionStatus(StrEnum):
    INITIALIZING = "initializing"
    ACTIVE = "active"
    TERMINATED = "terminated"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER[self]

    @property
    def is_terminal(self) -> bool:
        return self is SessionStatus.TERMINATED

    def is_behind(self, other: SessionStatus) -> bool:
        """Whether this status comes strictly before ``other`` in the lifecycle."""
        return self.rank < other.rank


_STATUS_ORDER = {
    SessionStatus.INITIALIZING: 0,
    SessionStatus.ACTIVE: 1,
    SessionStatus.TERMINATED: 2,
}


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class SSHKey:
    """An SSH key pair.

    ``private_key`` is only ever set on the value returned by key
    generation. It is never persisted.
    """

    name: str
    public_key: str | None = None
    private_key: str | None = field(default=None, repr=False)
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name}
        if self.public_key is not None:
            data["publicKey"] = self.public_key
        if self.private_key is not None:
            data["privateKey"] = self.private_key
        if self.created_at is not None:
            data["createdAt"] = self.created_at.isoformat()
        return data


@dataclass(frozen=True, slots=True)
class NodeSpecs:
    vcpus: int
    memory: int  # GB
    gpu_memory: int | None = None  # GB

    def to_dict(self) -> dict[str, Any]:
        return {"vCPUs": self.vcpus, "memory": self.memory, "gpuMemory": self.gpu_memory}


@dataclass(frozen=True, slots=True)
class NodeType:
    """A provisionable hardware configuration from a provider catalog.

    ``regions`` lists the regions currently reporting capacity. It is
    advisory and may change before a node is launched.
    """

    id: str
    provider: RuntimeProvider
    specs: NodeSpecs
    name: str | None = None
    price: int | None = None  # cents per hour
    regions: tuple[str, ...] = ()
    description: str | None = None

    @property
    def available(self) -> bool:
        return bool(self.regions)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "price": self.price,
            "regions": list(self.regions),
            "description": self.description,
            "provider": self.provider.value,
            "specs": self.specs.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class Node:
    id: str
    type_id: str
    region: str
    ssh_key: SSHKey
    status: SessionStatus
    provider: RuntimeProvider


@dataclass(frozen=True, slots=True)
class Session:
    """User-facing lifecycle record for one provisioned node."""

    id: UUID
    account_id: UUID
    project_id: UUID
    node_id: str
    provider: RuntimeProvider
    region: str
    node_type_id: str
    ssh_key: SSHKey
    status: SessionStatus
    created_at: datetime
    name: str = ""
    ready_at: datetime | None = None
    exited_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "projectID": str(self.project_id),
            "sshKey": self.ssh_key.to_dict(),
            "runtimeStatus": self.status.value,
            "nodeTypeID": self.node_type_id,
            "region": self.region,
            "provider": self.provider.value,
            "createdAt": self.created_at.isoformat(),
            "readyAt": self.ready_at.isoformat() if self.ready_at else None,
            "exitedAt": self.exited_at.isoformat() if self.exited_at else None,
        }


@dataclass(frozen=True, slots=True)
class SessionCreateParams:
    provider: RuntimeProvider
    node_type_id: str
    region: str | None = None
    ssh_key_name: str | None = None
    ssh_public_key: str | None = None

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> SessionCreateParams:
        from nodeplane.errors import BadRequestError

        provider = raw.get("provider")
        if not provider:
            raise BadRequestError(
                "Invalid request body: field 'provider' is required",
                suggestion=_provider_suggestion(),
            )
        node_type_id = raw.get("nodeTypeID")
        if not node_type_id:
            raise BadRequestError("Invalid request body: field 'nodeTypeID' is required")
        return cls(
            provider=RuntimeProvider.parse(provider),
            node_type_id=node_type_id,
            region=raw.get("region") or None,
            ssh_key_name=raw.get("sshKeyName") or None,
            ssh_public_key=raw.get("sshPublicKey") or None,
        )


__all__ = [
    "Node",
    "NodeSpecs",
    "NodeType",
    "RuntimeProvider",
    "SSHKey",
    "Session",
    "SessionCreateParams",
    "SessionStatus",
    "utcnow",
]
