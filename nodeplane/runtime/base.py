from __future__ import annotations

from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Protocol, runtime_checkable, TypeAlias

from nodeplane.errors import Error
from nodeplane.types import Node, NodeType, RuntimeProvider, SessionStatus, SSHKey

# ─── Watch events ────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class StatusChanged:
    status: SessionStatus


@dataclass(frozen=True, slots=True)
class WatchFailed:
    error: Error


@dataclass(frozen=True, slots=True)
class WatchDone:
    pass


WatchEvent: TypeAlias = StatusChanged | WatchFailed | WatchDone


# ─── Runtime contract ────────────────────────────────────────────────


@runtime_checkable
class Runtime(Protocol):
    """Uniform interface to one cloud provider.

    Implemented once per vendor. Every method raises ``nodeplane.errors.Error``
    subclasses only; vendor wire errors never escape an implementation.
    """

    @property
    def provider(self) -> RuntimeProvider:
        """The vendor this runtime talks to."""
        ...

    async def list_ssh_keys(self) -> list[SSHKey]:
        """List keys registered in the provider's own key store.

        Returns
        -------
        list[SSHKey]
            Provider-side keys. ``private_key`` is never set.
        """
        ...

    async def add_ssh_key(self, key: SSHKey) -> SSHKey:
        """Register a key with the provider, idempotently.

        A key with the same name and public key is returned as is. A key
        with the same name but a different public key is a
        ``BadRequestError``. A key with the same public key under another
        name is returned instead of creating a duplicate.
        """
        ...

    async def list_node_types(self) -> list[NodeType]:
        """Query the live catalog. Region availability is advisory."""
        ...

    async def init_node(
        self, ssh_key: SSHKey, node_type_id: str, region: str | None = None
    ) -> Node:
        """Launch a node.

        Parameters
        ----------
        ssh_key
            Key already registered with the provider.
        node_type_id
            Catalog id of the node type.
        region
            Target region. When omitted, the first region currently
            reporting capacity for ``node_type_id`` is used, and
            ``CapacityExhaustedError`` is raised if there is none.
        """
        ...

    async def terminate_node(self, node_id: str) -> None:
        """Terminate a node. Idempotency depends on the vendor."""
        ...

    def watch(self, node_id: str) -> AsyncGenerator[WatchEvent, None]:
        """Stream status transitions of a node.

        The stream is finite: it ends with ``WatchDone`` after a terminal
        status or with ``WatchFailed`` on the first error. Closing the
        iterator stops the underlying polling. Each call starts an
        independent stream.
        """
        ...

    async def aclose(self) -> None:
        """Release transport resources held by the runtime."""
        ...


__all__ = ["Runtime", "StatusChanged", "WatchDone", "WatchEvent", "WatchFailed"]
