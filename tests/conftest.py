from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncGenerator, Iterable
from uuid import UUID

import pytest

from nodeplane.credentials import generate_key_pair
from nodeplane.runtime.base import WatchEvent
from nodeplane.store import MemoryStore
from nodeplane.types import Node, NodeType, RuntimeProvider, SessionStatus, SSHKey


class FakeRuntime:
    """In-memory ``Runtime`` that records calls and replays a scripted watch feed."""

    def __init__(
        self,
        provider: RuntimeProvider = RuntimeProvider.LAMBDALABS,
        *,
        events: Iterable[WatchEvent] = (),
        node_types: Iterable[NodeType] = (),
        keys: Iterable[SSHKey] = (),
        block: bool = False,
    ) -> None:
        self._provider = provider
        self.events = list(events)
        self.node_types = list(node_types)
        self.keys = list(keys)
        self.block = block
        self.calls: list[str] = []
        self.terminated: list[str] = []
        self.init_error: BaseException | None = None
        self.terminate_error: BaseException | None = None
        self.watch_error: BaseException | None = None
        self.consumed = 0
        self.closed = 0
        self._nodes = 0

    @property
    def provider(self) -> RuntimeProvider:
        return self._provider

    async def list_ssh_keys(self) -> list[SSHKey]:
        self.calls.append("list_ssh_keys")
        return list(self.keys)

    async def add_ssh_key(self, key: SSHKey) -> SSHKey:
        self.calls.append("add_ssh_key")
        self.keys.append(key)
        return key

    async def list_node_types(self) -> list[NodeType]:
        self.calls.append("list_node_types")
        return list(self.node_types)

    async def init_node(
        self, ssh_key: SSHKey, node_type_id: str, region: str | None = None
    ) -> Node:
        self.calls.append("init_node")
        if self.init_error is not None:
            raise self.init_error
        self._nodes += 1
        return Node(
            id=f"node-{self._nodes}",
            type_id=node_type_id,
            region=region or "us-east-1",
            ssh_key=ssh_key,
            status=SessionStatus.INITIALIZING,
            provider=self._provider,
        )

    async def terminate_node(self, node_id: str) -> None:
        self.calls.append("terminate_node")
        if self.terminate_error is not None:
            raise self.terminate_error
        self.terminated.append(node_id)

    async def watch(self, node_id: str) -> AsyncGenerator[WatchEvent, None]:
        for event in self.events:
            self.consumed += 1
            yield event
        if self.watch_error is not None:
            raise self.watch_error
        if self.block:
            await asyncio.Event().wait()

    async def aclose(self) -> None:
        self.closed += 1


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def account_id() -> UUID:
    return uuid.uuid4()


@pytest.fixture
def project_id() -> UUID:
    return uuid.uuid4()


@pytest.fixture(scope="session")
def key_pair() -> tuple[str, str]:
    """(private, public) ed25519 pair, public already in canonical form."""
    return generate_key_pair()


@pytest.fixture
def public_key(key_pair: tuple[str, str]) -> str:
    return key_pair[1]
