from __future__ import annotations

from uuid import UUID

import pytest

from nodeplane.credentials import (
    fetch_credentials,
    generate_key_pair,
    normalize_public_key,
    register_credentials,
)
from nodeplane.errors import BadRequestError, InternalError, UnauthorizedError
from nodeplane.store import MemoryStore, SSHKeyRecord, StoreError
from nodeplane.types import SSHKey

from tests.conftest import FakeRuntime

pytestmark = [pytest.mark.unit]


class CountingStore(MemoryStore):
    def __init__(self) -> None:
        super().__init__()
        self.by_public_key = 0

    async def get_ssh_key_by_public_key(self, owner_id: UUID, public_key: str) -> SSHKeyRecord:
        self.by_public_key += 1
        return await super().get_ssh_key_by_public_key(owner_id, public_key)


class BrokenStore(MemoryStore):
    async def get_ssh_key_by_name(self, owner_id: UUID, name: str) -> SSHKeyRecord:
        raise StoreError("connection reset")


class TestNormalize:
    def test_drops_comment_and_whitespace(self, public_key: str):
        assert normalize_public_key(f"  {public_key} me@laptop \n") == public_key

    def test_invalid(self):
        with pytest.raises(BadRequestError, match="Invalid SSH public key"):
            normalize_public_key("ssh-rsa not-a-key")

    def test_generated_pair_is_canonical(self):
        private, public = generate_key_pair(comment="np:test")
        assert "PRIVATE KEY" in private
        assert public.startswith("ssh-ed25519 ")
        assert normalize_public_key(public) == public


class TestFetchCredentials:
    @pytest.mark.asyncio
    async def test_requires_name_or_key(self, store: MemoryStore, account_id: UUID):
        with pytest.raises(BadRequestError):
            await fetch_credentials(store, account_id)

    @pytest.mark.asyncio
    async def test_name_match_skips_public_key_lookup(self, account_id: UUID, public_key: str):
        store = CountingStore()
        await store.add_ssh_key(account_id, "laptop", public_key)
        _, other_key = generate_key_pair()

        key = await fetch_credentials(store, account_id, "laptop", other_key)

        assert key.name == "laptop"
        assert key.public_key == public_key
        assert store.by_public_key == 0

    @pytest.mark.asyncio
    async def test_unknown_name_without_key(self, store: MemoryStore, account_id: UUID):
        with pytest.raises(BadRequestError, match="SSH key not found"):
            await fetch_credentials(store, account_id, "missing")

    @pytest.mark.asyncio
    async def test_matches_canonical_public_key(
        self, store: MemoryStore, account_id: UUID, public_key: str
    ):
        await store.add_ssh_key(account_id, "laptop", public_key)

        key = await fetch_credentials(store, account_id, public_key=f"{public_key} me@host")

        assert key.name == "laptop"
        assert len(store.ssh_keys) == 1

    @pytest.mark.asyncio
    async def test_creates_with_given_name(
        self, store: MemoryStore, account_id: UUID, public_key: str
    ):
        key = await fetch_credentials(store, account_id, "desktop", f"{public_key} comment")

        assert key.name == "desktop"
        assert key.public_key == public_key
        assert (await store.get_ssh_key_by_name(account_id, "desktop")).public_key == public_key

    @pytest.mark.asyncio
    async def test_creates_with_generated_name(
        self, store: MemoryStore, account_id: UUID, public_key: str
    ):
        key = await fetch_credentials(store, account_id, public_key=public_key)
        assert key.name.startswith("np:")

    @pytest.mark.asyncio
    async def test_invalid_public_key(self, store: MemoryStore, account_id: UUID):
        with pytest.raises(BadRequestError):
            await fetch_credentials(store, account_id, public_key="garbage")

    @pytest.mark.asyncio
    async def test_store_failure(self, account_id: UUID, public_key: str):
        with pytest.raises(InternalError):
            await fetch_credentials(BrokenStore(), account_id, "laptop", public_key)


class TestRegisterCredentials:
    @pytest.mark.asyncio
    async def test_skips_known_name(self, public_key: str):
        runtime = FakeRuntime(keys=[SSHKey(name="laptop", public_key=public_key)])
        await register_credentials(runtime, SSHKey(name="laptop", public_key=public_key))
        assert runtime.calls == ["list_ssh_keys"]

    @pytest.mark.asyncio
    async def test_adds_missing(self, runtime: FakeRuntime, public_key: str):
        await register_credentials(runtime, SSHKey(name="laptop", public_key=public_key))
        assert runtime.calls == ["list_ssh_keys", "add_ssh_key"]
        assert [k.name for k in runtime.keys] == ["laptop"]

    @pytest.mark.asyncio
    async def test_failure_carries_context(self, public_key: str):
        class Rejecting(FakeRuntime):
            async def add_ssh_key(self, key: SSHKey) -> SSHKey:
                raise UnauthorizedError("bad api key")

        with pytest.raises(UnauthorizedError) as exc_info:
            await register_credentials(Rejecting(), SSHKey(name="laptop", public_key=public_key))
        assert "failed to add ssh key to provider" in exc_info.value.__notes__
