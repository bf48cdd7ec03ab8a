"""Account SSH key management.

Keys added here are stored for the account only. They are registered with
a provider lazily, the first time a session is created with them.
"""

from __future__ import annotations

from uuid import UUID

from loguru import logger

from nodeplane.credentials import generate_key_name, generate_key_pair, normalize_public_key
from nodeplane.errors import BadRequestError, InternalError
from nodeplane.store import DuplicateRecord, SSHKeyRecord, Store, StoreError
from nodeplane.types import SSHKey

log = logger.bind(component="ssh_keys")


class SSHKeyService:
    def __init__(self, store: Store) -> None:
        self._store = store

    async def _save(self, account_id: UUID, name: str, public_key: str) -> SSHKeyRecord:
        try:
            return await self._store.add_ssh_key(account_id, name, public_key)
        except DuplicateRecord as e:
            raise BadRequestError(
                "SSH key already exists",
                suggestion="Use a different name or public key",
                cause=e,
            ) from e
        except StoreError as e:
            raise InternalError("Failed to save SSH key", cause=e) from e

    async def add(self, account_id: UUID, public_key: str, name: str | None = None) -> SSHKey:
        canonical = normalize_public_key(public_key)
        name = name or generate_key_name()
        record = await self._save(account_id, name, canonical)
        log.info("Added SSH key {name!r}", name=name)
        return SSHKey(name=record.name, public_key=record.public_key, created_at=record.created_at)

    async def generate(self, account_id: UUID, name: str | None = None) -> SSHKey:
        """Create a new key pair for the account.

        The returned value is the only place the private key ever appears.
        """
        name = name or generate_key_name()
        private_key, public_key = generate_key_pair(comment=name)
        record = await self._save(account_id, name, public_key)
        log.info("Generated SSH key {name!r}", name=name)
        return SSHKey(
            name=record.name,
            public_key=record.public_key,
            private_key=private_key,
            created_at=record.created_at,
        )

    async def list(self, account_id: UUID) -> list[SSHKey]:
        try:
            records = await self._store.list_ssh_keys(account_id)
        except StoreError as e:
            raise InternalError("Failed to list SSH keys", cause=e) from e
        return [
            SSHKey(name=r.name, public_key=r.public_key, created_at=r.created_at) for r in records
        ]


__all__ = ["SSHKeyService"]
