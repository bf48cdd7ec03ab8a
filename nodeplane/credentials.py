"""SSH credential resolution.

Keys live in two places: the local store (the source of truth for an
account) and each provider's own key store. ``fetch_credentials`` finds or
creates the local record; ``register_credentials`` lazily mirrors it into a
provider right before a node is launched with it.
"""

from __future__ import annotations

from uuid import UUID

import asyncssh
from loguru import logger

from nodeplane.errors import BadRequestError, InternalError
from nodeplane.runtime.base import Runtime
from nodeplane.store import RecordNotFound, SSHKeyRecord, Store, StoreError
from nodeplane.types import SSHKey
from nodeplane.utils.names import random_phrase

log = logger.bind(component="credentials")


def normalize_public_key(public_key: str) -> str:
    """Parse an authorized-key line and re-serialize it as ``<type> <base64>``.

    Comments and surrounding whitespace are dropped so that the same key
    always has the same stored form.

    Raises:
        BadRequestError: The text is not a valid SSH public key.
    """
    try:
        key = asyncssh.import_public_key(public_key.strip())
    except (asyncssh.KeyImportError, ValueError) as e:
        raise BadRequestError("Invalid SSH public key", cause=e) from e
    exported = key.export_public_key("openssh").decode("ascii")
    return " ".join(exported.split()[:2])


def generate_key_pair(comment: str | None = None) -> tuple[str, str]:
    """Generate an ed25519 key pair.

    Returns:
        Tuple of (private_key, public_key), both in OpenSSH format. The
        public key is already normalized.
    """
    key = asyncssh.generate_private_key("ssh-ed25519", comment=comment)
    private = key.export_private_key("openssh").decode("ascii")
    public = key.export_public_key("openssh").decode("ascii")
    return private, " ".join(public.split()[:2])


def generate_key_name() -> str:
    return "np:" + random_phrase(4)


def _to_ssh_key(record: SSHKeyRecord) -> SSHKey:
    return SSHKey(name=record.name, public_key=record.public_key, created_at=record.created_at)


def _store_failure(e: StoreError) -> InternalError:
    return InternalError("Failed to get SSH key", cause=e)


async def fetch_credentials(
    store: Store,
    account_id: UUID,
    name: str | None = None,
    public_key: str | None = None,
) -> SSHKey:
    """Find or create the SSH key to use for a new session.

    Lookup order: exact name, then canonical public key. When neither
    matches and a public key was supplied, a new record is stored under
    ``name`` (or a generated name) and returned.

    Raises:
        BadRequestError: Neither name nor public key given, the public key
            is invalid, or the named key does not exist and no public key
            was given to create it.
        InternalError: The store failed.
    """
    if not name and not public_key:
        raise BadRequestError("Either Key name or Public Key must be provided")

    if name:
        try:
            return _to_ssh_key(await store.get_ssh_key_by_name(account_id, name))
        except RecordNotFound:
            pass
        except StoreError as e:
            raise _store_failure(e) from e

    if not public_key:
        raise BadRequestError(
            "SSH key not found",
            suggestion="Provide a public key to register it under this name",
        )

    canonical = normalize_public_key(public_key)
    try:
        return _to_ssh_key(await store.get_ssh_key_by_public_key(account_id, canonical))
    except RecordNotFound:
        pass
    except StoreError as e:
        raise _store_failure(e) from e

    name = name or generate_key_name()
    log.info("Saving new SSH key {name!r}", name=name)
    try:
        record = await store.add_ssh_key(account_id, name, canonical)
    except StoreError as e:
        raise InternalError("Failed to save SSH key", cause=e) from e
    return _to_ssh_key(record)


async def register_credentials(runtime: Runtime, key: SSHKey) -> None:
    """Ensure ``key`` exists in the provider's key store, by name."""
    try:
        provider_keys = await runtime.list_ssh_keys()
    except Exception as e:
        e.add_note("failed to list ssh keys from provider")
        raise
    if any(k.name == key.name for k in provider_keys):
        return

    log.info(
        "Registering SSH key {name!r} with {provider}",
        name=key.name, provider=runtime.provider.value,
    )
    try:
        await runtime.add_ssh_key(key)
    except Exception as e:
        e.add_note("failed to add ssh key to provider")
        raise


__all__ = [
    "fetch_credentials",
    "generate_key_name",
    "generate_key_pair",
    "normalize_public_key",
    "register_credentials",
]
