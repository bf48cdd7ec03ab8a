"""LambdaLabs runtime.

Implements the ``Runtime`` contract on top of the LambdaLabs REST API.

``terminate_node`` is not idempotent on this vendor: terminating an
instance that no longer exists surfaces the API's 400/404 as
``BadRequestError``/``NotFoundError``.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import AsyncGenerator
from typing import Self

from loguru import logger

from nodeplane.errors import BadRequestError, Error, InternalError
from nodeplane.infra.http import HttpError
from nodeplane.runtime.base import StatusChanged, WatchDone, WatchEvent, WatchFailed
from nodeplane.types import (
    Node,
    NodeSpecs,
    NodeType,
    RuntimeProvider,
    SessionStatus,
    SSHKey,
)
from nodeplane.utils.names import random_phrase

from . import errors
from .client import LambdaLabsClient
from .config import LambdaLabs
from .types import InstanceStatus, InstanceTypeEntry, LaunchRequest

_STATUS_MAP: dict[InstanceStatus, SessionStatus] = {
    "booting": SessionStatus.INITIALIZING,
    "active": SessionStatus.ACTIVE,
    "terminated": SessionStatus.TERMINATED,
}


def _key_body(public_key: str | None) -> str | None:
    """``<type> <base64>`` part of an authorized-key line, ignoring comments."""
    if not public_key:
        return None
    parts = public_key.split()
    return " ".join(parts[:2]) if len(parts) >= 2 else public_key.strip()


def _node_type(type_id: str, entry: InstanceTypeEntry) -> NodeType:
    info = entry["instance_type"]
    specs = info["specs"]
    return NodeType(
        id=type_id,
        name=info.get("description"),
        price=info.get("price_cents_per_hour"),
        regions=tuple(r["name"] for r in entry.get("regions_with_capacity_available", [])),
        provider=RuntimeProvider.LAMBDALABS,
        specs=NodeSpecs(vcpus=specs["vcpus"], memory=specs["memory_gib"]),
    )


def catalog_snapshot(node_types: list[NodeType]) -> str:
    return json.dumps([nt.to_dict() for nt in node_types], indent=2)


class LambdaLabsRuntime:
    """Runtime backed by a ``LambdaLabsClient``."""

    def __init__(self, client: LambdaLabsClient, config: LambdaLabs | None = None) -> None:
        self._client = client
        self._config = config or LambdaLabs()
        self._log = logger.bind(provider=self.provider.value, component="runtime")

    @classmethod
    def create(cls, api_key: str, config: LambdaLabs | None = None) -> Self:
        config = config or LambdaLabs()
        return cls(LambdaLabsClient(api_key, config), config)

    @property
    def provider(self) -> RuntimeProvider:
        return RuntimeProvider.LAMBDALABS

    async def aclose(self) -> None:
        await self._client.close()

    # =========================================================================
    # SSH Keys
    # =========================================================================

    async def list_ssh_keys(self) -> list[SSHKey]:
        self._log.info("Listing SSH keys")
        try:
            keys = await self._client.list_ssh_keys()
        except HttpError as e:
            raise errors.map_http_error(e) from e
        try:
            return [SSHKey(name=k["name"], public_key=k["public_key"]) for k in keys]
        except (KeyError, TypeError, AttributeError) as e:
            raise errors.internal(f"Malformed SSH key listing: {e!r}", cause=e) from e

    async def add_ssh_key(self, key: SSHKey) -> SSHKey:
        if not key.name:
            raise BadRequestError("SSH key name is required", provider=self.provider)

        existing = await self.list_ssh_keys()
        wanted = _key_body(key.public_key)
        for k in existing:
            if k.name == key.name:
                if wanted is not None and _key_body(k.public_key) != wanted:
                    raise errors.bad_request(
                        "SSH key with the same name already exists with a different public key"
                    )
                self._log.info("SSH key {name!r} already exists, using existing key", name=key.name)
                return k
            if wanted is not None and _key_body(k.public_key) == wanted:
                self._log.info(
                    "SSH key {name!r} already registered as {existing!r}, using existing key",
                    name=key.name, existing=k.name,
                )
                return k

        self._log.info("Registering new SSH key {name!r}", name=key.name)
        try:
            created = await self._client.add_ssh_key(key.name, key.public_key)
        except HttpError as e:
            raise errors.map_http_error(e) from e
        try:
            return SSHKey(
                name=created["name"],
                public_key=created["public_key"],
                private_key=created.get("private_key"),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise errors.internal(f"Malformed SSH key response: {e!r}", cause=e) from e

    # =========================================================================
    # Catalog
    # =========================================================================

    async def list_node_types(self) -> list[NodeType]:
        self._log.info("Listing instance availability")
        try:
            entries = await self._client.instance_types()
        except HttpError as e:
            raise errors.map_http_error(e) from e
        try:
            return [_node_type(type_id, entry) for type_id, entry in entries.items()]
        except (KeyError, TypeError, AttributeError) as e:
            raise errors.internal(f"Malformed instance type listing: {e!r}", cause=e) from e

    async def _find_region(self, node_type_id: str) -> str:
        node_types = await self.list_node_types()
        for nt in node_types:
            if nt.id == node_type_id and nt.regions:
                return nt.regions[0]
        raise errors.capacity_exhausted(
            f"No region with available capacity for node type {node_type_id!r}",
            suggestion=catalog_snapshot(node_types),
        )

    async def _capacity_error(self, err: HttpError) -> Error:
        suggestion = ""
        try:
            suggestion = catalog_snapshot(await self.list_node_types())
        except Error as e:
            self._log.warning("Failed to list available instances: {err}", err=e)
        return errors.capacity_exhausted(err.message, suggestion=suggestion, cause=err)

    # =========================================================================
    # Nodes
    # =========================================================================

    async def init_node(
        self, ssh_key: SSHKey, node_type_id: str, region: str | None = None
    ) -> Node:
        self._log.info("Launching instance with SSH key {name!r}", name=ssh_key.name)
        if region is None:
            region = await self._find_region(node_type_id)

        request: LaunchRequest = {
            "region_name": region,
            "instance_type_name": node_type_id,
            "ssh_key_names": [ssh_key.name],
            "file_system_names": [],
            "quantity": 1,
            "name": f"np-{random_phrase(3)}",
        }
        try:
            result = await self._client.launch_instance(request)
        except HttpError as e:
            if errors.is_capacity_error(e):
                raise await self._capacity_error(e) from e
            raise errors.map_http_error(e) from e

        instance_ids = (result.get("instance_ids") if isinstance(result, dict) else None) or []
        if not instance_ids:
            raise InternalError("Failed to launch instance", provider=self.provider)

        return Node(
            id=instance_ids[0],
            type_id=node_type_id,
            region=region,
            ssh_key=ssh_key,
            status=SessionStatus.INITIALIZING,
            provider=self.provider,
        )

    async def terminate_node(self, node_id: str) -> None:
        self._log.info("Terminating instance {node_id!r}", node_id=node_id)
        try:
            await self._client.terminate_instances([node_id])
        except HttpError as e:
            raise errors.map_http_error(e) from e

    async def watch(self, node_id: str) -> AsyncGenerator[WatchEvent, None]:
        log = self._log.bind(node_id=node_id)
        last: SessionStatus | None = None
        log.debug("Polling instance status every {s}s", s=self._config.poll_interval)
        try:
            while True:
                try:
                    instance = await self._client.get_instance(node_id)
                    reported = instance["status"]
                    status = _STATUS_MAP.get(reported)
                except HttpError as e:
                    if e.status != 404:
                        yield WatchFailed(errors.map_http_error(e))
                        return
                    # Terminated instances eventually disappear from the API.
                    status = SessionStatus.TERMINATED
                except (KeyError, TypeError) as e:
                    yield WatchFailed(
                        errors.internal(f"Malformed instance response: {e!r}", cause=e)
                    )
                    return
                else:
                    if status is None:
                        log.warning("Instance reported status {s!r}", s=reported)

                if status is not None and status != last:
                    last = status
                    yield StatusChanged(status)
                    if status.is_terminal:
                        yield WatchDone()
                        return

                await asyncio.sleep(self._config.poll_interval)
        finally:
            log.debug("Stopped polling instance")


__all__ = ["LambdaLabsRuntime", "catalog_snapshot"]
