"""Async HTTP client for the LambdaLabs Cloud API."""

from __future__ import annotations

from typing import Any

from loguru import logger

from nodeplane.infra.http import BearerAuth, HttpClient

from .config import LambdaLabs
from .types import (
    InstanceResponse,
    InstanceTypeEntry,
    LaunchRequest,
    LaunchResponse,
    SSHKeyResponse,
    TerminateResponse,
)


class LambdaLabsClient:
    """Thin wrapper over the REST API.

    Unwraps the ``{"data": ...}`` envelope and returns TypedDicts. Failures
    propagate as ``HttpError``; mapping them to the error taxonomy is the
    runtime's job.

    Example:
        async with LambdaLabsClient(api_key="...") as client:
            keys = await client.list_ssh_keys()
    """

    def __init__(self, api_key: str, config: LambdaLabs | None = None) -> None:
        self._config = config or LambdaLabs()
        self._log = logger.bind(provider="lambdalabs", component="client")
        self._http = HttpClient(
            self._config.base_url,
            BearerAuth(api_key),
            timeout=self._config.request_timeout,
            envelope="data",
        )

    async def __aenter__(self) -> LambdaLabsClient:
        return self

    async def __aexit__(self, *_args: object) -> None:
        await self.close()

    async def close(self) -> None:
        await self._http.close()

    # =========================================================================
    # SSH Keys
    # =========================================================================

    async def list_ssh_keys(self) -> list[SSHKeyResponse]:
        result: list[SSHKeyResponse] | None = await self._http.get("/ssh-keys")
        return result or []

    async def add_ssh_key(self, name: str, public_key: str | None) -> SSHKeyResponse:
        body: dict[str, Any] = {"name": name}
        if public_key:
            body["public_key"] = public_key
        self._log.debug("Adding SSH key {name}", name=name)
        result: SSHKeyResponse = await self._http.post("/ssh-keys", body)
        return result

    # =========================================================================
    # Instance Types
    # =========================================================================

    async def instance_types(self) -> dict[str, InstanceTypeEntry]:
        result: dict[str, InstanceTypeEntry] | None = await self._http.get("/instance-types")
        return result or {}

    # =========================================================================
    # Instances
    # =========================================================================

    async def launch_instance(self, request: LaunchRequest) -> LaunchResponse:
        self._log.debug(
            "Launching {type} in {region}",
            type=request["instance_type_name"], region=request["region_name"],
        )
        result: LaunchResponse | None = await self._http.post(
            "/instance-operations/launch", dict(request)
        )
        return result or {"instance_ids": []}

    async def terminate_instances(self, instance_ids: list[str]) -> TerminateResponse:
        result: TerminateResponse | None = await self._http.post(
            "/instance-operations/terminate", {"instance_ids": instance_ids}
        )
        return result or {"terminated_instances": []}

    async def get_instance(self, instance_id: str) -> InstanceResponse:
        result: InstanceResponse = await self._http.get(f"/instances/{instance_id}")
        return result


__all__ = ["LambdaLabsClient"]
