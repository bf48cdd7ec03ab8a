"""LambdaLabs API response types.

TypedDicts for the ``data`` member of API responses - no conversion needed.
"""

from __future__ import annotations

from typing import Literal, NotRequired, TypedDict, TypeAlias


class SSHKeyResponse(TypedDict):
    id: str
    name: str
    public_key: str
    private_key: NotRequired[str | None]


class InstanceTypeSpecs(TypedDict):
    vcpus: int
    memory_gib: int
    storage_gib: int
    gpus: NotRequired[int]


class InstanceTypeInfo(TypedDict):
    name: str
    description: str
    price_cents_per_hour: int
    specs: InstanceTypeSpecs


class RegionResponse(TypedDict):
    name: str
    description: str


class InstanceTypeEntry(TypedDict):
    """One value of the ``GET /instance-types`` mapping."""

    instance_type: InstanceTypeInfo
    regions_with_capacity_available: list[RegionResponse]


InstanceStatus: TypeAlias = Literal["booting", "active", "unhealthy", "terminated"]


class InstanceResponse(TypedDict):
    id: str
    status: InstanceStatus
    name: NotRequired[str | None]
    ip: NotRequired[str | None]
    region: NotRequired[RegionResponse]
    instance_type: NotRequired[InstanceTypeInfo]
    ssh_key_names: NotRequired[list[str]]


class LaunchRequest(TypedDict):
    region_name: str
    instance_type_name: str
    ssh_key_names: list[str]
    file_system_names: list[str]
    quantity: int
    name: str


class LaunchResponse(TypedDict):
    instance_ids: list[str]


class TerminateResponse(TypedDict):
    terminated_instances: list[InstanceResponse]
