"""TOML-based control plane configuration.

Loads ~/.nodeplane/defaults.toml (global) and nodeplane.toml (project),
merges them, and builds typed settings. Provider secrets may also come from
the environment (see each provider config).
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TypeAlias

from nodeplane.observability.logging import LogConfig
from nodeplane.providers.lambdalabs.config import LambdaLabs

RawConfig: TypeAlias = dict[str, Any]

GLOBAL_CONFIG_PATH = Path.home() / ".nodeplane" / "defaults.toml"
PROJECT_CONFIG_NAME = "nodeplane.toml"


@dataclass(frozen=True, slots=True)
class ServerConfig:
    host: str = "127.0.0.1"
    port: int = 8080


@dataclass(frozen=True, slots=True)
class Settings:
    lambdalabs: LambdaLabs = field(default_factory=LambdaLabs)
    logging: LogConfig = field(default_factory=LogConfig)
    server: ServerConfig = field(default_factory=ServerConfig)


def _deep_merge(base: RawConfig, override: RawConfig) -> RawConfig:
    result = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_toml(path: Path) -> RawConfig:
    if not path.is_file():
        return {}
    with path.open("rb") as f:
        return tomllib.load(f)


def load_config(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> RawConfig:
    global_cfg = _read_toml(global_path or GLOBAL_CONFIG_PATH)
    project_path = (project_dir or Path.cwd()) / PROJECT_CONFIG_NAME
    project_cfg = _read_toml(project_path)

    merged = _deep_merge(global_cfg, project_cfg)
    merged.setdefault("providers", {})
    merged.setdefault("logging", {})
    merged.setdefault("server", {})
    return merged


def _get_provider_map() -> dict[str, type]:
    return {"lambdalabs": LambdaLabs}


def _build_providers(raw: RawConfig) -> dict[str, Any]:
    provider_map = _get_provider_map()
    built: dict[str, Any] = {}
    for name, section in raw.items():
        cls = provider_map.get(name)
        if cls is None:
            raise ValueError(
                f"Unknown provider '{name}'. Valid: {', '.join(provider_map)}"
            )
        built[name] = cls(**section)
    return built


def load_settings(
    *,
    project_dir: Path | None = None,
    global_path: Path | None = None,
) -> Settings:
    config = load_config(project_dir=project_dir, global_path=global_path)
    providers = _build_providers(config["providers"])
    return Settings(
        lambdalabs=providers.get("lambdalabs", LambdaLabs()),
        logging=LogConfig(**config["logging"]),
        server=ServerConfig(**config["server"]),
    )


__all__ = ["ServerConfig", "Settings", "load_config", "load_settings"]
