"""Logging for the control plane.

Everything logs through loguru with bound context, e.g.
``logger.bind(component="sessions", session_id=...)``. The context keys
below are rendered as a ``[k=v ...]`` suffix on every line. nodeplane is
silent until ``setup_logging`` runs, so embedding it as a library does not
produce output.

Example:
    from nodeplane.observability.logging import LogConfig, setup_logging, teardown_logging

    ids = setup_logging(LogConfig(level="DEBUG", file=""))
    try:
        ...
    finally:
        teardown_logging(ids)
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, TypeAlias

from loguru import logger

logger.disable("nodeplane")

LogLevel: TypeAlias = Literal["TRACE", "DEBUG", "INFO", "WARNING", "ERROR"]

CONTEXT_KEYS = (
    "component", "provider", "account_id", "project_id",
    "session_id", "node_id", "build_id",
)

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan>"
    "<dim>{extra[_ctx]}</dim> - "
    "<level>{message}</level>"
)

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line}{extra[_ctx]} - {message}"


@dataclass(frozen=True, slots=True)
class LogConfig:
    """``[logging]`` section of the config file.

    Attributes:
        level: Minimum console level. The file sink always records DEBUG.
        file: Log file path. Empty disables the file sink.
        console: Log to stderr.
        json: Write the file sink as JSON lines instead of text.
        rotation: Rotation policy for the file sink, e.g. ``"50 MB"``.
        retention: Rotated files to keep.
    """

    level: LogLevel = "INFO"
    file: str = ".nodeplane/nodeplane.log"
    console: bool = True
    json: bool = False
    rotation: str = "50 MB"
    retention: int = 10


def _context_suffix(record: Any) -> None:
    extra = record["extra"]
    parts = [f"{k}={extra[k]}" for k in CONTEXT_KEYS if k in extra]
    extra["_ctx"] = f" [{' '.join(parts)}]" if parts else ""


def _sinks(config: LogConfig) -> Iterator[dict[str, Any]]:
    if config.console:
        yield {
            "sink": sys.stderr,
            "level": config.level,
            "format": CONSOLE_FORMAT,
            "colorize": True,
            "filter": "nodeplane",
        }
    if config.file:
        Path(config.file).parent.mkdir(parents=True, exist_ok=True)
        yield {
            "sink": config.file,
            "level": "DEBUG",
            "format": FILE_FORMAT,
            "serialize": config.json,
            "rotation": config.rotation,
            "retention": config.retention,
            "compression": "zip",
            "diagnose": False,
        }


def setup_logging(config: LogConfig) -> list[int]:
    """Install the configured sinks; returns handler ids for ``teardown_logging``."""
    logger.remove()
    logger.configure(patcher=_context_suffix)
    logger.enable("nodeplane")
    return [logger.add(**sink) for sink in _sinks(config)]


def teardown_logging(handler_ids: list[int]) -> None:
    for hid in handler_ids:
        logger.remove(hid)
    logger.disable("nodeplane")


__all__ = [
    "CONSOLE_FORMAT",
    "CONTEXT_KEYS",
    "FILE_FORMAT",
    "LogConfig",
    "LogLevel",
    "setup_logging",
    "teardown_logging",
]
