from .logging import (
    CONSOLE_FORMAT,
    CONTEXT_KEYS,
    FILE_FORMAT,
    LogConfig,
    LogLevel,
    setup_logging,
    teardown_logging,
)

__all__ = [
    "CONSOLE_FORMAT",
    "CONTEXT_KEYS",
    "FILE_FORMAT",
    "LogConfig",
    "LogLevel",
    "setup_logging",
    "teardown_logging",
]
