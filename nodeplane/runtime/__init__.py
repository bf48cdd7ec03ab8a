"""Provider abstraction: the ``Runtime`` contract and its initializers."""

from .base import Runtime, StatusChanged, WatchDone, WatchEvent, WatchFailed
from .initializer import EnvInitializer, Initializer, StaticInitializer

__all__ = [
    "EnvInitializer",
    "Initializer",
    "Runtime",
    "StaticInitializer",
    "StatusChanged",
    "WatchDone",
    "WatchEvent",
    "WatchFailed",
]
