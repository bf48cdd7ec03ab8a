from .service import SessionService
from .watcher import StatusWatcher, WatchHandle

__all__ = ["SessionService", "StatusWatcher", "WatchHandle"]
