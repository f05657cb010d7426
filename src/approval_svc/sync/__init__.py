"""Real-time synchronization of remote changes into the local store."""

from .events import ChangeKind, ChangeNotification, SyncEvent
from .adapter import SyncAdapter

__all__ = [
    "ChangeKind",
    "ChangeNotification",
    "SyncEvent",
    "SyncAdapter",
]
