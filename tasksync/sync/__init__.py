"""Reconciliation, push-back and scheduling of provider syncs."""

from .engine import SyncEngine
from .locks import KeyedLock
from .push import PushBackService, PushResult
from .scheduler import PeriodicSyncRunner

__all__ = [
    "KeyedLock",
    "PeriodicSyncRunner",
    "PushBackService",
    "PushResult",
    "SyncEngine",
]
