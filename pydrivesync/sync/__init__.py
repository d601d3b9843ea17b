"""Sync engine for pydrivesync - reconciliation, watching and polling."""

from .comparator import FileComparator, SyncAction, SyncDecision
from .engine import SyncEngine, create_empty_stats
from .operations import SyncOperations
from .poller import RemoteChangePoller
from .remote import RemoteStorage
from .scanner import DirectoryScanner
from .service import SyncService, build_engine
from .state import SyncState, SyncStateStore
from .tracking import ExpiringNameSet, NameSet
from .watcher import ChangeKind, LocalChangeEvent, LocalChangeWatcher

__all__ = [
    "SyncEngine",
    "SyncService",
    "SyncOperations",
    "SyncState",
    "SyncStateStore",
    "RemoteStorage",
    "RemoteChangePoller",
    "LocalChangeWatcher",
    "LocalChangeEvent",
    "ChangeKind",
    "DirectoryScanner",
    "FileComparator",
    "SyncAction",
    "SyncDecision",
    "ExpiringNameSet",
    "NameSet",
    "build_engine",
    "create_empty_stats",
]
