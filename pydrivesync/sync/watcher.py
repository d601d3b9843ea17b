"""Local filesystem watcher with per-path debouncing.

Filesystem callbacks only enqueue typed events. A single dispatcher
thread drains the queue and owns all debounce deadlines, so events for
one path are handled strictly in order: a create/modify re-arms the
path's deadline, and only the latest one fires. Deletions bypass the
debounce and are propagated immediately.
"""

import logging
import os
import queue
import threading
import time
from concurrent.futures import Executor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..utils import DEBOUNCE_SECONDS, path_key
from .engine import SyncEngine

logger = logging.getLogger(__name__)

_TIMEOUT = object()


class ChangeKind(str, Enum):
    """Kinds of local change events."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True)
class LocalChangeEvent:
    """A change observed on one local path."""

    kind: ChangeKind
    path: Path


class _QueueingEventHandler(FileSystemEventHandler):
    """Translates watchdog callbacks into LocalChangeEvents."""

    def __init__(self, watcher: "LocalChangeWatcher"):
        super().__init__()
        self.watcher = watcher

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.watcher.submit(ChangeKind.CREATED, os.fsdecode(event.src_path))

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self.watcher.submit(ChangeKind.MODIFIED, os.fsdecode(event.src_path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        self.watcher.submit(ChangeKind.DELETED, os.fsdecode(event.src_path))

    def on_moved(self, event: FileSystemEvent) -> None:
        self.watcher.submit(ChangeKind.DELETED, os.fsdecode(event.src_path))
        if not event.is_directory:
            self.watcher.submit(ChangeKind.CREATED, os.fsdecode(event.dest_path))


class LocalChangeWatcher:
    """Watches the local root and feeds changes to the sync engine."""

    def __init__(
        self,
        engine: SyncEngine,
        executor: Executor,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        max_queue_size: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the watcher.

        Args:
            engine: Engine receiving per-file sync and delete requests
            executor: Runs triggered sync/delete work off the dispatcher
            debounce_seconds: Quiet period before a changed file is synced
            max_queue_size: Capacity of the event queue
            clock: Monotonic time source in seconds
        """
        self.engine = engine
        self.executor = executor
        self.debounce_seconds = debounce_seconds
        self.events: "queue.Queue[Optional[LocalChangeEvent]]" = queue.Queue(
            maxsize=max_queue_size
        )
        self._clock = clock
        self._deadlines: dict[str, tuple[float, Path]] = {}
        self._observer: Optional[Observer] = None
        self._dispatcher: Optional[threading.Thread] = None

    @property
    def pending_paths(self) -> set[str]:
        """Keys of paths waiting for their debounce deadline."""
        return set(self._deadlines)

    def submit(self, kind: ChangeKind, path: str) -> None:
        """Enqueue an event (called from observer threads)."""
        event = LocalChangeEvent(kind=kind, path=Path(path).absolute())
        try:
            self.events.put_nowait(event)
        except queue.Full:
            # The next reconciliation pass picks the change up
            logger.warning(f"Event queue full, dropping {kind.value} event for {path}")

    def start(self) -> None:
        """Start observing the local root and dispatching events."""
        root = self.engine.local_root
        self._observer = Observer()
        self._observer.schedule(_QueueingEventHandler(self), str(root), recursive=True)
        self._observer.start()

        self._dispatcher = threading.Thread(
            target=self._dispatch_loop, name="pydrivesync-watcher", daemon=True
        )
        self._dispatcher.start()
        logger.info(f"Watching {root}")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop observing and drop all pending debounce deadlines."""
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=timeout)
            self._observer = None

        if self._dispatcher is not None:
            self.events.put(None)
            self._dispatcher.join(timeout=timeout)
            self._dispatcher = None

        self._deadlines.clear()
        logger.info("Stopped watching")

    def _dispatch_loop(self) -> None:
        while True:
            try:
                event = self.events.get(timeout=self._next_timeout())
            except queue.Empty:
                event = _TIMEOUT
            if event is None:
                break

            try:
                if event is not _TIMEOUT:
                    self.handle_event(event)
                self.fire_due()
            except Exception:
                logger.exception("Error dispatching local change event")

    def _next_timeout(self) -> Optional[float]:
        if not self._deadlines:
            return None
        soonest = min(deadline for deadline, _ in self._deadlines.values())
        return max(0.0, soonest - self._clock())

    def handle_event(self, event: LocalChangeEvent) -> None:
        """Apply one event to the debounce state.

        Create/modify replaces any pending deadline for the path with a
        fresh one. Delete cancels the pending deadline, marks the path as
        being deleted, and hands the deletion to the executor at once.
        """
        if self.engine.scanner.is_ignored(event.path.name):
            return

        key = path_key(event.path)
        if event.kind in (ChangeKind.CREATED, ChangeKind.MODIFIED):
            logger.debug(f"File {event.kind.value}: {event.path}")
            self._deadlines[key] = (self._clock() + self.debounce_seconds, event.path)
        elif event.kind == ChangeKind.DELETED:
            logger.debug(f"File deleted locally: {event.path}")
            self._deadlines.pop(key, None)
            self.engine.deleted_locally.add(key)
            self._run(self.engine.delete_file, event.path)

    def fire_due(self) -> int:
        """Run sync checks for every path whose deadline has passed.

        Returns:
            Number of sync checks started
        """
        now = self._clock()
        due = [key for key, (deadline, _) in self._deadlines.items() if deadline <= now]
        for key in due:
            _, path = self._deadlines.pop(key)
            logger.debug(f"Syncing file: {path}")
            self._run(self.engine.sync_file, path)
        return len(due)

    def _run(self, func: Callable[[Path], object], path: Path) -> None:
        try:
            self.executor.submit(func, path)
        except RuntimeError:
            logger.debug(f"Executor shut down, dropping work for {path}")
