"""Core sync engine: folder reconciliation and per-file sync checks."""

import logging
import os
import threading
import time
from pathlib import Path
from typing import Callable, Optional

from ..models import LocalEntry, RemoteEntry
from ..utils import (
    STATE_FILE_NAME,
    TIME_THRESHOLD_MS,
    UPLOAD_SUPPRESSION_SECONDS,
    local_mtime_millis,
    path_key,
)
from .comparator import FileComparator, SyncAction, SyncDecision
from .operations import SyncOperations
from .remote import RemoteStorage
from .scanner import DirectoryScanner
from .state import SyncState, SyncStateStore
from .tracking import ExpiringNameSet, NameSet

logger = logging.getLogger(__name__)

STAT_KEYS = (
    "uploads",
    "downloads",
    "deletes_local",
    "deletes_remote",
    "folders_created",
    "errors",
)


def create_empty_stats() -> dict:
    """Create an empty statistics dictionary.

    Returns:
        Dictionary with zero counts for all stat categories
    """
    return {key: 0 for key in STAT_KEYS}


def merge_stats(target: dict, other: dict) -> dict:
    """Add the counts of ``other`` into ``target`` and return it."""
    for key in STAT_KEYS:
        target[key] += other.get(key, 0)
    return target


class SyncEngine:
    """Reconciles a local directory tree with a remote folder tree.

    One instance owns the baseline and the transient name sets for a
    sync root; the watcher and the poller share it. There is no engine
    wide lock: every shared container guards itself, and remote
    operations are idempotent, so concurrent passes over the same name
    only cause redundant work.
    """

    def __init__(
        self,
        storage: RemoteStorage,
        local_root: Path,
        root_folder_id: str,
        store: SyncStateStore,
        state: Optional[SyncState] = None,
        state_file_name: str = STATE_FILE_NAME,
        time_threshold_ms: int = TIME_THRESHOLD_MS,
        upload_suppression_seconds: float = UPLOAD_SUPPRESSION_SECONDS,
        use_local_trash: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize sync engine.

        Args:
            storage: Remote storage backend
            local_root: Root of the local tree
            root_folder_id: Remote folder mirrored by local_root
            store: Persistence for the baseline
            state: Baseline to start from (loaded from store if None)
            state_file_name: Name of the state file, excluded from syncing
            time_threshold_ms: Per-file "in sync" tolerance
            upload_suppression_seconds: Window during which a freshly
                uploaded file is skipped by per-file checks
            use_local_trash: Send local deletions to the system trash
            clock: Monotonic clock for the suppression window
        """
        self.storage = storage
        self.local_root = Path(local_root).absolute()
        self.root_folder_id = root_folder_id
        self.store = store
        self.state = state if state is not None else SyncState(store.load())

        self.scanner = DirectoryScanner(state_file_name)
        self.comparator = FileComparator(time_threshold_ms)
        self.operations = SyncOperations(storage, use_local_trash=use_local_trash)

        self.recently_uploaded = ExpiringNameSet(upload_suppression_seconds, clock)
        self.pending_deletions = NameSet()
        self.deleted_locally = NameSet()
        self._failed_transfers = NameSet()

        self._folder_ids_lock = threading.Lock()
        self._folder_ids: dict[str, str] = {path_key(self.local_root): root_folder_id}

    # =========================
    # Folder id cache
    # =========================

    def _remember_folder_id(self, local_folder: Path, folder_id: str) -> None:
        with self._folder_ids_lock:
            self._folder_ids[path_key(local_folder)] = folder_id

    def _forget_folder(self, local_folder: Path) -> None:
        """Drop cached ids and baselines for a folder subtree, ignoring case."""
        key = path_key(local_folder)
        prefix = key.rstrip(os.sep) + os.sep
        with self._folder_ids_lock:
            for cached in [k for k in self._folder_ids if k == key or k.startswith(prefix)]:
                if cached != path_key(self.local_root):
                    del self._folder_ids[cached]
        self.state.discard_folder(str(local_folder))

    def resolve_folder_id(self, local_folder: Path) -> Optional[str]:
        """Find the remote folder id mirroring a local directory.

        Uses ids cached by reconciliation passes, falling back to name
        lookups from the root.

        Args:
            local_folder: Directory inside the local root

        Returns:
            Remote folder id, or None if it is outside the root or does
            not exist remotely yet
        """
        local_folder = Path(local_folder).absolute()
        with self._folder_ids_lock:
            cached = self._folder_ids.get(path_key(local_folder))
        if cached is not None:
            return cached

        try:
            relative = local_folder.relative_to(self.local_root)
        except ValueError:
            return None

        folder_id = self.root_folder_id
        current = self.local_root
        for part in relative.parts:
            current = current / part
            with self._folder_ids_lock:
                cached = self._folder_ids.get(path_key(current))
            if cached is None:
                cached = self.storage.find_by_name(part, folder_id)
                if cached is None:
                    return None
                self._remember_folder_id(current, cached)
            folder_id = cached
        return folder_id

    # =========================
    # Folder reconciliation
    # =========================

    def sync_all(self) -> dict:
        """Reconcile the whole tree, then clean up stale root files.

        Returns:
            Dictionary with sync statistics
        """
        started_ms = int(time.time() * 1000)
        stats = self.reconcile(self.root_folder_id, self.local_root)
        seen = self.state.get(str(self.local_root))
        stats["deletes_local"] += self.cleanup_local_root(started_ms, seen)
        return stats

    def reconcile(self, remote_folder_id: str, local_folder: Path) -> dict:
        """Converge one local folder with one remote folder, recursively.

        Args:
            remote_folder_id: Remote folder id
            local_folder: Local directory path

        Returns:
            Dictionary with sync statistics for this folder and below
        """
        local_folder = Path(local_folder).absolute()
        folder_key = str(local_folder)
        stats = create_empty_stats()

        if not local_folder.is_dir():
            # Never infer deletions from a folder that is not there at all
            logger.error(f"Local folder does not exist: {local_folder}")
            stats["errors"] += 1
            return stats

        self._remember_folder_id(local_folder, remote_folder_id)

        # Step 1: list both sides
        try:
            remote_entries = self.scanner.index_remote(
                self.storage.list_children(remote_folder_id)
            )
            local_entries = self.scanner.scan_local(local_folder)
        except Exception as e:
            logger.error(f"Failed to list {local_folder}: {e}")
            stats["errors"] += 1
            return stats

        # Step 2: baseline
        baseline = self.state.get(folder_key)
        local_names = set(local_entries)
        remote_names = set(remote_entries)
        failed: set[str] = set()
        recursed: set[str] = set()

        logger.debug(
            f"Reconciling {local_folder}: {len(local_entries)} local, "
            f"{len(remote_entries)} remote, {len(baseline)} in baseline"
        )

        # Step 3: propagate deletions
        for name in sorted(baseline):
            in_remote = name in remote_entries
            in_local = name in local_entries
            if in_remote and not in_local:
                if self._delete_remote_entry(remote_entries[name], local_folder, stats):
                    remote_names.discard(name)
            elif in_local and not in_remote:
                if self._delete_local_entry(local_entries[name], stats):
                    local_names.discard(name)
            elif not in_local and not in_remote:
                # Gone on both sides; a later folder of that name starts fresh
                self._forget_folder(local_folder / name)

        # Step 4: upload genuinely new local entries
        for name, local in sorted(local_entries.items()):
            if name in remote_entries or name in baseline:
                continue
            if local.is_directory:
                folder_id = self._create_remote_folder(local, remote_folder_id, stats)
                if folder_id is None:
                    failed.add(name)
                    continue
                remote_names.add(name)
                recursed.add(name)
                self._forget_folder(local.path)
                merge_stats(stats, self.reconcile(folder_id, local.path))
            elif self._upload_new_file(local, remote_folder_id, stats):
                remote_names.add(name)
            else:
                failed.add(name)

        # Step 5: uploads changed the remote listing
        try:
            refreshed: Optional[dict[str, RemoteEntry]] = self.scanner.index_remote(
                self.storage.list_children(remote_folder_id)
            )
        except Exception as e:
            logger.error(f"Failed to re-list {local_folder}: {e}")
            stats["errors"] += 1
            refreshed = None

        if refreshed is not None:
            remote_entries = refreshed
            remote_names = set(refreshed)

            # Step 6: flush deletions queued by other code paths
            self._flush_pending_deletions(local_folder, remote_entries, remote_names, stats)

            # Step 7: download genuinely new remote entries
            for name, remote in sorted(remote_entries.items()):
                if name not in remote_names:
                    continue
                if name in local_entries or name in baseline:
                    continue
                target = local_folder / remote.name
                target_key = path_key(target)
                if target_key in self.deleted_locally or target_key in self.pending_deletions:
                    logger.debug(f"Skipping download of locally deleted {target}")
                    continue
                if remote.is_folder:
                    if not self._create_local_folder(target, stats):
                        failed.add(name)
                        continue
                    local_names.add(name)
                    recursed.add(name)
                    self._forget_folder(target)
                    merge_stats(stats, self.reconcile(remote.id, target))
                elif self._download_new_file(remote, target, stats):
                    local_names.add(name)
                else:
                    failed.add(name)

        # Folders present on both sides get their own pass
        for name in sorted((local_names & remote_names) - recursed):
            local = local_entries.get(name)
            remote = remote_entries.get(name)
            if local is None or remote is None:
                continue
            if local.is_directory and remote.is_folder:
                merge_stats(stats, self.reconcile(remote.id, local.path))
            elif local.is_directory != remote.is_folder:
                logger.warning(
                    f"Type mismatch for {local.path}: local "
                    f"{'folder' if local.is_directory else 'file'}, remote "
                    f"{'folder' if remote.is_folder else 'file'}; skipping"
                )

        # Step 8: record what is present now and persist the full snapshot
        self.state.replace(folder_key, (local_names | remote_names) - failed)
        self.store.save(self.state.snapshot())

        return stats

    def _delete_remote_entry(
        self, remote: RemoteEntry, local_folder: Path, stats: dict
    ) -> bool:
        """Propagate a local deletion to the remote side."""
        target = local_folder / remote.name
        try:
            logger.info(f"Deleted locally, removing remote: {target}")
            self.operations.delete_remote(remote.id)
        except Exception as e:
            logger.error(f"Failed to delete remote entry for {target}: {e}")
            stats["errors"] += 1
            return False
        stats["deletes_remote"] += 1
        if remote.is_folder:
            self._forget_folder(target)
        return True

    def _delete_local_entry(self, local: LocalEntry, stats: dict) -> bool:
        """Propagate a remote deletion to the local side."""
        if path_key(local.path) in self.recently_uploaded:
            # Remote listing may not show the upload yet
            logger.debug(f"Keeping recently uploaded {local.path}")
            return False
        try:
            logger.info(f"Deleted remotely, removing local: {local.path}")
            self.operations.delete_local(local.path)
        except Exception as e:
            logger.error(f"Failed to delete local {local.path}: {e}")
            stats["errors"] += 1
            return False
        stats["deletes_local"] += 1
        if local.is_directory:
            self._forget_folder(local.path)
        return True

    def _create_remote_folder(
        self, local: LocalEntry, parent_id: str, stats: dict
    ) -> Optional[str]:
        try:
            logger.info(f"Creating remote folder: {local.path}")
            folder_id = self.operations.create_remote_folder(local.name, parent_id)
        except Exception as e:
            logger.error(f"Failed to create remote folder for {local.path}: {e}")
            stats["errors"] += 1
            return None
        stats["folders_created"] += 1
        return folder_id

    def _create_local_folder(self, target: Path, stats: dict) -> bool:
        try:
            logger.info(f"Creating local folder: {target}")
            self.operations.create_local_folder(target)
        except OSError as e:
            logger.error(f"Failed to create local folder {target}: {e}")
            stats["errors"] += 1
            return False
        stats["folders_created"] += 1
        return True

    def _upload_new_file(self, local: LocalEntry, parent_id: str, stats: dict) -> bool:
        key = path_key(local.path)
        try:
            logger.info(f"Uploading new file: {local.path}")
            self.operations.upload_file(local.path, parent_id)
        except Exception as e:
            logger.error(f"Failed to upload {local.path}: {e}")
            stats["errors"] += 1
            self._failed_transfers.add(key)
            return False
        self.recently_uploaded.add(key)
        self._failed_transfers.discard(key)
        stats["uploads"] += 1
        return True

    def _download_new_file(self, remote: RemoteEntry, target: Path, stats: dict) -> bool:
        key = path_key(target)
        try:
            logger.info(f"Downloading new file: {target}")
            if not self.operations.download_file(remote, target):
                logger.warning(f"Remote entry for {target} is not downloadable")
                return False
        except Exception as e:
            logger.error(f"Failed to download {target}: {e}")
            stats["errors"] += 1
            self._failed_transfers.add(key)
            return False
        self._failed_transfers.discard(key)
        stats["downloads"] += 1
        return True

    def _flush_pending_deletions(
        self,
        local_folder: Path,
        remote_entries: dict[str, RemoteEntry],
        remote_names: set[str],
        stats: dict,
    ) -> None:
        """Delete remote entries queued for deletion in this folder."""
        for key in self.pending_deletions.snapshot():
            pending = Path(key)
            if path_key(pending.parent) != path_key(local_folder):
                continue
            remote = remote_entries.get(pending.name)
            if remote is None:
                continue
            if self._delete_remote_entry(remote, local_folder, stats):
                self.pending_deletions.discard(key)
                remote_names.discard(pending.name)

    # =========================
    # Per-file operations
    # =========================

    def sync_file(self, path: Path) -> Optional[SyncDecision]:
        """Check a single local file against its remote counterpart.

        Called by the watcher after a create/modify burst settles.

        Args:
            path: Local file path

        Returns:
            The decision taken, or None if the path was not checked
        """
        path = Path(path).absolute()
        if self.scanner.is_ignored(path.name):
            return None

        key = path_key(path)
        # A file that exists again is no longer being deleted
        self.deleted_locally.discard(key)
        self.pending_deletions.discard(key)

        if key in self.recently_uploaded:
            logger.debug(f"Skipping update for recently uploaded file: {path}")
            return self.comparator.suppressed()

        try:
            if not path.is_file():
                return None
            local_mtime = local_mtime_millis(path)

            parent_id = self.resolve_folder_id(path.parent)
            if parent_id is None:
                logger.debug(f"Parent of {path} not synced yet, leaving it to the next pass")
                return None

            remote_id = self.storage.find_by_name(path.name, parent_id)
            remote_mtime = (
                self.storage.get_modified_time(remote_id) if remote_id is not None else None
            )
            decision = self.comparator.compare(
                local_mtime, remote_mtime, exists_remotely=remote_id is not None
            )

            if decision.action == SyncAction.UPLOAD:
                logger.info(f"Uploading new file: {path}")
                self.operations.upload_file(path, parent_id)
                self.recently_uploaded.add(key)
            elif decision.action == SyncAction.UPDATE:
                logger.info(f"Updating remote file: {path}")
                self.operations.upload_file(path, parent_id, existing_id=remote_id)
            else:
                logger.debug(f"{decision.reason}: {path}")
            return decision

        except Exception as e:
            logger.error(f"Error syncing file {path}: {e}")
            return None

    def delete_file(self, path: Path) -> bool:
        """Propagate a local deletion immediately.

        Deletes the remote counterpart, then the local path if it still
        exists. Work that cannot be done now is queued for the next
        pass's pending-deletion flush.

        Args:
            path: Local path that was deleted

        Returns:
            True if the deletion was fully handled
        """
        path = Path(path).absolute()
        if self.scanner.is_ignored(path.name):
            return False

        key = path_key(path)
        self.deleted_locally.add(key)
        try:
            parent_id = self.resolve_folder_id(path.parent)
            if parent_id is None:
                self.queue_remote_deletion(path)
                return False

            remote_id = self.storage.find_by_name(path.name, parent_id)
            if remote_id is None:
                logger.debug(f"No remote entry for deleted {path}")
            else:
                logger.info(f"Deleting remote entry for {path}")
                self.operations.delete_remote(remote_id)

            if path.exists():
                self.operations.delete_local(path)
            self._forget_folder(path)
            return True

        except Exception as e:
            logger.error(f"Error deleting {path}: {e}")
            self.queue_remote_deletion(path)
            return False
        finally:
            self.deleted_locally.discard(key)

    def queue_remote_deletion(self, path: Path) -> None:
        """Queue a path's remote counterpart for deletion by the next pass."""
        logger.debug(f"Queued remote deletion: {path}")
        self.pending_deletions.add(path_key(Path(path).absolute()))

    # =========================
    # Poller operations
    # =========================

    def check_remote_changes(self) -> int:
        """Download root-level remote files that are missing or newer locally.

        Folders are ignored, as are entries whose names cannot be used
        as a local file name.

        Policy for files missing locally: only files never synced before
        are downloaded. A file that is in the root baseline but missing
        locally was deleted locally; downloading it here would undo that
        deletion, so it is left to the next reconciliation pass, which
        deletes the remote copy.

        Returns:
            Number of files downloaded
        """
        remote_entries = self.storage.list_children(self.root_folder_id)
        baseline = self.state.get(str(self.local_root))
        downloaded = 0

        for remote in remote_entries:
            if remote.is_folder or not self.scanner.is_syncable_remote(remote):
                continue
            target = self.local_root / remote.name
            key = path_key(target)
            if key in self.deleted_locally or key in self.pending_deletions:
                continue
            try:
                if target.exists():
                    if target.is_dir():
                        continue
                    if remote.modified_time <= local_mtime_millis(target):
                        continue
                elif remote.key in baseline:
                    continue
                logger.info(f"Remote change detected, downloading: {target}")
                if self.operations.download_file(remote, target):
                    downloaded += 1
            except Exception as e:
                logger.error(f"Failed to download {target}: {e}")

        return downloaded

    def cleanup_local_root(
        self, pass_started_ms: int, known_names: Optional[set[str]] = None
    ) -> int:
        """Delete root-level local files that are absent remotely.

        Only names the pass has seen are candidates; a file that showed
        up in the root after the pass listed it is never removed. Also
        skips files uploaded moments ago, files whose upload failed,
        and files modified after the pass started.

        Args:
            pass_started_ms: Wall-clock start of the pass (epoch ms)
            known_names: Lowercase root names seen by the pass (defaults
                to the root baseline)

        Returns:
            Number of local files deleted
        """
        if known_names is None:
            known_names = self.state.get(str(self.local_root))

        try:
            remote_names = set(
                self.scanner.index_remote(self.storage.list_children(self.root_folder_id))
            )
            local_entries = self.scanner.scan_local(self.local_root)
        except Exception as e:
            logger.error(f"Skipping local cleanup, listing failed: {e}")
            return 0

        deleted = 0
        for name, local in sorted(local_entries.items()):
            if local.is_directory or name in remote_names or name not in known_names:
                continue
            key = path_key(local.path)
            if key in self.recently_uploaded or key in self._failed_transfers:
                continue
            if local.last_modified >= pass_started_ms:
                continue
            try:
                logger.info(f"Not present remotely, removing local file: {local.path}")
                if self.operations.delete_local(local.path):
                    deleted += 1
            except OSError as e:
                logger.error(f"Failed to delete local {local.path}: {e}")

        return deleted
