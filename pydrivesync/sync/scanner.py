"""Directory listing utilities for sync operations."""

import logging
from pathlib import Path

from ..models import LocalEntry, RemoteEntry
from ..utils import STATE_FILE_NAME, is_ignored_name, is_safe_entry_name

logger = logging.getLogger(__name__)


class DirectoryScanner:
    """Lists the direct children of local and remote folders.

    Both listings are keyed by lowercase name and exclude the state
    file (and in-progress download temp files).

    Examples:
        >>> scanner = DirectoryScanner()
        >>> entries = scanner.scan_local(Path("/sync/folder"))  # doctest: +SKIP
        >>> sorted(entries)  # doctest: +SKIP
        ['notes.txt', 'photos']
    """

    def __init__(self, state_file_name: str = STATE_FILE_NAME):
        """Initialize directory scanner.

        Args:
            state_file_name: Name of the state file to exclude
        """
        self.state_file_name = state_file_name

    def is_ignored(self, name: str) -> bool:
        """Check if a name is sync bookkeeping and must never be synced."""
        return is_ignored_name(name, self.state_file_name)

    def scan_local(self, directory: Path) -> dict[str, LocalEntry]:
        """List the direct children of a local directory.

        Entries that disappear while being listed are skipped.

        Args:
            directory: Directory to list

        Returns:
            Mapping of lowercase name to LocalEntry (empty if the
            directory does not exist)

        Raises:
            OSError: If the directory exists but cannot be read
        """
        entries: dict[str, LocalEntry] = {}
        if not directory.is_dir():
            return entries

        for item in directory.iterdir():
            if self.is_ignored(item.name):
                continue
            try:
                entry = LocalEntry.from_path(item)
            except FileNotFoundError:
                continue
            if entry.key in entries:
                logger.debug(f"Case-insensitive name collision in {directory}: {item.name}")
            entries[entry.key] = entry

        return entries

    def is_syncable_remote(self, entry: RemoteEntry) -> bool:
        """Check if a remote entry can be mirrored locally under its name."""
        if not is_safe_entry_name(entry.name):
            logger.warning(f"Skipping remote entry with unusable name: {entry.name!r}")
            return False
        return not self.is_ignored(entry.name)

    def index_remote(self, remote_entries: list[RemoteEntry]) -> dict[str, RemoteEntry]:
        """Key a remote listing by lowercase name.

        Entries whose names are not a single path component are left out.

        Args:
            remote_entries: Children of one remote folder

        Returns:
            Mapping of lowercase name to RemoteEntry
        """
        entries: dict[str, RemoteEntry] = {}
        for entry in remote_entries:
            if not self.is_syncable_remote(entry):
                continue
            if entry.key in entries:
                logger.debug(f"Duplicate remote name {entry.name!r}, keeping {entry.id}")
            entries[entry.key] = entry
        return entries
