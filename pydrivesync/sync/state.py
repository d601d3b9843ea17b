"""State management for tracking sync history.

The baseline records, per local folder, which names were synchronized
as of the last completed reconciliation pass over that folder. It is
the only way to tell a newly created entry (never synced) from one that
was synced before and has since disappeared on one side.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Optional

from ..utils import name_key

logger = logging.getLogger(__name__)

STATE_FORMAT_VERSION = 1


class SyncState:
    """Thread-safe mapping of folder path to previously synced names.

    Names are stored lowercase. Readers always get copies, so a pass can
    iterate its baseline while other threads replace other folders.
    """

    def __init__(self, folders: Optional[dict[str, set[str]]] = None):
        self._lock = threading.Lock()
        self._folders: dict[str, set[str]] = {}
        for folder, names in (folders or {}).items():
            self._folders[folder] = {name_key(n) for n in names}

    def get(self, folder: str) -> set[str]:
        """Return a copy of the baseline for a folder (empty if never synced)."""
        with self._lock:
            return set(self._folders.get(folder, ()))

    def replace(self, folder: str, names: set[str]) -> None:
        """Set the baseline for a folder."""
        with self._lock:
            self._folders[folder] = {name_key(n) for n in names}

    def discard_folder(self, folder: str) -> None:
        """Forget a folder and every folder below it, matching case-insensitively."""
        folder = folder.rstrip(os.sep).lower()
        prefix = folder + os.sep
        with self._lock:
            doomed = [
                k for k in self._folders
                if k.lower() == folder or k.lower().startswith(prefix)
            ]
            for key in doomed:
                del self._folders[key]

    def snapshot(self) -> dict[str, set[str]]:
        """Return a deep copy of the whole mapping."""
        with self._lock:
            return {folder: set(names) for folder, names in self._folders.items()}

    def __contains__(self, folder: object) -> bool:
        with self._lock:
            return folder in self._folders

    def __len__(self) -> int:
        with self._lock:
            return len(self._folders)


class SyncStateStore:
    """Persists the baseline mapping as one JSON snapshot.

    ``load`` never raises: a missing or corrupt file yields an empty
    mapping, which makes the next pass treat every entry as new.
    ``save`` overwrites the file atomically and only logs failures.
    """

    def __init__(self, path: Path):
        """Initialize the store.

        Args:
            path: Location of the state file
        """
        self.path = Path(path)
        self._write_lock = threading.Lock()

    def load(self) -> dict[str, set[str]]:
        """Load the baseline mapping.

        Returns:
            Mapping of folder path to names (empty on missing/corrupt data)
        """
        if not self.path.exists():
            logger.debug(f"No sync state found at {self.path}")
            return {}

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            folders = data["folders"]
            if not isinstance(folders, dict):
                raise TypeError("'folders' is not an object")
            state = {
                str(folder): {name_key(str(n)) for n in names}
                for folder, names in folders.items()
            }
            logger.debug(f"Loaded sync state for {len(state)} folder(s)")
            return state
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Failed to load sync state from {self.path}: {e}")
            return {}

    def save(self, mapping: dict[str, set[str]]) -> bool:
        """Save the full baseline mapping.

        Args:
            mapping: Mapping of folder path to names

        Returns:
            True if the snapshot was written
        """
        data = {
            "version": STATE_FORMAT_VERSION,
            "folders": {folder: sorted(names) for folder, names in sorted(mapping.items())},
        }

        with self._write_lock:
            tmp_name: Optional[str] = None
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    dir=self.path.parent, prefix=f"{self.path.name}.", suffix=".tmp"
                )
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(data, f, indent=2)
                os.replace(tmp_name, self.path)
                tmp_name = None
                logger.debug(f"Saved sync state for {len(mapping)} folder(s)")
                return True
            except OSError as e:
                logger.warning(f"Failed to save sync state: {e}")
                return False
            finally:
                if tmp_name is not None:
                    try:
                        os.unlink(tmp_name)
                    except OSError:
                        logger.debug(f"Could not remove temp state file {tmp_name}")

    def clear(self) -> bool:
        """Delete the state file.

        Returns:
            True if state was cleared, False if no state existed
        """
        if self.path.exists():
            self.path.unlink()
            logger.debug(f"Cleared sync state at {self.path}")
            return True
        return False
