"""Sync operations wrapper for a unified transfer/delete interface."""

import logging
import shutil
from pathlib import Path
from typing import Optional

from send2trash import send2trash

from ..models import RemoteEntry
from .remote import RemoteStorage

logger = logging.getLogger(__name__)


class SyncOperations:
    """Unified file operations used by the sync engine.

    Local operations tolerate "already exists" and "already absent".
    Remote failures propagate so the caller can count and log them.
    """

    def __init__(self, storage: RemoteStorage, use_local_trash: bool = False):
        """Initialize sync operations.

        Args:
            storage: Remote storage backend
            use_local_trash: Move local deletions to the system trash
                instead of removing them permanently
        """
        self.storage = storage
        self.use_local_trash = use_local_trash

    def upload_file(
        self,
        local_path: Path,
        parent_folder_id: str,
        existing_id: Optional[str] = None,
    ) -> str:
        """Upload a local file to remote storage.

        Args:
            local_path: File to upload
            parent_folder_id: Remote folder receiving the file
            existing_id: Remote entry to replace, or None to create

        Returns:
            Remote entry id
        """
        return self.storage.upload(local_path, parent_folder_id, existing_id)

    def download_file(self, remote: RemoteEntry, local_path: Path) -> bool:
        """Download a remote file to local storage.

        Args:
            remote: Remote file to download
            local_path: Local path where the file should be saved

        Returns:
            True if the file was written
        """
        return self.storage.download(remote.id, local_path)

    def create_remote_folder(self, name: str, parent_folder_id: str) -> str:
        """Create a remote folder and return its id."""
        return self.storage.create_folder(name, parent_folder_id)

    def create_local_folder(self, local_path: Path) -> None:
        """Create a local directory (no-op if it already exists)."""
        local_path.mkdir(exist_ok=True)

    def delete_remote(self, remote_id: str) -> bool:
        """Delete a remote entry; deleting a missing entry succeeds."""
        return self.storage.delete(remote_id)

    def delete_local(self, local_path: Path) -> bool:
        """Delete a local file or directory tree.

        Args:
            local_path: Path to remove

        Returns:
            True if something was removed, False if it was already absent
        """
        if not local_path.exists() and not local_path.is_symlink():
            return False

        if self.use_local_trash:
            send2trash(str(local_path))
            logger.debug(f"Moved to trash: {local_path}")
            return True

        try:
            if local_path.is_dir() and not local_path.is_symlink():
                shutil.rmtree(local_path)
            else:
                local_path.unlink()
        except FileNotFoundError:
            return False
        return True
