"""Interface the sync engine expects from a remote storage backend."""

from pathlib import Path
from typing import Optional, Protocol

from ..models import RemoteEntry


class RemoteStorage(Protocol):
    """CRUD over remote files and folders addressed by opaque id.

    ``DriveClient`` is the production implementation. Any failure is
    raised as an exception; the engine decides how to contain it.
    """

    def list_children(self, folder_id: str) -> list[RemoteEntry]:
        """List non-trashed children of a folder."""
        ...

    def get_modified_time(self, file_id: str) -> Optional[int]:
        """Return epoch milliseconds, or None if the entry is absent."""
        ...

    def upload(
        self,
        local_path: Path,
        parent_folder_id: str,
        existing_id: Optional[str] = None,
    ) -> str:
        """Create (no existing_id) or replace content; return the entry id."""
        ...

    def download(self, file_id: str, destination: Path) -> bool:
        """Write content to destination; False without transfer for folders."""
        ...

    def create_folder(self, name: str, parent_id: str) -> str:
        """Create a folder and return its id."""
        ...

    def find_by_name(self, name: str, parent_id: str) -> Optional[str]:
        """Return the id of a child with this name, or None."""
        ...

    def delete(self, file_id: str) -> bool:
        """Delete an entry; deleting a missing id is not an error."""
        ...
