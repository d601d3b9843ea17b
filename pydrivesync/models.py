"""Data models for remote and local entries."""

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .utils import FOLDER_MIME_TYPE, local_mtime_millis, name_key, parse_rfc3339_millis


@dataclass(frozen=True)
class RemoteEntry:
    """A file or folder in remote storage."""

    id: str
    """Opaque remote identifier"""

    name: str
    """Entry name (not guaranteed unique within a parent)"""

    is_folder: bool
    """Whether the entry is a folder"""

    modified_time: int
    """Last modification time in epoch milliseconds"""

    @property
    def key(self) -> str:
        """Lowercase name used for case-insensitive matching."""
        return name_key(self.name)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> "RemoteEntry":
        """Create a RemoteEntry from a Drive-style file resource.

        Args:
            data: Resource dict with id, name, mimeType and modifiedTime

        Returns:
            RemoteEntry instance
        """
        return cls(
            id=str(data["id"]),
            name=data.get("name", ""),
            is_folder=data.get("mimeType") == FOLDER_MIME_TYPE,
            modified_time=parse_rfc3339_millis(data.get("modifiedTime")) or 0,
        )


@dataclass(frozen=True)
class LocalEntry:
    """A file or directory in the local tree."""

    path: Path
    """Absolute path"""

    name: str
    """Entry name"""

    last_modified: int
    """Last modification time in epoch milliseconds"""

    is_directory: bool
    """Whether the entry is a directory"""

    @property
    def key(self) -> str:
        """Lowercase name used for case-insensitive matching."""
        return name_key(self.name)

    @classmethod
    def from_path(cls, path: Path) -> "LocalEntry":
        """Create a LocalEntry by stat-ing a path.

        Raises:
            OSError: If the path cannot be stat-ed
        """
        return cls(
            path=path,
            name=path.name,
            last_modified=local_mtime_millis(path),
            is_directory=path.is_dir(),
        )
