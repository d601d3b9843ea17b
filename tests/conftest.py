"""Shared fixtures: an in-memory remote storage and engine builders."""

import os
from collections import Counter
from pathlib import Path
from typing import Optional

import pytest

from pydrivesync.exceptions import DriveNetworkError, DriveUploadError
from pydrivesync.models import RemoteEntry
from pydrivesync.sync import SyncEngine, SyncStateStore
from pydrivesync.utils import local_mtime_millis

ROOT_ID = "root"
MUTATING_CALLS = ("upload", "download", "create_folder", "delete")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MemoryStorage:
    """In-memory remote storage implementing the RemoteStorage protocol."""

    def __init__(self, root_id: str = ROOT_ID):
        self.root_id = root_id
        self.entries: dict[str, dict] = {
            root_id: {"name": "", "parent": None, "is_folder": True, "mtime": 0}
        }
        self.calls: Counter = Counter()
        self.fail_uploads: set[str] = set()
        self.fail_listing = False
        self._next_id = 0

    # Test helpers

    def _new_id(self) -> str:
        self._next_id += 1
        return f"id{self._next_id}"

    def add_file(
        self, name: str, content: bytes = b"", mtime: int = 1_600_000_000_000,
        parent_id: Optional[str] = None,
    ) -> str:
        entry_id = self._new_id()
        self.entries[entry_id] = {
            "name": name,
            "parent": parent_id or self.root_id,
            "is_folder": False,
            "mtime": mtime,
            "content": content,
        }
        return entry_id

    def add_folder(self, name: str, parent_id: Optional[str] = None) -> str:
        entry_id = self._new_id()
        self.entries[entry_id] = {
            "name": name,
            "parent": parent_id or self.root_id,
            "is_folder": True,
            "mtime": 1_600_000_000_000,
        }
        return entry_id

    def names(self, parent_id: Optional[str] = None) -> set[str]:
        parent_id = parent_id or self.root_id
        return {e["name"] for e in self.entries.values() if e["parent"] == parent_id}

    def id_of(self, name: str, parent_id: Optional[str] = None) -> Optional[str]:
        return self.find_by_name(name, parent_id or self.root_id, count=False)

    def mutating_calls(self) -> int:
        return sum(self.calls[name] for name in MUTATING_CALLS)

    # RemoteStorage protocol

    def list_children(self, folder_id: str) -> list[RemoteEntry]:
        self.calls["list_children"] += 1
        if self.fail_listing:
            raise DriveNetworkError("listing failed")
        return [
            RemoteEntry(
                id=entry_id,
                name=e["name"],
                is_folder=e["is_folder"],
                modified_time=e["mtime"],
            )
            for entry_id, e in self.entries.items()
            if e["parent"] == folder_id
        ]

    def get_modified_time(self, entry_id: str) -> Optional[int]:
        self.calls["get_modified_time"] += 1
        entry = self.entries.get(entry_id)
        return entry["mtime"] if entry else None

    def upload(
        self, local_path: Path, parent_folder_id: str, existing_id: Optional[str] = None
    ) -> str:
        self.calls["upload"] += 1
        local_path = Path(local_path)
        if local_path.name in self.fail_uploads:
            raise DriveUploadError(f"upload of {local_path.name} failed")
        content = local_path.read_bytes()
        mtime = local_mtime_millis(local_path)
        if existing_id is not None:
            self.entries[existing_id].update(content=content, mtime=mtime)
            return existing_id
        entry_id = self.add_file(local_path.name, content, mtime, parent_folder_id)
        return entry_id

    def download(self, entry_id: str, destination: Path) -> bool:
        self.calls["download"] += 1
        entry = self.entries[entry_id]
        if entry["is_folder"]:
            return False
        destination = Path(destination)
        destination.write_bytes(entry["content"])
        os.utime(destination, ns=(entry["mtime"] * 1_000_000,) * 2)
        return True

    def create_folder(self, name: str, parent_id: str) -> str:
        self.calls["create_folder"] += 1
        return self.add_folder(name, parent_id)

    def find_by_name(self, name: str, parent_id: str, count: bool = True) -> Optional[str]:
        if count:
            self.calls["find_by_name"] += 1
        for entry_id, e in self.entries.items():
            if e["parent"] == parent_id and e["name"].lower() == name.lower():
                return entry_id
        return None

    def delete(self, entry_id: str) -> bool:
        self.calls["delete"] += 1
        doomed = [entry_id]
        while doomed:
            current = doomed.pop()
            if self.entries.pop(current, None) is None:
                continue
            doomed.extend(i for i, e in self.entries.items() if e["parent"] == current)
        return True


@pytest.fixture
def storage():
    """Provide an empty in-memory remote."""
    return MemoryStorage()


@pytest.fixture
def clock():
    """Provide a manually advanced clock."""
    return FakeClock()


@pytest.fixture
def local_root(tmp_path):
    """Provide an existing, empty local sync root."""
    root = tmp_path / "local"
    root.mkdir()
    return root


@pytest.fixture
def make_engine(storage, local_root, clock):
    """Build engines sharing the remote, local root and clock."""

    def _make(**kwargs):
        store = SyncStateStore(local_root / ".sync_state.json")
        return SyncEngine(
            storage, local_root, storage.root_id, store, clock=clock, **kwargs
        )

    return _make


@pytest.fixture
def engine(make_engine):
    """Provide an engine with an empty baseline."""
    return make_engine()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove pydrivesync settings from the environment."""
    from pydrivesync.config import CONFIG_KEYS, ENV_PREFIX

    for key in CONFIG_KEYS:
        monkeypatch.delenv(f"{ENV_PREFIX}{key}", raising=False)
