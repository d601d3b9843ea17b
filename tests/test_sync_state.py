"""Tests for the sync baseline and its persistence."""

import json
import os

from pydrivesync.sync import SyncState, SyncStateStore


class TestSyncState:
    """Tests for the in-memory baseline mapping."""

    def test_names_are_stored_lowercase(self):
        """Test names are normalized on construction and replace."""
        state = SyncState({"/sync": {"A.txt"}})
        assert state.get("/sync") == {"a.txt"}

        state.replace("/sync", {"B.TXT", "c.txt"})
        assert state.get("/sync") == {"b.txt", "c.txt"}

    def test_get_returns_copy(self):
        """Test mutating a returned baseline does not change the state."""
        state = SyncState({"/sync": {"a.txt"}})
        state.get("/sync").add("b.txt")
        assert state.get("/sync") == {"a.txt"}

    def test_get_unknown_folder_is_empty(self):
        """Test a folder that was never synced has an empty baseline."""
        assert SyncState().get("/nowhere") == set()

    def test_discard_folder_removes_subtree(self):
        """Test discarding a folder forgets it and everything below."""
        state = SyncState(
            {
                os.path.join("/sync", "docs"): {"a"},
                os.path.join("/sync", "docs", "deep"): {"b"},
                os.path.join("/sync", "docs2"): {"c"},
                "/sync": {"docs", "docs2"},
            }
        )

        state.discard_folder(os.path.join("/sync", "docs"))

        assert os.path.join("/sync", "docs") not in state
        assert os.path.join("/sync", "docs", "deep") not in state
        assert os.path.join("/sync", "docs2") in state
        assert "/sync" in state
        assert len(state) == 2

    def test_discard_folder_ignores_case(self):
        """Test a folder is forgotten when named with a different case."""
        docs = os.path.join("/sync", "docs")
        state = SyncState({docs: {"a"}, os.path.join(docs, "deep"): {"b"}})

        state.discard_folder(os.path.join("/sync", "Docs"))

        assert len(state) == 0


class TestSyncStateStore:
    """Tests for loading and saving the state file."""

    def test_load_missing_file(self, tmp_path):
        """Test a missing state file yields an empty mapping."""
        store = SyncStateStore(tmp_path / "state.json")
        assert store.load() == {}

    def test_load_malformed_json(self, tmp_path):
        """Test unparseable data yields an empty mapping."""
        path = tmp_path / "state.json"
        path.write_text("{not json")
        assert SyncStateStore(path).load() == {}

    def test_load_wrong_shape(self, tmp_path):
        """Test valid JSON of the wrong shape yields an empty mapping."""
        path = tmp_path / "state.json"
        for content in ("[]", '{"version": 1}', '{"folders": []}', '{"folders": {"a": 3}}'):
            path.write_text(content)
            assert SyncStateStore(path).load() == {}

    def test_save_and_load(self, tmp_path):
        """Test a saved snapshot loads back unchanged."""
        store = SyncStateStore(tmp_path / "state.json")
        mapping = {"/sync": {"a.txt", "b.txt"}, "/sync/docs": set()}

        assert store.save(mapping) is True
        assert store.load() == mapping

    def test_save_format(self, tmp_path):
        """Test the file holds a versioned, sorted snapshot."""
        path = tmp_path / "state.json"
        SyncStateStore(path).save({"/sync": {"b", "a"}})

        data = json.loads(path.read_text())
        assert data == {"version": 1, "folders": {"/sync": ["a", "b"]}}

    def test_save_leaves_no_temp_files(self, tmp_path):
        """Test the atomic write cleans up after itself."""
        store = SyncStateStore(tmp_path / "state.json")
        store.save({"/sync": {"a"}})
        store.save({"/sync": {"b"}})

        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]
        assert store.load() == {"/sync": {"b"}}

    def test_save_failure_returns_false(self, tmp_path):
        """Test an unwritable location is logged, not raised."""
        blocker = tmp_path / "blocker"
        blocker.write_text("file, not a directory")
        store = SyncStateStore(blocker / "state.json")

        assert store.save({"/sync": {"a"}}) is False

    def test_clear(self, tmp_path):
        """Test clearing removes the state file once."""
        store = SyncStateStore(tmp_path / "state.json")
        store.save({"/sync": {"a"}})

        assert store.clear() is True
        assert store.clear() is False
        assert store.load() == {}
