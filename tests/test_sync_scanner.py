"""Tests for directory listing."""

from pydrivesync.models import RemoteEntry
from pydrivesync.sync import DirectoryScanner


class TestScanLocal:
    """Tests for local listings."""

    def test_lists_direct_children(self, tmp_path):
        """Test files and directories are listed by lowercase name."""
        (tmp_path / "A.txt").write_text("a")
        (tmp_path / "docs").mkdir()
        (tmp_path / "docs" / "nested.txt").write_text("n")

        entries = DirectoryScanner().scan_local(tmp_path)

        assert set(entries) == {"a.txt", "docs"}
        assert entries["a.txt"].name == "A.txt"
        assert entries["docs"].is_directory is True

    def test_excludes_bookkeeping_files(self, tmp_path):
        """Test the state file, its temp files and partial downloads are skipped."""
        (tmp_path / ".sync_state.json").write_text("{}")
        (tmp_path / ".sync_state.json.abc.tmp").write_text("{}")
        (tmp_path / ".big.iso.xyz.part").write_text("")
        (tmp_path / "keep.txt").write_text("k")

        assert set(DirectoryScanner().scan_local(tmp_path)) == {"keep.txt"}

    def test_custom_state_file_name(self, tmp_path):
        """Test the excluded state file name is configurable."""
        (tmp_path / "state.db").write_text("")
        (tmp_path / ".sync_state.json").write_text("")

        entries = DirectoryScanner("state.db").scan_local(tmp_path)

        assert set(entries) == {".sync_state.json"}

    def test_missing_directory(self, tmp_path):
        """Test a missing directory lists as empty."""
        assert DirectoryScanner().scan_local(tmp_path / "missing") == {}


class TestIndexRemote:
    """Tests for keying remote listings."""

    def test_keys_by_lowercase_name(self):
        """Test remote entries are keyed case-insensitively."""
        entries = DirectoryScanner().index_remote(
            [
                RemoteEntry("1", "Report.PDF", False, 0),
                RemoteEntry("2", ".sync_state.json", False, 0),
                RemoteEntry("3", "photos", True, 0),
            ]
        )

        assert set(entries) == {"report.pdf", "photos"}
        assert entries["report.pdf"].id == "1"

    def test_unusable_remote_names_are_skipped(self):
        """Test names that are not a single path component are left out."""
        entries = DirectoryScanner().index_remote(
            [
                RemoteEntry("1", "../escaped.txt", False, 0),
                RemoteEntry("2", "a/b", True, 0),
                RemoteEntry("3", "..", True, 0),
                RemoteEntry("4", "ok.txt", False, 0),
            ]
        )

        assert list(entries) == ["ok.txt"]

    def test_duplicate_names_keep_last(self):
        """Test case-colliding remote names collapse to one entry."""
        entries = DirectoryScanner().index_remote(
            [RemoteEntry("1", "a.txt", False, 0), RemoteEntry("2", "A.TXT", False, 0)]
        )

        assert list(entries) == ["a.txt"]
        assert entries["a.txt"].id == "2"
