"""Unit tests for utility functions and models."""

import os

import pytest

from pydrivesync.models import LocalEntry, RemoteEntry
from pydrivesync.utils import (
    FOLDER_MIME_TYPE,
    format_rfc3339_millis,
    is_ignored_name,
    is_partial_download_name,
    is_safe_entry_name,
    is_state_file_name,
    local_mtime_millis,
    name_key,
    parse_rfc3339_millis,
)


class TestTimestamps:
    """Tests for RFC 3339 <-> epoch milliseconds conversion."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("1970-01-01T00:00:01.500Z", 1500),
            ("2025-01-15T10:30:00Z", 1736937000000),
            ("2025-01-15T10:30:00.123+00:00", 1736937000123),
            ("2025-01-15T12:30:00.000+02:00", 1736937000000),
        ],
    )
    def test_parse(self, value, expected):
        """Test parsing of common Drive timestamp shapes."""
        assert parse_rfc3339_millis(value) == expected

    @pytest.mark.parametrize("value", [None, "", "yesterday", "2025-13-45T00:00:00Z"])
    def test_parse_invalid(self, value):
        """Test invalid timestamps parse to None."""
        assert parse_rfc3339_millis(value) is None

    def test_format_keeps_milliseconds(self):
        """Test formatting is exact to the millisecond."""
        assert format_rfc3339_millis(1736937000123) == "2025-01-15T10:30:00.123Z"
        assert parse_rfc3339_millis(format_rfc3339_millis(1736937000123)) == 1736937000123

    def test_local_mtime_millis(self, tmp_path):
        """Test local mtimes are read in milliseconds."""
        path = tmp_path / "f.txt"
        path.write_text("x")
        os.utime(path, ns=(1_600_000_000_123_000_000,) * 2)

        assert local_mtime_millis(path) == 1_600_000_000_123


class TestNames:
    """Tests for name normalization and ignore rules."""

    def test_name_key(self):
        """Test names compare case-insensitively."""
        assert name_key("Report.PDF") == name_key("report.pdf") == "report.pdf"

    def test_state_file_and_temp_siblings(self):
        """Test the state file and its temp files are recognized."""
        assert is_state_file_name(".sync_state.json")
        assert is_state_file_name(".SYNC_STATE.JSON")
        assert is_state_file_name(".sync_state.json.x8k2.tmp")
        assert not is_state_file_name("sync_state.json")
        assert is_state_file_name("custom.json", state_file_name="custom.json")

    def test_partial_downloads(self):
        """Test in-progress download temp files are recognized."""
        assert is_partial_download_name(".movie.mp4.abc123.part")
        assert not is_partial_download_name("movie.part")
        assert not is_partial_download_name(".hidden")

    def test_is_ignored_name(self):
        """Test regular names are never ignored."""
        assert is_ignored_name(".sync_state.json")
        assert is_ignored_name(".a.txt.1234.part")
        assert not is_ignored_name("a.txt")
        assert not is_ignored_name(".bashrc")

    def test_is_safe_entry_name(self):
        """Test only single path components are usable as local names."""
        assert is_safe_entry_name("a.txt")
        assert is_safe_entry_name("..hidden")
        for name in ("", ".", "..", "../x", "a/b", "/etc", "nul\0byte"):
            assert not is_safe_entry_name(name), name


class TestModels:
    """Tests for entry models."""

    def test_remote_entry_from_api_response(self):
        """Test a Drive file resource is converted."""
        entry = RemoteEntry.from_api_response(
            {
                "id": "abc",
                "name": "Notes.TXT",
                "mimeType": "text/plain",
                "modifiedTime": "1970-01-01T00:00:02.000Z",
            }
        )

        assert entry == RemoteEntry("abc", "Notes.TXT", False, 2000)
        assert entry.key == "notes.txt"

    def test_remote_folder_without_time(self):
        """Test folder detection and the missing-timestamp default."""
        entry = RemoteEntry.from_api_response(
            {"id": "f", "name": "docs", "mimeType": FOLDER_MIME_TYPE}
        )

        assert entry.is_folder is True
        assert entry.modified_time == 0

    def test_local_entry_from_path(self, tmp_path):
        """Test a local path is stat-ed into an entry."""
        (tmp_path / "Dir").mkdir()
        entry = LocalEntry.from_path(tmp_path / "Dir")

        assert entry.is_directory is True
        assert entry.name == "Dir"
        assert entry.key == "dir"
