"""Utility functions and constants for pydrivesync."""

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

# =============================================================================
# Sync tunables
# =============================================================================

# Name of the persisted baseline file, kept in the local sync root
STATE_FILE_NAME: str = ".sync_state.json"

# Local and remote modification times closer than this are considered equal
TIME_THRESHOLD_MS: int = 2000

# How long a freshly uploaded file is shielded from per-file sync checks
UPLOAD_SUPPRESSION_SECONDS: float = 10.0

# Delay used to coalesce bursts of create/modify events on one path
DEBOUNCE_SECONDS: float = 0.5

# Slow remote full-listing check (10 minutes)
FULL_LISTING_INTERVAL: float = 600.0

# Fast full reconciliation loop
RECONCILE_INTERVAL: float = 30.0

# Worker threads for watcher- and poller-triggered work
DEFAULT_MAX_WORKERS: int = 4

# Retry configuration for transient HTTP errors
DEFAULT_MAX_RETRIES: int = 3
DEFAULT_RETRY_DELAY: float = 1.0  # seconds

# MIME type used by Drive-style APIs to mark folders
FOLDER_MIME_TYPE: str = "application/vnd.google-apps.folder"


# =============================================================================
# Timestamp utilities
# =============================================================================


def parse_rfc3339_millis(timestamp_str: Optional[str]) -> Optional[int]:
    """Parse an RFC 3339 timestamp into epoch milliseconds.

    Args:
        timestamp_str: Timestamp string (e.g., "2025-01-15T10:30:00.123Z")

    Returns:
        Milliseconds since the epoch, or None if parsing fails

    Examples:
        >>> parse_rfc3339_millis("1970-01-01T00:00:01.500Z")
        1500
        >>> parse_rfc3339_millis("not a date") is None
        True
    """
    if not timestamp_str:
        return None

    try:
        if timestamp_str.endswith("Z"):
            timestamp_str = timestamp_str[:-1] + "+00:00"
        dt = datetime.fromisoformat(timestamp_str)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return int(round(dt.timestamp() * 1000))
    except (ValueError, AttributeError):
        return None


def format_rfc3339_millis(millis: int) -> str:
    """Format epoch milliseconds as an RFC 3339 UTC timestamp.

    Examples:
        >>> format_rfc3339_millis(1500)
        '1970-01-01T00:00:01.500Z'
    """
    dt = datetime.fromtimestamp(millis / 1000, tz=timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{millis % 1000:03d}Z"


def local_mtime_millis(path: Path) -> int:
    """Return the modification time of a local path in epoch milliseconds."""
    return path.stat().st_mtime_ns // 1_000_000


# =============================================================================
# Name utilities
# =============================================================================


def name_key(name: str) -> str:
    """Normalize an entry name for case-insensitive comparison."""
    return name.strip().lower()


def path_key(path: Path) -> str:
    """Normalize a local path for use as a key in transient name sets."""
    return str(path).lower()


def is_state_file_name(name: str, state_file_name: str = STATE_FILE_NAME) -> bool:
    """Check whether a name is the state file or one of its temp siblings.

    Examples:
        >>> is_state_file_name(".sync_state.json")
        True
        >>> is_state_file_name(".sync_state.json.a1b2.tmp")
        True
        >>> is_state_file_name("notes.txt")
        False
    """
    key = name_key(name)
    state_key = name_key(state_file_name)
    return key == state_key or key.startswith(state_key + ".")


def is_partial_download_name(name: str) -> bool:
    """Check whether a name is an in-progress download temp file.

    Examples:
        >>> is_partial_download_name(".report.pdf.k2j3h4.part")
        True
        >>> is_partial_download_name("report.pdf")
        False
    """
    return name.startswith(".") and name.endswith(".part")


def is_ignored_name(name: str, state_file_name: str = STATE_FILE_NAME) -> bool:
    """Check whether a local name is sync bookkeeping that must never be synced."""
    return is_state_file_name(name, state_file_name) or is_partial_download_name(name)


def is_safe_entry_name(name: str) -> bool:
    """Check whether a remote name maps to exactly one local path component.

    Remote names may contain path separators; joining such a name onto a
    local folder would escape it or create intermediate directories.

    Examples:
        >>> is_safe_entry_name("report.pdf")
        True
        >>> is_safe_entry_name("../escaped.txt")
        False
        >>> is_safe_entry_name("a/b")
        False
        >>> is_safe_entry_name("..")
        False
    """
    if name in ("", ".", ".."):
        return False
    if "\0" in name or "/" in name or os.sep in name:
        return False
    return not (os.altsep and os.altsep in name)
