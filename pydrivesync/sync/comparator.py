"""Per-file comparison logic for watcher-triggered sync checks."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..utils import TIME_THRESHOLD_MS


class SyncAction(str, Enum):
    """Actions that can be taken for a single file."""

    UPLOAD = "upload"
    """Upload the local file as a new remote entry"""

    UPDATE = "update"
    """Replace the content of the existing remote entry"""

    SKIP = "skip"
    """No action needed (in sync, or remote newer)"""

    SUPPRESSED = "suppressed"
    """Skipped because the file was uploaded moments ago"""


@dataclass
class SyncDecision:
    """Represents a decision about how to sync a file."""

    action: SyncAction
    """Action to take"""

    reason: str
    """Human-readable reason for this decision"""

    local_mtime: Optional[int] = None
    """Local modification time in epoch milliseconds"""

    remote_mtime: Optional[int] = None
    """Remote modification time in epoch milliseconds (None if absent)"""

    @property
    def delta(self) -> Optional[int]:
        """Local minus remote modification time in milliseconds."""
        if self.local_mtime is None or self.remote_mtime is None:
            return None
        return self.local_mtime - self.remote_mtime


class FileComparator:
    """Applies the per-file conflict policy.

    The local side only ever wins: a remote entry that is strictly newer
    is left alone here (downloads are the pollers' job), which keeps an
    in-flight local edit or delete from being clobbered.
    """

    def __init__(self, time_threshold_ms: int = TIME_THRESHOLD_MS):
        """Initialize file comparator.

        Args:
            time_threshold_ms: Timestamp differences up to this many
                milliseconds count as "in sync"
        """
        self.time_threshold_ms = time_threshold_ms

    def compare(
        self,
        local_mtime: int,
        remote_mtime: Optional[int],
        exists_remotely: bool = True,
    ) -> SyncDecision:
        """Decide what to do with a local file.

        Args:
            local_mtime: Local modification time (epoch ms)
            remote_mtime: Remote modification time (epoch ms), None if unknown
            exists_remotely: Whether a remote counterpart was found

        Returns:
            SyncDecision for this file
        """
        if not exists_remotely:
            return SyncDecision(
                action=SyncAction.UPLOAD,
                reason="New local file",
                local_mtime=local_mtime,
            )

        # A missing remote timestamp compares as the epoch, so local wins
        remote = remote_mtime if remote_mtime is not None else 0
        delta = local_mtime - remote

        if delta > self.time_threshold_ms:
            return SyncDecision(
                action=SyncAction.UPDATE,
                reason="Local file is newer",
                local_mtime=local_mtime,
                remote_mtime=remote,
            )
        if delta < -self.time_threshold_ms:
            return SyncDecision(
                action=SyncAction.SKIP,
                reason="Remote file is newer, not downloading",
                local_mtime=local_mtime,
                remote_mtime=remote,
            )
        return SyncDecision(
            action=SyncAction.SKIP,
            reason="Already in sync (within time threshold)",
            local_mtime=local_mtime,
            remote_mtime=remote,
        )

    def suppressed(self, local_mtime: Optional[int] = None) -> SyncDecision:
        """Decision for a file inside its post-upload suppression window."""
        return SyncDecision(
            action=SyncAction.SUPPRESSED,
            reason="Recently uploaded",
            local_mtime=local_mtime,
        )
