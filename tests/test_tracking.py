"""Tests for the transient name sets."""

from pydrivesync.sync import ExpiringNameSet, NameSet


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestExpiringNameSet:
    """Tests for the recently-uploaded window."""

    def test_member_inside_window(self):
        """Test a key added at t=0 is still present at t=5s."""
        clock = FakeClock()
        recent = ExpiringNameSet(10.0, clock=clock)
        recent.add("/sync/a.txt")

        clock.now = 5.0
        assert "/sync/a.txt" in recent
        assert len(recent) == 1

    def test_member_expires(self):
        """Test a key is gone once the window has elapsed."""
        clock = FakeClock()
        recent = ExpiringNameSet(10.0, clock=clock)
        recent.add("/sync/a.txt")

        clock.now = 10.5
        assert "/sync/a.txt" not in recent
        assert len(recent) == 0

    def test_add_restarts_window(self):
        """Test re-adding a key extends its lifetime."""
        clock = FakeClock()
        recent = ExpiringNameSet(10.0, clock=clock)
        recent.add("k")
        clock.now = 8.0
        recent.add("k")

        clock.now = 15.0
        assert "k" in recent

    def test_discard(self):
        """Test a key can be removed before it expires."""
        recent = ExpiringNameSet(10.0, clock=FakeClock())
        recent.add("k")
        recent.discard("k")
        recent.discard("missing")
        assert "k" not in recent


class TestNameSet:
    """Tests for the lock-guarded set."""

    def test_basic_operations(self):
        """Test add, discard, membership and snapshot."""
        names = NameSet()
        names.add("a")
        names.add("b")
        names.discard("a")
        names.discard("missing")

        assert "b" in names
        assert "a" not in names
        assert names.snapshot() == {"b"}
        assert len(names) == 1

    def test_snapshot_is_independent(self):
        """Test a snapshot can be iterated while the set is modified."""
        names = NameSet()
        names.add("a")
        names.add("b")

        for key in names.snapshot():
            names.discard(key)

        assert len(names) == 0

    def test_clear(self):
        """Test clearing empties the set."""
        names = NameSet()
        names.add("a")
        names.clear()
        assert len(names) == 0
