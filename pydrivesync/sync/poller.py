"""Periodic remote polling loops."""

import logging
import threading
from typing import Callable, Optional

from ..utils import FULL_LISTING_INTERVAL, RECONCILE_INTERVAL
from .engine import SyncEngine

logger = logging.getLogger(__name__)


class RemoteChangePoller:
    """Runs the two remote polling loops on background threads.

    The slow loop downloads root-level remote files that are missing or
    newer locally. The fast loop runs a full reconciliation pass. Each
    loop runs its body once right away, then once per interval, until
    the stop event is set. A failing iteration is logged and the loop
    carries on.
    """

    def __init__(
        self,
        engine: SyncEngine,
        stop_event: Optional[threading.Event] = None,
        full_listing_interval: float = FULL_LISTING_INTERVAL,
        reconcile_interval: float = RECONCILE_INTERVAL,
    ):
        """Initialize the poller.

        Args:
            engine: Engine whose passes are run
            stop_event: Shared event that ends both loops
            full_listing_interval: Seconds between root listing checks
            reconcile_interval: Seconds between reconciliation passes
        """
        self.engine = engine
        self.stop_event = stop_event if stop_event is not None else threading.Event()
        self.full_listing_interval = full_listing_interval
        self.reconcile_interval = reconcile_interval
        self._threads: list[threading.Thread] = []

    def run_full_listing_once(self) -> bool:
        """Run one slow-loop iteration. Returns False if it failed."""
        return self._run_once("full listing", self.engine.check_remote_changes)

    def run_reconcile_once(self) -> bool:
        """Run one fast-loop iteration. Returns False if it failed."""
        return self._run_once("reconciliation", self.engine.sync_all)

    def _run_once(self, name: str, action: Callable[[], object]) -> bool:
        try:
            result = action()
        except Exception as e:
            logger.error(f"Error in {name} loop: {e}", exc_info=True)
            return False
        logger.debug(f"{name.capitalize()} finished: {result}")
        return True

    def _loop(self, run_once: Callable[[], bool], interval: float) -> None:
        while not self.stop_event.is_set():
            run_once()
            if self.stop_event.wait(interval):
                break

    def start(self) -> None:
        """Start both loops."""
        if self._threads:
            return
        self._threads = [
            threading.Thread(
                target=self._loop,
                args=(self.run_full_listing_once, self.full_listing_interval),
                name="pydrivesync-full-listing",
                daemon=True,
            ),
            threading.Thread(
                target=self._loop,
                args=(self.run_reconcile_once, self.reconcile_interval),
                name="pydrivesync-reconcile",
                daemon=True,
            ),
        ]
        for thread in self._threads:
            thread.start()
        logger.info(
            f"Polling remote every {self.reconcile_interval}s "
            f"(full listing every {self.full_listing_interval}s)"
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal both loops to stop and wait for the current iteration."""
        self.stop_event.set()
        for thread in self._threads:
            thread.join(timeout=timeout)
        self._threads = []

    @property
    def is_running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)
