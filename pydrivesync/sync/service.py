"""Long-running sync service: engine, watcher and poller wired together."""

import logging
import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional

from ..api import DriveClient
from ..config import Config
from ..exceptions import DriveConfigError
from ..utils import (
    DEBOUNCE_SECONDS,
    DEFAULT_MAX_WORKERS,
    FULL_LISTING_INTERVAL,
    RECONCILE_INTERVAL,
)
from .engine import SyncEngine
from .poller import RemoteChangePoller
from .state import SyncStateStore
from .watcher import LocalChangeWatcher

logger = logging.getLogger(__name__)


def build_engine(
    config: Config,
    client: Optional[DriveClient] = None,
    local_root: Optional[Path] = None,
    root_folder_id: Optional[str] = None,
) -> SyncEngine:
    """Create a SyncEngine from configuration.

    Args:
        config: Resolved settings
        client: Remote client (created from config if None)
        local_root: Overrides the configured local root
        root_folder_id: Overrides the configured remote root folder

    Returns:
        Engine with its baseline loaded from the state file

    Raises:
        DriveConfigError: If the local root or root folder id is missing
    """
    local_root = local_root or config.local_root
    root_folder_id = root_folder_id or config.root_folder_id
    if local_root is None:
        raise DriveConfigError("No local root configured. Run 'pydrivesync init'.")
    if not root_folder_id:
        raise DriveConfigError("No root folder id configured. Run 'pydrivesync init'.")

    if client is None:
        client = DriveClient(access_token=config.access_token, api_url=config.api_url)

    local_root = Path(local_root).expanduser().absolute()
    store = SyncStateStore(local_root / config.state_file_name)
    return SyncEngine(
        storage=client,
        local_root=local_root,
        root_folder_id=root_folder_id,
        store=store,
        state_file_name=config.state_file_name,
        time_threshold_ms=config.time_threshold_ms,
        upload_suppression_seconds=config.upload_suppression_seconds,
        use_local_trash=config.use_local_trash,
    )


class SyncService:
    """Runs the local watcher and both remote polling loops for one engine.

    All triggered per-file work shares one bounded thread pool. Stopping
    the service ends the loops and drops pending debounce timers, then
    waits for in-flight sync calls to finish.
    """

    def __init__(
        self,
        engine: SyncEngine,
        debounce_seconds: float = DEBOUNCE_SECONDS,
        full_listing_interval: float = FULL_LISTING_INTERVAL,
        reconcile_interval: float = RECONCILE_INTERVAL,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self.engine = engine
        self.stop_event = threading.Event()
        self.executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="pydrivesync-worker"
        )
        self.watcher = LocalChangeWatcher(
            engine, self.executor, debounce_seconds=debounce_seconds
        )
        self.poller = RemoteChangePoller(
            engine,
            stop_event=self.stop_event,
            full_listing_interval=full_listing_interval,
            reconcile_interval=reconcile_interval,
        )
        self._started = False

    @classmethod
    def from_config(
        cls, config: Config, client: Optional[DriveClient] = None, **overrides
    ) -> "SyncService":
        """Build a service (and its engine) from configuration.

        Keyword overrides replace the configured debounce, interval and
        worker values when not None.
        """
        settings = {
            "debounce_seconds": config.debounce_seconds,
            "full_listing_interval": config.full_listing_interval,
            "reconcile_interval": config.reconcile_interval,
            "max_workers": config.max_workers,
        }
        settings.update({k: v for k, v in overrides.items() if v is not None})
        return cls(build_engine(config, client=client), **settings)

    def start(self) -> None:
        """Start watching the local root and polling the remote side."""
        if self._started:
            return
        self.engine.local_root.mkdir(parents=True, exist_ok=True)
        self.watcher.start()
        self.poller.start()
        self._started = True
        logger.info(f"Sync service started for {self.engine.local_root}")

    def stop(self) -> None:
        """Stop all loops and wait for in-flight work."""
        if not self._started:
            return
        logger.info("Stopping sync service...")
        self.stop_event.set()
        self.watcher.stop()
        self.poller.stop()
        self.executor.shutdown(wait=True)
        self._started = False
        logger.info("Sync service stopped")

    def run_forever(self) -> None:
        """Start the service and block until SIGINT/SIGTERM or stop()."""

        def signal_handler(signum, frame):
            logger.info(f"Received signal {signum}, shutting down gracefully...")
            self.stop_event.set()

        previous = {
            signum: signal.signal(signum, signal_handler)
            for signum in (signal.SIGTERM, signal.SIGINT)
        }
        try:
            self.start()
            while not self.stop_event.wait(1.0):
                pass
        finally:
            self.stop()
            for signum, handler in previous.items():
                signal.signal(signum, handler)
