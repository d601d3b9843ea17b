"""Configuration management for pydrivesync.

Values are resolved from environment variables first, then from the
key=value file written by ``pydrivesync init``
(``~/.config/pydrivesync/config``), then from built-in defaults.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from . import utils
from .exceptions import DriveConfigError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://www.googleapis.com"

ENV_PREFIX = "PYDRIVESYNC_"

# Keys accepted in the config file and as PYDRIVESYNC_<KEY> environment variables
CONFIG_KEYS = (
    "ACCESS_TOKEN",
    "API_URL",
    "ROOT_FOLDER_ID",
    "LOCAL_ROOT",
    "STATE_FILE",
    "DEBOUNCE_SECONDS",
    "UPLOAD_SUPPRESSION_SECONDS",
    "TIME_THRESHOLD_MS",
    "FULL_LISTING_INTERVAL",
    "RECONCILE_INTERVAL",
    "MAX_WORKERS",
    "USE_LOCAL_TRASH",
)


class Config:
    """Resolves pydrivesync settings from the environment and the config file."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                        ~/.config/pydrivesync/
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "pydrivesync"
        self.config_dir = config_dir
        self.config_file = config_dir / "config"
        self._file_values: Optional[dict[str, str]] = None

    def _load_file(self) -> dict[str, str]:
        """Read the key=value config file, caching the result."""
        if self._file_values is not None:
            return self._file_values

        values: dict[str, str] = {}
        if self.config_file.exists():
            try:
                for line in self.config_file.read_text(encoding="utf-8").splitlines():
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    values[key.strip().upper()] = value.strip()
            except OSError as e:
                logger.warning(f"Failed to read config file {self.config_file}: {e}")
        self._file_values = values
        return values

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Get a raw setting value.

        Args:
            key: Setting name without prefix (e.g. "ACCESS_TOKEN")
            default: Value returned when the setting is not defined

        Returns:
            The setting value from the environment, the config file, or default
        """
        key = key.upper()
        env_value = os.environ.get(f"{ENV_PREFIX}{key}")
        if env_value:
            return env_value
        return self._load_file().get(key, default)

    def _get_float(self, key: str, default: float) -> float:
        value = self.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError as e:
            raise DriveConfigError(f"Invalid number for {key}: {value!r}") from e

    def _get_int(self, key: str, default: int) -> int:
        return int(self._get_float(key, default))

    @property
    def access_token(self) -> Optional[str]:
        return self.get("ACCESS_TOKEN")

    @property
    def api_url(self) -> str:
        return (self.get("API_URL") or DEFAULT_API_URL).rstrip("/")

    @property
    def root_folder_id(self) -> Optional[str]:
        return self.get("ROOT_FOLDER_ID")

    @property
    def local_root(self) -> Optional[Path]:
        value = self.get("LOCAL_ROOT")
        return Path(value).expanduser() if value else None

    @property
    def state_file_name(self) -> str:
        return self.get("STATE_FILE") or utils.STATE_FILE_NAME

    @property
    def debounce_seconds(self) -> float:
        return self._get_float("DEBOUNCE_SECONDS", utils.DEBOUNCE_SECONDS)

    @property
    def upload_suppression_seconds(self) -> float:
        return self._get_float(
            "UPLOAD_SUPPRESSION_SECONDS", utils.UPLOAD_SUPPRESSION_SECONDS
        )

    @property
    def time_threshold_ms(self) -> int:
        return self._get_int("TIME_THRESHOLD_MS", utils.TIME_THRESHOLD_MS)

    @property
    def full_listing_interval(self) -> float:
        return self._get_float("FULL_LISTING_INTERVAL", utils.FULL_LISTING_INTERVAL)

    @property
    def reconcile_interval(self) -> float:
        return self._get_float("RECONCILE_INTERVAL", utils.RECONCILE_INTERVAL)

    @property
    def max_workers(self) -> int:
        return self._get_int("MAX_WORKERS", utils.DEFAULT_MAX_WORKERS)

    @property
    def use_local_trash(self) -> bool:
        value = self.get("USE_LOCAL_TRASH", "false") or "false"
        return value.lower() in ("1", "true", "yes", "on")

    def is_configured(self) -> bool:
        """Check whether the settings required for syncing are present."""
        return bool(self.access_token and self.root_folder_id and self.local_root)

    def save(self, **values: str) -> Path:
        """Persist settings to the config file, merging with existing values.

        Args:
            **values: Settings to store, keyed by lowercase name
                      (e.g. access_token="...")

        Returns:
            Path of the written config file
        """
        merged = dict(self._load_file())
        for key, value in values.items():
            key = key.upper()
            if key not in CONFIG_KEYS:
                raise DriveConfigError(f"Unknown config key: {key}")
            merged[key] = str(value)

        self.config_dir.mkdir(parents=True, exist_ok=True)
        lines = [f"{key}={merged[key]}" for key in sorted(merged)]
        self.config_file.write_text("\n".join(lines) + "\n", encoding="utf-8")
        try:
            self.config_file.chmod(0o600)
        except OSError:
            logger.debug(f"Could not restrict permissions on {self.config_file}")
        self._file_values = merged
        return self.config_file


config = Config()
