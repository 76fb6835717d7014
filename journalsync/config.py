"""Cloud sync configuration.

The configuration is stored as JSON in ``~/.config/journalsync/config.json``::

    {
      "backend": "s3",
      "aws_access": "your_aws_access_key",
      "aws_secret": "your_aws_secret_key",
      "aws_bucket": "your_aws_bucket_name",
      "aws_region": "your_aws_region"
    }

Credentials can also be supplied through ``JOURNALSYNC_*`` environment
variables, which take precedence over the file.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Optional, Union

from .exceptions import ConfigError
from .stores.filesystem import atomic_write
from .utils import DEFAULT_RETRY_DELAY, DEFAULT_TRANSFER_RETRIES

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "config.json"

BACKENDS = ("s3", "http")

# Environment variable -> config field
ENV_OVERRIDES = {
    "JOURNALSYNC_BACKEND": "backend",
    "JOURNALSYNC_AWS_ACCESS": "aws_access",
    "JOURNALSYNC_AWS_SECRET": "aws_secret",
    "JOURNALSYNC_AWS_REGION": "aws_region",
    "JOURNALSYNC_AWS_BUCKET": "aws_bucket",
    "JOURNALSYNC_HTTP_URL": "http_url",
    "JOURNALSYNC_HTTP_TOKEN": "http_token",
    "JOURNALSYNC_DATA_DIR": "data_dir",
}


def _is_blank(value: Optional[str]) -> bool:
    return not isinstance(value, str) or not value.strip()


@dataclass
class CloudConfig:
    """Settings for the remote store and the sync engine."""

    backend: str = "s3"
    """Remote store backend: "s3" or "http" """

    aws_access: Optional[str] = None
    aws_secret: Optional[str] = None
    aws_region: Optional[str] = None
    aws_bucket: Optional[str] = None

    http_url: Optional[str] = None
    """Base URL for the http backend"""

    http_token: Optional[str] = None
    """Bearer token for the http backend"""

    data_dir: Optional[str] = None
    """Directory holding the local index and entries"""

    heartbeat_write: bool = False
    """Push the local index to the remote before each pipeline merge"""

    transfer_retries: int = DEFAULT_TRANSFER_RETRIES
    """Retries per failed entry transfer during a merge"""

    retry_delay: float = DEFAULT_RETRY_DELAY
    """Initial backoff delay in seconds"""

    lock_timeout: Optional[float] = None
    """Seconds to wait for a running sync; None waits indefinitely"""

    tombstone_retention_ms: Optional[int] = None
    """Purge tombstones older than this; None keeps them forever.

    A device that last synced before a purge still holds the live record and
    pushes it back on its next sync, so the entry reappears. Keep this longer
    than the longest time any device stays offline.
    """

    @property
    def data_path(self) -> Path:
        """Resolved data directory."""
        if self.data_dir:
            return Path(self.data_dir).expanduser()
        return Path.home() / ".local" / "share" / "journalsync"

    def validate(self) -> None:
        """Check that the settings needed by the selected backend are present.

        Raises:
            ConfigError: If the configuration is incomplete or invalid
        """
        if self.backend not in BACKENDS:
            raise ConfigError(
                f"Unknown backend {self.backend!r} (expected one of {BACKENDS})"
            )
        if self.backend == "s3":
            missing = [
                name
                for name in ("aws_access", "aws_secret", "aws_region", "aws_bucket")
                if _is_blank(getattr(self, name))
            ]
            if missing:
                raise ConfigError(f"Missing AWS settings: {', '.join(missing)}")
        else:
            if _is_blank(self.http_url):
                raise ConfigError("Missing http_url for the http backend")
            if not self.http_url.startswith(("http://", "https://")):
                raise ConfigError(f"Invalid http_url: {self.http_url}")

        if self.transfer_retries < 0:
            raise ConfigError("transfer_retries must not be negative")
        if self.retry_delay < 0:
            raise ConfigError("retry_delay must not be negative")
        if self.lock_timeout is not None and self.lock_timeout < 0:
            raise ConfigError("lock_timeout must not be negative")
        if self.tombstone_retention_ms is not None and self.tombstone_retention_ms <= 0:
            raise ConfigError("tombstone_retention_ms must be positive")

    def to_dict(self) -> dict:
        """Convert config to dictionary for JSON serialization."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict) -> "CloudConfig":
        """Create a CloudConfig from a dictionary, ignoring unknown keys.

        Raises:
            ConfigError: If the data is not a dictionary
        """
        if not isinstance(data, dict):
            raise ConfigError("Configuration must be a JSON object")
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            names = ", ".join(sorted(unknown))
            logger.warning(f"Ignoring unknown config keys: {names}")
        try:
            return cls(**{k: v for k, v in data.items() if k in known})
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def redacted(self) -> dict[str, Any]:
        """Dictionary form with secrets masked, for display."""
        data = self.to_dict()
        for name in ("aws_secret", "http_token"):
            if data.get(name):
                data[name] = "****" + data[name][-4:]
        return data


class ConfigManager:
    """Loads, saves and deletes the configuration file."""

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        """Initialize the config manager.

        Args:
            config_dir: Directory holding config.json. Defaults to
                ``$JOURNALSYNC_CONFIG_DIR`` or ``~/.config/journalsync``
        """
        if config_dir is None:
            env_dir = os.environ.get("JOURNALSYNC_CONFIG_DIR")
            config_dir = (
                Path(env_dir) if env_dir else Path.home() / ".config" / "journalsync"
            )
        self.config_dir = Path(config_dir)

    def get_config_path(self) -> Path:
        """Path of the configuration file."""
        return self.config_dir / CONFIG_FILE_NAME

    def exists(self) -> bool:
        return self.get_config_path().exists()

    def load(self) -> CloudConfig:
        """Load the configuration with environment overrides applied.

        Returns:
            CloudConfig (not validated; call validate() before use)

        Raises:
            ConfigError: If the file exists but is not valid JSON
        """
        data: dict = {}
        path = self.get_config_path()
        if path.exists():
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                raise ConfigError(f"Config file {path} is not valid JSON: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"Config file {path} must hold a JSON object")

        for env_name, field_name in ENV_OVERRIDES.items():
            value = os.environ.get(env_name)
            if value:
                data[field_name] = value

        return CloudConfig.from_dict(data)

    def is_configured(self) -> bool:
        """Check whether a complete configuration is available."""
        try:
            self.load().validate()
        except ConfigError:
            return False
        return True

    def save(self, config: CloudConfig) -> CloudConfig:
        """Validate and write the configuration file.

        Raises:
            ConfigError: If the configuration is invalid
        """
        config.validate()
        path = self.get_config_path()
        atomic_write(path, json.dumps(config.to_dict(), indent=2).encode("utf-8"))
        os.chmod(path, 0o600)
        logger.debug(f"Saved configuration to {path}")
        return config

    def create(self, config: CloudConfig) -> CloudConfig:
        """Write a new configuration file.

        Raises:
            ConfigError: If a configuration already exists or is invalid
        """
        if self.exists():
            raise ConfigError(
                f"Configuration already exists at {self.get_config_path()}"
            )
        return self.save(config)

    def update(self, config: CloudConfig) -> CloudConfig:
        """Replace an existing configuration file.

        Raises:
            ConfigError: If no configuration exists yet or the new one is invalid
        """
        if not self.exists():
            raise ConfigError("No configuration to update; create one first")
        return self.save(config)

    def delete(self) -> bool:
        """Delete the configuration file.

        Returns:
            True if a file was deleted, False if none existed
        """
        path = self.get_config_path()
        if path.exists():
            path.unlink()
            logger.debug(f"Deleted configuration at {path}")
            return True
        return False
