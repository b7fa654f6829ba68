"""Configuration management for the Directory Sync tool."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_RETRY_ATTEMPTS,
    DEFAULT_TIMEOUT_SECONDS,
    LOG_BACKUP_COUNT,
    LOG_MAX_BYTES,
)


def _build_section(section_cls: type, name: str, data: Any, config_path: Path) -> Any:
    """Construct one config section, reporting unknown keys as a ValueError."""
    if not isinstance(data, dict):
        raise ValueError(
            f"Invalid '{name}' section in {config_path}: "
            f"expected dictionary, got {type(data).__name__}"
        )
    try:
        return section_cls(**data)
    except TypeError as e:
        raise ValueError(f"Invalid '{name}' section in {config_path}: {e}") from e


@dataclass
class DirectoryConfig:
    """Directory API connection configuration."""

    base_url: str
    tenant_id: str
    api_token: str
    timeout: int = DEFAULT_TIMEOUT_SECONDS
    retry_attempts: int = DEFAULT_RETRY_ATTEMPTS
    batch_size: int = DEFAULT_BATCH_SIZE
    verify_ssl: bool = True

    @property
    def masked_token(self) -> str:
        """API token safe for display (first 10 characters)."""
        if len(self.api_token) <= 10:
            return "*" * len(self.api_token)
        return f"{self.api_token[:10]}..."


@dataclass
class MonitorConfig:
    """Transaction polling configuration."""

    poll_interval: float = DEFAULT_POLL_INTERVAL
    max_attempts: int | None = None  # None = poll until a terminal state


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"
    file: Path | None = None
    error_file: Path | None = None
    max_bytes: int = LOG_MAX_BYTES
    backup_count: int = LOG_BACKUP_COUNT


@dataclass
class SyncConfig:
    """
    Complete configuration for the Directory Sync tool.

    This combines all configuration sections.
    """

    directory: DirectoryConfig | None = None
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_file(cls, config_path: Path) -> "SyncConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML config file

        Returns:
            SyncConfig instance
        """
        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file {config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ValueError(
                f"Invalid configuration file structure in {config_path}: "
                f"expected dictionary, got {type(data).__name__}"
            )

        directory_data = data.get("directory")
        directory = (
            _build_section(DirectoryConfig, "directory", directory_data, config_path)
            if directory_data
            else None
        )

        monitor = _build_section(MonitorConfig, "monitor", data.get("monitor") or {}, config_path)

        logging_data = data.get("logging") or {}
        if isinstance(logging_data, dict):
            logging_data = dict(logging_data)
            # Convert file path strings to Path if present
            for key in ("file", "error_file"):
                if logging_data.get(key):
                    logging_data[key] = Path(logging_data[key])
        logging = _build_section(LoggingConfig, "logging", logging_data, config_path)

        return cls(directory=directory, monitor=monitor, logging=logging)

    def to_file(self, config_path: Path) -> None:
        """
        Save configuration to YAML file.

        Args:
            config_path: Path to save config file
        """
        data = {
            "directory": self.directory.__dict__ if self.directory else None,
            "monitor": self.monitor.__dict__,
            "logging": {
                k: str(v) if isinstance(v, Path) else v
                for k, v in self.logging.__dict__.items()
                if v is not None
            },
        }

        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    @classmethod
    def from_env(cls) -> "SyncConfig":
        """
        Create configuration from environment variables.

        Environment variables:
            QMPLUS_BASE_URL: Directory API base URL (including /api)
            QMPLUS_TENANT_ID: Tenant identifier
            QMPLUS_API_TOKEN: API token
            API_TIMEOUT: Request timeout in seconds (default: 30)
            API_RETRY_ATTEMPTS: Network retry attempts (default: 3)
            API_BATCH_SIZE: Users per bulk request (default: 100)
            POLL_INTERVAL: Seconds between status polls (default: 5)
            POLL_MAX_ATTEMPTS: Give up after this many polls (default: unlimited)
            LOG_LEVEL: Logging level (default: INFO)
            LOG_FORMAT: "console" or "json" (default: console)
            LOG_FILE: Combined log file path (optional)
            LOG_ERROR_FILE: Error-only log file path (optional)

        Returns:
            SyncConfig instance

        Raises:
            ValueError: If QMPLUS_BASE_URL is set but credentials are missing
        """
        directory = None
        base_url = os.getenv("QMPLUS_BASE_URL")
        if base_url:
            tenant_id = os.environ.get("QMPLUS_TENANT_ID", "")
            api_token = os.environ.get("QMPLUS_API_TOKEN", "")

            missing_creds = []
            if not tenant_id:
                missing_creds.append("QMPLUS_TENANT_ID")
            if not api_token:
                missing_creds.append("QMPLUS_API_TOKEN")

            if missing_creds:
                raise ValueError(
                    f"QMPLUS_BASE_URL is set but required credentials are missing: "
                    f"{', '.join(missing_creds)}. Check your .env file."
                )

            verify_ssl_str = os.environ.get("API_VERIFY_SSL", "true").lower()

            directory = DirectoryConfig(
                base_url=base_url,
                tenant_id=tenant_id,
                api_token=api_token,
                timeout=int(os.environ.get("API_TIMEOUT", str(DEFAULT_TIMEOUT_SECONDS))),
                retry_attempts=int(
                    os.environ.get("API_RETRY_ATTEMPTS", str(DEFAULT_RETRY_ATTEMPTS))
                ),
                batch_size=int(os.environ.get("API_BATCH_SIZE", str(DEFAULT_BATCH_SIZE))),
                verify_ssl=verify_ssl_str not in ("false", "0", "no", "off"),
            )

        max_attempts = os.environ.get("POLL_MAX_ATTEMPTS")
        monitor = MonitorConfig(
            poll_interval=float(os.environ.get("POLL_INTERVAL", str(DEFAULT_POLL_INTERVAL))),
            max_attempts=int(max_attempts) if max_attempts else None,
        )

        log_file = os.environ.get("LOG_FILE")
        error_file = os.environ.get("LOG_ERROR_FILE")
        logging_config = LoggingConfig(
            level=os.environ.get("LOG_LEVEL", "INFO"),
            format=os.environ.get("LOG_FORMAT", "console"),
            file=Path(log_file) if log_file else None,
            error_file=Path(error_file) if error_file else None,
        )

        return cls(directory=directory, monitor=monitor, logging=logging_config)


def load_config(config_file: Path | None = None) -> SyncConfig:
    """
    Load configuration from file or environment variables.

    Args:
        config_file: Optional path to YAML config file

    Returns:
        SyncConfig instance

    Raises:
        FileNotFoundError: If config_file is specified but doesn't exist
    """
    if config_file:
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")
        return SyncConfig.from_file(config_file)
    return SyncConfig.from_env()
