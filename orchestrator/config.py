"""
Orchestrator - Configuration.

============================================================
PURPOSE
============================================================
Relay configuration loaded from a JSON file.

Resolution order for the file path:
1. Explicit path (CLI argument)
2. $RELAY_CONFIG
3. ./config.json

A .env file is loaded first. $PROWL_API_KEYS (comma
separated) overrides prowl_api_keys from the file.

Unknown keys and wrong types fail loudly.

============================================================
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from croniter import croniter
from dotenv import load_dotenv

from core.exceptions import ConfigurationError


logger = logging.getLogger(__name__)


DEFAULT_CONFIG_PATH = "config.json"
CONFIG_PATH_ENV = "RELAY_CONFIG"
API_KEYS_ENV = "PROWL_API_KEYS"

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
LOG_FORMATS = ("json", "text")


# ============================================================
# RELAY CONFIGURATION
# ============================================================

@dataclass
class RelayConfig:
    """
    Relay service configuration.
    """

    fingerprints_file: str
    """Path of the JSON snapshot of alert records."""

    prowl_api_keys: List[str] = field(default_factory=list)
    """Prowl API keys. Required unless test_mode."""

    app_name: str = "Grafana"
    """Application name shown in notifications."""

    bind_host: str = "0.0.0.0:3333"
    """HTTP listen address as host:port."""

    linear_retry_secs: int = 60
    """Fixed delay between delivery retries."""

    wait_secs_between_notifications: int = 0
    """Pause after each successful delivery. 0 disables pacing."""

    alert_every_minutes: Optional[int] = None
    """Re-alert interval for firing alerts. None disables."""

    realert_cron: Optional[str] = None
    """Cron expression (UTC) for re-alerts. None disables."""

    test_mode: bool = False
    """Log notifications instead of sending them."""

    max_in_flight: int = 4
    """Maximum concurrent delivery attempts."""

    request_timeout_secs: int = 10
    """Per-request timeout for the Prowl API."""

    scheduler_tick_secs: int = 60
    """Re-alert scheduler tick."""

    log_level: str = "INFO"
    """Logging level."""

    log_format: str = "text"
    """Log output format (json or text)."""

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        if not self.fingerprints_file.strip():
            errors.append("fingerprints_file must not be empty")

        if not self.test_mode and not self.prowl_api_keys:
            errors.append("prowl_api_keys is required unless test_mode is enabled")

        if any(not key.strip() for key in self.prowl_api_keys):
            errors.append("prowl_api_keys must not contain empty keys")

        try:
            self.listen_address()
        except ValueError as e:
            errors.append(str(e))

        if self.linear_retry_secs <= 0:
            errors.append("linear_retry_secs must be positive")

        if self.wait_secs_between_notifications < 0:
            errors.append("wait_secs_between_notifications must not be negative")

        if self.alert_every_minutes is not None and self.alert_every_minutes <= 0:
            errors.append("alert_every_minutes must be positive")

        if self.realert_cron is not None and not croniter.is_valid(self.realert_cron):
            errors.append(f"realert_cron is not a valid cron expression: {self.realert_cron!r}")

        if self.max_in_flight < 1:
            errors.append("max_in_flight must be at least 1")

        if self.request_timeout_secs <= 0:
            errors.append("request_timeout_secs must be positive")

        if self.scheduler_tick_secs <= 0:
            errors.append("scheduler_tick_secs must be positive")

        if self.log_level.upper() not in LOG_LEVELS:
            errors.append(f"log_level must be one of {', '.join(LOG_LEVELS)}")

        if self.log_format not in LOG_FORMATS:
            errors.append(f"log_format must be one of {', '.join(LOG_FORMATS)}")

        return errors

    def listen_address(self) -> Tuple[str, int]:
        """Split bind_host into (host, port)."""
        host, sep, port = self.bind_host.rpartition(":")
        if not sep or not host or not port.isdigit():
            raise ValueError(f"bind_host must be host:port, got {self.bind_host!r}")
        port_number = int(port)
        if not 0 < port_number < 65536:
            raise ValueError(f"bind_host port out of range: {port_number}")
        return host, port_number

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dictionary with API keys masked."""
        data = asdict(self)
        data["prowl_api_keys"] = [f"{key[:4]}..." for key in self.prowl_api_keys]
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RelayConfig":
        """
        Build and validate configuration from parsed JSON.

        Raises:
            ConfigurationError: On unknown keys, wrong types or invalid values
        """
        if not isinstance(data, dict):
            raise ConfigurationError(
                f"Configuration must be a JSON object, got {type(data).__name__}"
            )

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"Unknown configuration keys: {', '.join(unknown)}",
                config_key=unknown[0],
            )

        if "fingerprints_file" not in data:
            raise ConfigurationError(
                "Missing required configuration key: fingerprints_file",
                config_key="fingerprints_file",
            )

        for name, value in data.items():
            _check_type(name, value)

        config = cls(**data)
        errors = config.validate()
        if errors:
            raise ConfigurationError(f"Invalid configuration: {'; '.join(errors)}")
        return config


# ============================================================
# TYPE CHECKS
# ============================================================

_STRING_KEYS = {"fingerprints_file", "app_name", "bind_host", "log_level", "log_format"}
_INT_KEYS = {
    "linear_retry_secs",
    "wait_secs_between_notifications",
    "max_in_flight",
    "request_timeout_secs",
    "scheduler_tick_secs",
}
_OPTIONAL_INT_KEYS = {"alert_every_minutes"}
_OPTIONAL_STRING_KEYS = {"realert_cron"}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_type(name: str, value: Any) -> None:
    if name in _STRING_KEYS:
        ok = isinstance(value, str)
    elif name in _INT_KEYS:
        ok = _is_int(value)
    elif name in _OPTIONAL_INT_KEYS:
        ok = value is None or _is_int(value)
    elif name in _OPTIONAL_STRING_KEYS:
        ok = value is None or isinstance(value, str)
    elif name == "test_mode":
        ok = isinstance(value, bool)
    elif name == "prowl_api_keys":
        ok = isinstance(value, list) and all(isinstance(k, str) for k in value)
    else:
        ok = True

    if not ok:
        raise ConfigurationError(
            f"Configuration key {name} has wrong type {type(value).__name__}",
            config_key=name,
            actual_value=value,
        )


# ============================================================
# LOADING
# ============================================================

def resolve_config_path(path: Optional[Union[str, Path]] = None) -> Path:
    """Resolve the configuration file path."""
    if path:
        return Path(path)
    return Path(os.getenv(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)


def load_config(path: Optional[Union[str, Path]] = None) -> RelayConfig:
    """
    Load configuration from disk.

    Args:
        path: Explicit configuration path

    Returns:
        Validated RelayConfig

    Raises:
        ConfigurationError: If the file is missing, unreadable or invalid
    """
    load_dotenv()

    config_path = resolve_config_path(path)
    try:
        raw = config_path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        raise ConfigurationError(
            f"Configuration file not found: {config_path}",
            config_key=CONFIG_PATH_ENV,
            cause=e,
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Cannot read configuration file {config_path}: {e}",
            cause=e,
        ) from e

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Configuration file {config_path} is not valid JSON: {e}",
            cause=e,
        ) from e

    env_keys = os.getenv(API_KEYS_ENV)
    if env_keys and isinstance(data, dict):
        data["prowl_api_keys"] = [k.strip() for k in env_keys.split(",") if k.strip()]

    config = RelayConfig.from_dict(data)
    logger.info(f"Loaded configuration from {config_path}")
    return config


__all__ = [
    "RelayConfig",
    "load_config",
    "resolve_config_path",
    "CONFIG_PATH_ENV",
    "API_KEYS_ENV",
]
