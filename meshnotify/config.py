"""Configuration loaded from config.yaml with environment variable expansion."""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

import yaml
from croniter import croniter
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from meshnotify.exceptions import ConfigurationError
from meshnotify.models.notification import DEFAULT_TITLE

logger = logging.getLogger(__name__)

DEFAULT_ICON_URL = (
    "https://github.com/edward62740/Wireless-Mesh-Network-System/blob/master/"
    "Documentation/ltsn.png"
)


def expand_env_vars(config_str: str) -> str:
    """
    Expand environment variables in the format ${VAR_NAME} within a YAML string.
    Skips expansion in YAML comments (lines starting with #).

    Args:
        config_str: YAML configuration string potentially containing ${VAR_NAME} placeholders

    Returns:
        YAML string with all ${VAR_NAME} placeholders expanded to environment variable values

    Raises:
        KeyError: If a referenced environment variable is not set
    """
    def replace_var(match: re.Match[str]) -> str:
        var_name = match.group(1)
        try:
            return os.environ[var_name]
        except KeyError:
            msg = f"Environment variable '{var_name}' referenced in config.yaml but not set"
            raise KeyError(msg) from None

    lines = []
    for line in config_str.split("\n"):
        if line.lstrip().startswith("#"):
            lines.append(line)
        else:
            lines.append(re.sub(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}", replace_var, line))

    return "\n".join(lines)


def load_config_from_yaml(config_path: str | None = None) -> dict:
    """
    Load YAML configuration file and expand environment variables.

    Args:
        config_path: Path to config.yaml. If None, uses CONFIG_PATH environment variable,
                     falling back to /app/config.yaml.

    Returns:
        Parsed configuration mapping

    Raises:
        FileNotFoundError: If config file is not found
        ValueError: If the file is not valid YAML or references unset variables
    """
    if config_path is None:
        config_path = os.environ.get("CONFIG_PATH", "/app/config.yaml")

    config_file = Path(config_path)
    if not config_file.exists():
        msg = (
            f"Configuration file not found at {config_path}\n"
            f"Use CONFIG_PATH environment variable to override location."
        )
        raise FileNotFoundError(msg)

    with open(config_file) as f:
        config_str = f.read()

    try:
        expanded_config = expand_env_vars(config_str)
    except KeyError as e:
        msg = f"Error expanding environment variables in config.yaml: {e}"
        raise ValueError(msg) from None

    try:
        config_dict = yaml.safe_load(expanded_config)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in config.yaml: {e}"
        raise ValueError(msg) from None

    if not isinstance(config_dict, dict):
        msg = "config.yaml must contain a YAML mapping/dictionary at root level"
        raise ValueError(msg)

    return config_dict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=None,
        case_sensitive=False,
    )

    # Security
    auth_token: str  # Required
    environment: str = "development"

    # Observability
    log_level: str = "INFO"
    log_json: bool = True

    # Storage
    data_path: Path = Path("/data")
    devices_file: Path | None = None
    locations_file: Path | None = None
    recipients_file: Path | None = None
    users_file: Path | None = None

    # Push transport (FCM HTTP v1)
    fcm_project_id: str | None = None
    fcm_access_token: str | None = None
    fcm_base_url: str = "https://fcm.googleapis.com"
    fcm_timeout_seconds: int = Field(default=10, gt=0)

    # Notifications
    notification_title: str = DEFAULT_TITLE
    notification_icon_url: str | None = DEFAULT_ICON_URL
    fanout_max_concurrency: int | None = Field(
        default=None,
        description="Max concurrent sends per fan-out (unset: one per recipient)",
    )
    prune_max_concurrency: int = Field(default=8, ge=1)

    # Account cleanup
    cleanup_enabled: bool = True
    cleanup_cron: str = "0 0 * * *"
    cleanup_timezone: str = "UTC"
    cleanup_max_concurrency: int = Field(default=3, ge=1)
    cleanup_inactive_days: int = Field(default=3, ge=1)
    cleanup_page_size: int = Field(default=1000, ge=1, le=1000)
    cleanup_tick_seconds: int = Field(default=30, gt=0)

    @field_validator("fanout_max_concurrency")
    @classmethod
    def validate_fanout_concurrency(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            msg = "notifications.max_concurrency must be at least 1"
            raise ValueError(msg)
        return value

    @field_validator("cleanup_cron")
    @classmethod
    def validate_cron(cls, value: str) -> str:
        if not croniter.is_valid(value):
            msg = f"Invalid cron expression: {value}"
            raise ValueError(msg)
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            msg = f"Invalid log level: {value}"
            raise ValueError(msg)
        return level

    def resolved_path(self, name: str) -> Path:
        """Return a storage file path, defaulting to <data_path>/<name>.json."""
        explicit = getattr(self, f"{name}_file")
        return explicit if explicit is not None else self.data_path / f"{name}.json"


def _section(config_dict: dict, name: str) -> dict:
    value = config_dict.get(name)
    return value if isinstance(value, dict) else {}


def flatten_config(config_dict: dict) -> dict:
    """Flatten the nested config.yaml structure into Settings field names."""
    flat_config: dict = {}

    auth = _section(config_dict, "auth")
    if "token" in auth:
        flat_config["auth_token"] = auth["token"]

    if "environment" in config_dict:
        flat_config["environment"] = config_dict["environment"]

    logging_section = _section(config_dict, "logging")
    flat_config["log_level"] = logging_section.get("level", "INFO")
    flat_config["log_json"] = logging_section.get("json", True)

    storage = _section(config_dict, "storage")
    for key in ("data_path", "devices_file", "locations_file", "recipients_file", "users_file"):
        if storage.get(key) is not None:
            flat_config[key] = storage[key]

    fcm = _section(config_dict, "fcm")
    for key in ("project_id", "access_token", "base_url", "timeout_seconds"):
        if fcm.get(key) is not None:
            flat_config[f"fcm_{key}"] = fcm[key]

    notifications = _section(config_dict, "notifications")
    if "title" in notifications:
        flat_config["notification_title"] = notifications["title"]
    if "icon_url" in notifications:
        flat_config["notification_icon_url"] = notifications["icon_url"]
    if "max_concurrency" in notifications:
        flat_config["fanout_max_concurrency"] = notifications["max_concurrency"]
    if "prune_max_concurrency" in notifications:
        flat_config["prune_max_concurrency"] = notifications["prune_max_concurrency"]

    cleanup = _section(config_dict, "cleanup")
    for key in (
        "enabled",
        "cron",
        "timezone",
        "max_concurrency",
        "inactive_days",
        "page_size",
        "tick_seconds",
    ):
        if key in cleanup:
            flat_config[f"cleanup_{key}"] = cleanup[key]

    return flat_config


def load_settings(config_path: str | None = None) -> Settings:
    """
    Build Settings from config.yaml.

    Raises:
        ConfigurationError: If the file is missing, malformed or fails validation
    """
    try:
        config_dict = load_config_from_yaml(config_path)
    except (FileNotFoundError, ValueError) as e:
        raise ConfigurationError(str(e), context={"config_path": config_path}) from e

    try:
        return Settings(**flatten_config(config_dict))
    except ValidationError as e:
        logger.error("Configuration validation error: %s", e)
        raise ConfigurationError(
            "Configuration validation failed",
            context={"config_path": config_path, "errors": e.errors()},
        ) from e
