"""
Configuration loading, validation, and parsing.

Configuration is assembled from built-in defaults, the standard Vault
environment variables and an optional YAML file. Command-line options
are applied on top by the entry points.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .logger import get_logger


class ConfigurationError(Exception):
    """Raised when configuration is invalid or missing."""
    pass


DEFAULT_PATH_PREFIX = "venafi-pki"
DEFAULT_WARNING_DAYS = 30
DEFAULT_CRITICAL_DAYS = 7
DEFAULT_TIMEOUT = 30


@dataclass
class VaultConfig:
    """Vault connection settings."""
    addr: str = ""
    token: str = ""
    namespace: Optional[str] = None
    ca_cert: Optional[str] = None
    timeout: int = DEFAULT_TIMEOUT


@dataclass
class Settings:
    """Global settings."""
    path_prefix: str = DEFAULT_PATH_PREFIX
    warning_days: int = DEFAULT_WARNING_DAYS
    critical_days: int = DEFAULT_CRITICAL_DAYS
    dry_run: bool = False


@dataclass
class EmailNotificationConfig:
    """Email notification configuration."""
    enabled: bool = False
    from_email: str = ""
    to_emails: List[str] = field(default_factory=list)


@dataclass
class SlackNotificationConfig:
    """Slack notification configuration."""
    enabled: bool = False
    webhook_url: Optional[str] = None


@dataclass
class NotificationsConfig:
    """Notification channels configuration."""
    email: EmailNotificationConfig = field(default_factory=EmailNotificationConfig)
    slack: SlackNotificationConfig = field(default_factory=SlackNotificationConfig)


@dataclass
class AutoUpdateConfig:
    """Automatic update of expiring certificates."""
    enabled: bool = False
    update_command: Optional[str] = None
    cert_dir: Optional[str] = None


@dataclass
class Config:
    """Root configuration object."""
    vault: VaultConfig = field(default_factory=VaultConfig)
    settings: Settings = field(default_factory=Settings)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    auto_update: AutoUpdateConfig = field(default_factory=AutoUpdateConfig)


def _expand_env_vars(value: Any) -> Any:
    """
    Expand environment variables in string values.

    Supports ${VAR_NAME} syntax. Unknown variables are left as-is.
    """
    if isinstance(value, str):
        pattern = r"\$\{([^}]+)\}"

        def replace(match):
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))

        return re.sub(pattern, replace, value)

    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}

    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]

    return value


def _as_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item) for item in value]


def _setting(data: Dict[str, Any], key: str, env_var: str) -> str:
    """File value if set (and fully expanded), else the environment variable."""
    value = data.get(key)
    if value and not re.search(r"\$\{[^}]+\}", str(value)):
        return str(value)
    return os.environ.get(env_var, "")


def _parse_vault(data: Dict[str, Any]) -> VaultConfig:
    """
    Parse Vault connection settings.

    Environment variables fill any key missing from the file.
    """
    try:
        timeout = int(data.get("timeout", DEFAULT_TIMEOUT))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid vault timeout: {e}") from e

    return VaultConfig(
        addr=_setting(data, "addr", "VAULT_ADDR"),
        token=_setting(data, "token", "VAULT_TOKEN"),
        namespace=_setting(data, "namespace", "VAULT_NAMESPACE") or None,
        ca_cert=_setting(data, "ca_cert", "VAULT_CACERT") or None,
        timeout=timeout,
    )


def _parse_settings(data: Dict[str, Any]) -> Settings:
    try:
        return Settings(
            path_prefix=data.get("path_prefix", DEFAULT_PATH_PREFIX),
            warning_days=int(data.get("warning_days", DEFAULT_WARNING_DAYS)),
            critical_days=int(data.get("critical_days", DEFAULT_CRITICAL_DAYS)),
            dry_run=bool(data.get("dry_run", False)),
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid settings value: {e}") from e


def _parse_notifications(data: Dict[str, Any]) -> NotificationsConfig:
    email_data = data.get("email", {}) or {}
    email_config = EmailNotificationConfig(
        enabled=email_data.get("enabled", False),
        from_email=email_data.get("from_email", ""),
        to_emails=_as_list(email_data.get("to_emails")),
    )

    slack_data = data.get("slack", {}) or {}
    slack_config = SlackNotificationConfig(
        enabled=slack_data.get("enabled", False),
        webhook_url=_setting(slack_data, "webhook_url", "SLACK_WEBHOOK_URL") or None,
    )

    return NotificationsConfig(email=email_config, slack=slack_config)


def _parse_auto_update(data: Dict[str, Any]) -> AutoUpdateConfig:
    return AutoUpdateConfig(
        enabled=data.get("enabled", False),
        update_command=data.get("update_command"),
        cert_dir=data.get("cert_dir"),
    )


def _read_yaml(config_path: str) -> Dict[str, Any]:
    path = Path(config_path)

    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    if path.suffix not in (".yaml", ".yml"):
        raise ConfigurationError(
            f"Configuration file must be YAML (.yaml or .yml): {config_path}"
        )

    try:
        with open(path, "r") as f:
            raw_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in configuration file: {e}") from e
    except IOError as e:
        raise ConfigurationError(f"Failed to read configuration file: {e}") from e

    if raw_data is None:
        return {}
    if not isinstance(raw_data, dict):
        raise ConfigurationError("Configuration file must contain a mapping")

    return _expand_env_vars(raw_data)


def validate_vault_config(vault: VaultConfig) -> None:
    """
    Check that Vault can be reached with the given settings.

    Raises:
        ConfigurationError: If the address or token is missing or malformed
    """
    if not vault.addr:
        raise ConfigurationError("VAULT_ADDR environment variable is not set")
    if not vault.token:
        raise ConfigurationError("VAULT_TOKEN environment variable is not set")
    if not vault.addr.startswith(("http://", "https://")):
        raise ConfigurationError(
            f"Vault address must start with http:// or https://: {vault.addr}"
        )


def validate_settings(settings: Settings) -> None:
    """
    Check threshold and prefix settings.

    Raises:
        ConfigurationError: If a value is out of range
    """
    if not settings.path_prefix or not settings.path_prefix.strip("/"):
        raise ConfigurationError("Path prefix must not be empty")
    if settings.warning_days < 1:
        raise ConfigurationError("warning_days must be at least 1")
    if settings.critical_days < 1:
        raise ConfigurationError("critical_days must be at least 1")
    if settings.critical_days > settings.warning_days:
        raise ConfigurationError(
            f"critical_days ({settings.critical_days}) must not exceed "
            f"warning_days ({settings.warning_days})"
        )


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from the environment and an optional YAML file.

    Only parsing errors are raised here. Callers validate the parts they
    need after applying command-line overrides (see validate_vault_config
    and validate_settings).

    Args:
        config_path: Optional path to a YAML configuration file

    Returns:
        Config instance

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    logger = get_logger()

    data: Dict[str, Any] = {}
    if config_path:
        data = _read_yaml(config_path)
        logger.info(f"Loaded configuration from {config_path}")

    config = Config(
        vault=_parse_vault(data.get("vault", {}) or {}),
        settings=_parse_settings(data.get("settings", {}) or {}),
        notifications=_parse_notifications(data.get("notifications", {}) or {}),
        auto_update=_parse_auto_update(data.get("auto_update", {}) or {}),
    )

    if config.vault.namespace:
        logger.info(f"Using Vault namespace: {config.vault.namespace}")

    return config
