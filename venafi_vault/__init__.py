"""
Utility modules for the Venafi PKI contingency tooling.

This package contains:
- identifiers: Storage key derivation (common name, serial, content hash)
- inspection: Certificate parsing
- storage: Vault raw storage operations
- config_loader: Configuration loading and validation
- logger: Centralized logging setup
- helpers: Expiry calculations and common utilities
- notification: Email and Slack alerts
"""

from .logger import setup_logger, get_logger
from .config_loader import (
    load_config,
    Config,
    ConfigurationError,
    VaultConfig,
    Settings,
    NotificationsConfig,
    EmailNotificationConfig,
    SlackNotificationConfig,
    AutoUpdateConfig,
)
from .identifiers import (
    DerivationMode,
    CertificateIdentity,
    InvalidInputError,
    derive_by_common_name,
    derive_by_serial,
    derive_by_content_hash,
    derive_storage_key,
)
from .inspection import (
    CertificateDetails,
    CertificateParseError,
    inspect_certificate,
    get_serial_from_certificate,
)
from .storage import (
    VaultStorageClient,
    CertificateRecord,
    StorageError,
    CertificateNotFoundError,
    build_storage_path,
)
from .helpers import (
    ExpiryStatus,
    classify_expiry,
    days_until_expiry,
    parse_name_list,
)
from .notification import (
    NotificationManager,
    AlertContext,
)

__version__ = "1.0.0"

__all__ = [
    # Logger
    "setup_logger",
    "get_logger",
    # Config
    "load_config",
    "Config",
    "ConfigurationError",
    "VaultConfig",
    "Settings",
    "NotificationsConfig",
    "EmailNotificationConfig",
    "SlackNotificationConfig",
    "AutoUpdateConfig",
    # Identifiers
    "DerivationMode",
    "CertificateIdentity",
    "InvalidInputError",
    "derive_by_common_name",
    "derive_by_serial",
    "derive_by_content_hash",
    "derive_storage_key",
    # Inspection
    "CertificateDetails",
    "CertificateParseError",
    "inspect_certificate",
    "get_serial_from_certificate",
    # Storage
    "VaultStorageClient",
    "CertificateRecord",
    "StorageError",
    "CertificateNotFoundError",
    "build_storage_path",
    # Helpers
    "ExpiryStatus",
    "classify_expiry",
    "days_until_expiry",
    "parse_name_list",
    # Notifications
    "NotificationManager",
    "AlertContext",
]
