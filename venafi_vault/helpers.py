"""
Common utility functions.

Provides helpers for expiry calculations, status classification
and command-line list parsing.
"""

import os
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional


class ExpiryStatus(Enum):
    """Expiry state of a certificate relative to the alert thresholds."""
    OK = "OK"
    WARNING = "WARNING"
    CRITICAL = "CRITICAL"
    EXPIRED = "EXPIRED"

    @property
    def needs_alert(self) -> bool:
        return self is not ExpiryStatus.OK

    @property
    def needs_update(self) -> bool:
        return self in (ExpiryStatus.CRITICAL, ExpiryStatus.EXPIRED)


def days_until_expiry(
    expires_on: datetime,
    now: Optional[datetime] = None,
) -> int:
    """
    Calculate whole days remaining until expiration.

    Args:
        expires_on: Certificate expiration datetime
        now: Reference time (defaults to the current UTC time)

    Returns:
        Number of days remaining (negative if expired)
    """
    # Ensure timezone-aware
    if expires_on.tzinfo is None:
        expires_on = expires_on.replace(tzinfo=timezone.utc)

    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    return (expires_on - now).days


def classify_expiry(
    days: int,
    warning_days: int = 30,
    critical_days: int = 7,
) -> ExpiryStatus:
    """
    Classify days-until-expiry against the alert thresholds.

    Args:
        days: Days until expiry
        warning_days: Threshold for WARNING
        critical_days: Threshold for CRITICAL

    Returns:
        The matching ExpiryStatus
    """
    if days <= 0:
        return ExpiryStatus.EXPIRED
    elif days <= critical_days:
        return ExpiryStatus.CRITICAL
    elif days <= warning_days:
        return ExpiryStatus.WARNING
    return ExpiryStatus.OK


def format_expiry_date(expires_on: Optional[datetime]) -> str:
    """Format an expiry date for reports and notifications."""
    if expires_on is None:
        return "N/A"
    return expires_on.strftime("%Y-%m-%d %H:%M UTC")


def parse_name_list(value: Optional[str]) -> List[str]:
    """
    Split a comma-separated command-line list.

    Surrounding whitespace is stripped and empty entries are dropped.

    Examples:
        >>> parse_name_list("a.example.com, b.example.com,,")
        ['a.example.com', 'b.example.com']
    """
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def read_text_file(path: str) -> str:
    """
    Read a PEM (or any text) file.

    Raises:
        FileNotFoundError: If the file does not exist
        OSError: If the file is not UTF-8 text (e.g. DER encoded)
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"File not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    except UnicodeDecodeError as e:
        raise OSError(f"File is not PEM text: {path}") from e
