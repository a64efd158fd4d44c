"""
Storage key derivation for certificate records.

The Venafi PKI secrets engine stores each certificate under
``<prefix>/certs/<key>`` where the key is computed by one of three
schemes. These functions reproduce those schemes exactly so that a
manually written record replaces the plugin's record instead of
creating an orphan next to it.

All functions are pure: no I/O, no configuration, no shared state.
"""

import hashlib
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Optional


class InvalidInputError(ValueError):
    """Raised when derivation inputs violate a precondition."""
    pass


class DerivationMode(Enum):
    """Addressing scheme used by the storage layer."""
    BY_COMMON_NAME = "cn"
    BY_SERIAL = "serial"
    BY_CONTENT_HASH = "hash"

    @classmethod
    def from_cli(cls, value: str) -> "DerivationMode":
        """
        Resolve a command-line mode value (cn, serial, hash).

        Raises:
            InvalidInputError: If the value names no known mode
        """
        for mode in cls:
            if mode.value == value:
                return mode
        valid = ", ".join(m.value for m in cls)
        raise InvalidInputError(f"Invalid mode: {value} (expected one of: {valid})")


@dataclass(frozen=True)
class CertificateIdentity:
    """Identity tuple hashed by the content-hash mode."""
    common_name: str = ""
    alt_names: FrozenSet[str] = field(default_factory=frozenset)
    zone: str = ""


_SERIAL_PATTERN = re.compile(r"[0-9a-fA-F:]+")
_DIGEST_PATTERN = re.compile(r"[0-9a-fA-F]{40}")


def derive_by_common_name(common_name: str) -> str:
    """
    Derive the storage key for the common-name mode.

    The key is the common name itself, untouched. Callers must not
    assume it is safe to use as a file name or URL segment.

    Args:
        common_name: Certificate common name

    Returns:
        The storage key

    Raises:
        InvalidInputError: If the common name is empty
    """
    if not common_name:
        raise InvalidInputError("Common name must not be empty")
    return common_name


def derive_by_serial(serial_hex: str) -> str:
    """
    Derive the storage key for the serial-number mode.

    Lower-cases the hex digits and turns every ``:`` byte separator
    into ``-``. No numeric reinterpretation takes place, so leading
    zero bytes are kept as written.

    Args:
        serial_hex: Hex serial number, optionally colon-delimited per byte

    Returns:
        The storage key, e.g. ``00-11-22-33-44``

    Raises:
        InvalidInputError: If the serial is empty or contains characters
            other than hex digits and colons
    """
    if not serial_hex:
        raise InvalidInputError("Serial number must not be empty")
    if not _SERIAL_PATTERN.fullmatch(serial_hex):
        raise InvalidInputError(
            f"Serial number contains invalid characters: {serial_hex!r} "
            "(only hex digits and ':' are allowed)"
        )
    return serial_hex.lower().replace(":", "-")


def _alt_name_set(alt_names: Optional[Iterable[str]]) -> FrozenSet[str]:
    # A bare string is iterable too and would hash its characters.
    if isinstance(alt_names, (str, bytes)):
        raise InvalidInputError(
            f"Alt names must be a collection of names, not a single string: {alt_names!r}"
        )
    return frozenset(name for name in alt_names or () if name)


def canonical_alt_names(alt_names: Optional[Iterable[str]]) -> str:
    """Deduplicate, sort and comma-join alternative names."""
    return ",".join(sorted(_alt_name_set(alt_names)))


def content_hash_input(common_name: str, alt_names: Optional[Iterable[str]], zone: str) -> str:
    """
    Build the string hashed by the content-hash mode.

    Format: ``[<cn>;][<sorted,alt,names>;]<zone>``
    """
    to_hash = ""
    if common_name:
        to_hash += f"{common_name};"

    sorted_alt_names = canonical_alt_names(alt_names)
    if sorted_alt_names:
        to_hash += f"{sorted_alt_names};"

    return to_hash + zone


def derive_by_content_hash(
    common_name: str,
    alt_names: Optional[Iterable[str]],
    zone: str,
) -> str:
    """
    Derive the storage key for the content-hash mode.

    SHA-1 is what the storage layout was built with. It addresses a
    non-secret identity tuple and is not a security control; changing
    the algorithm would orphan every existing record.

    Args:
        common_name: Certificate common name (may be empty)
        alt_names: Subject alternative names (may be empty, order and
            duplicates are irrelevant)
        zone: Zone the certificate was requested in

    Returns:
        40-character lower-case hex digest

    Raises:
        InvalidInputError: If the zone is empty, if both the common
            name and the alternative names are empty, or if the
            alternative names are given as one plain string
    """
    alt_names = _alt_name_set(alt_names)

    if not common_name and not alt_names:
        raise InvalidInputError(
            "Either common name or alt names is required for hash mode"
        )
    if not zone:
        raise InvalidInputError("Zone is required for hash mode")

    to_hash = content_hash_input(common_name, alt_names, zone)
    return hashlib.sha1(to_hash.encode("utf-8")).hexdigest()


def derive_from_identity(identity: CertificateIdentity) -> str:
    """Content-hash key for a CertificateIdentity."""
    return derive_by_content_hash(identity.common_name, identity.alt_names, identity.zone)


def normalize_content_hash(value: str) -> str:
    """
    Validate an already computed content-hash key.

    Raises:
        InvalidInputError: If the value is not a 40-character hex digest
    """
    if not value or not _DIGEST_PATTERN.fullmatch(value):
        raise InvalidInputError(
            f"Certificate UID for hash mode must be a 40-character hex digest: {value!r}"
        )
    return value.lower()


def derive_storage_key(
    mode: DerivationMode,
    common_name: str = "",
    serial_hex: str = "",
    alt_names: Optional[Iterable[str]] = None,
    zone: str = "",
) -> str:
    """
    Derive a storage key using the given mode.

    Only the inputs relevant to the mode are looked at.

    Raises:
        InvalidInputError: If the mode's preconditions are not met
    """
    if mode is DerivationMode.BY_COMMON_NAME:
        return derive_by_common_name(common_name)
    if mode is DerivationMode.BY_SERIAL:
        return derive_by_serial(serial_hex)
    if mode is DerivationMode.BY_CONTENT_HASH:
        return derive_by_content_hash(common_name, alt_names, zone)
    raise InvalidInputError(f"Unsupported derivation mode: {mode!r}")
