"""
Certificate inspection.

Extracts the common name, serial number, validity window and subject
alternative names from PEM-encoded certificates.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional, Union

from cryptography import x509
from cryptography.hazmat.backends import default_backend


class CertificateParseError(Exception):
    """Raised when certificate data cannot be parsed."""
    pass


@dataclass
class CertificateDetails:
    """Parsed certificate attributes."""
    common_name: str
    subject: str
    issuer: str
    serial_number: str  # colon-delimited lower-case hex
    not_before: datetime
    not_after: datetime
    dns_names: List[str] = field(default_factory=list)
    san_list: List[str] = field(default_factory=list)  # "DNS:a", "IP Address:b"


def load_certificate(pem: Union[str, bytes]) -> x509.Certificate:
    """
    Load the first certificate of a PEM blob.

    Args:
        pem: PEM data as text or bytes

    Returns:
        Parsed certificate

    Raises:
        CertificateParseError: If no certificate can be parsed
    """
    if isinstance(pem, str):
        pem = pem.encode("utf-8")

    if not pem or not pem.strip():
        raise CertificateParseError("Certificate data is empty")

    try:
        return x509.load_pem_x509_certificate(pem, default_backend())
    except ValueError as e:
        raise CertificateParseError(f"Unable to parse certificate: {e}") from e


def format_serial(serial: int) -> str:
    """
    Format an integer serial as colon-delimited lower-case hex bytes.

    Odd-length hex is left padded so every group is a whole byte:
    ``0xAFF`` becomes ``0a:ff``.
    """
    hex_serial = format(serial, "x")
    if len(hex_serial) % 2:
        hex_serial = "0" + hex_serial
    return ":".join(hex_serial[i:i + 2] for i in range(0, len(hex_serial), 2))


def get_serial_from_certificate(pem: Union[str, bytes]) -> str:
    """
    Extract the serial number of a certificate.

    Returns:
        Colon-delimited lower-case hex serial, e.g. ``aa:01:ff``
    """
    return format_serial(load_certificate(pem).serial_number)


def _get_common_name(name: x509.Name) -> str:
    attributes = name.get_attributes_for_oid(x509.oid.NameOID.COMMON_NAME)
    if not attributes:
        return ""
    return str(attributes[0].value)


def _get_alt_names(cert: x509.Certificate) -> List[x509.GeneralName]:
    try:
        san_ext = cert.extensions.get_extension_for_oid(
            x509.oid.ExtensionOID.SUBJECT_ALTERNATIVE_NAME
        )
    except x509.ExtensionNotFound:
        return []
    return list(san_ext.value)


def _describe_alt_name(name: x509.GeneralName) -> Optional[str]:
    if isinstance(name, x509.DNSName):
        return f"DNS:{name.value}"
    if isinstance(name, x509.IPAddress):
        return f"IP Address:{name.value}"
    if isinstance(name, x509.RFC822Name):
        return f"email:{name.value}"
    if isinstance(name, x509.UniformResourceIdentifier):
        return f"URI:{name.value}"
    return None


def inspect_certificate(pem: Union[str, bytes]) -> CertificateDetails:
    """
    Parse a PEM certificate into its displayable attributes.

    Args:
        pem: PEM data as text or bytes

    Returns:
        CertificateDetails for the first certificate in the blob

    Raises:
        CertificateParseError: If the data is not a certificate
    """
    cert = load_certificate(pem)

    alt_names = _get_alt_names(cert)
    dns_names = [n.value for n in alt_names if isinstance(n, x509.DNSName)]
    san_list = [d for d in (_describe_alt_name(n) for n in alt_names) if d]

    return CertificateDetails(
        common_name=_get_common_name(cert.subject),
        subject=cert.subject.rfc4514_string(),
        issuer=cert.issuer.rfc4514_string(),
        serial_number=format_serial(cert.serial_number),
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
        dns_names=dns_names,
        san_list=san_list,
    )


def format_san_list(details: CertificateDetails) -> str:
    """Render SANs the way ``openssl x509 -text`` lists them."""
    if not details.san_list:
        return "No SAN found"
    return ", ".join(details.san_list)
