"""Shared pytest fixtures.

Certificates are generated on the fly with ``cryptography`` so that
serials, names and validity windows are known exactly. Vault is
replaced by an in-memory fake with the same interface as
VaultStorageClient.
"""

from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from venafi_vault.logger import setup_logger
from venafi_vault.storage import CertificateNotFoundError, CertificateRecord


@pytest.fixture(autouse=True)
def logger():
    """Fresh logger per test, bound to the captured stderr."""
    return setup_logger(use_colors=False, verbose=True)


@pytest.fixture
def vault_env(monkeypatch):
    """Minimal Vault environment."""
    monkeypatch.setenv("VAULT_ADDR", "https://vault.example.com:8200")
    monkeypatch.setenv("VAULT_TOKEN", "s.test-token")
    monkeypatch.delenv("VAULT_NAMESPACE", raising=False)
    monkeypatch.delenv("VAULT_CACERT", raising=False)


@pytest.fixture
def make_certificate():
    """Factory returning ``(cert_pem, key_pem)`` for a self-signed certificate."""

    def _make(
        common_name: Optional[str] = "example.com",
        alt_names: Iterable[str] = (),
        serial: int = 0xAA01FF,
        not_after: Optional[datetime] = None,
    ):
        key = ec.generate_private_key(ec.SECP256R1())
        now = datetime.now(timezone.utc)
        not_after = not_after or now + timedelta(days=90)
        not_before = min(now, not_after) - timedelta(days=30)

        subject = x509.Name(
            [x509.NameAttribute(NameOID.COMMON_NAME, common_name)] if common_name else []
        )
        issuer = x509.Name([
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example Corp"),
            x509.NameAttribute(NameOID.COMMON_NAME, "Example Issuing CA"),
        ])

        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(key.public_key())
            .serial_number(serial)
            .not_valid_before(not_before)
            .not_valid_after(not_after)
        )
        alt_names = list(alt_names)
        if alt_names:
            builder = builder.add_extension(
                x509.SubjectAlternativeName([x509.DNSName(n) for n in alt_names]),
                critical=False,
            )

        cert = builder.sign(key, hashes.SHA256())
        cert_pem = cert.public_bytes(serialization.Encoding.PEM).decode()
        key_pem = key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.NoEncryption(),
        ).decode()
        return cert_pem, key_pem

    return _make


class FakeStorage:
    """In-memory stand-in for VaultStorageClient."""

    def __init__(self, records: Optional[Dict[str, CertificateRecord]] = None):
        self.records: Dict[str, CertificateRecord] = dict(records or {})
        self.writes: List[str] = []

    def read_record(self, path: str) -> CertificateRecord:
        if path not in self.records:
            raise CertificateNotFoundError(path)
        return self.records[path]

    def write_record(self, path: str, record: CertificateRecord) -> None:
        self.records[path] = record
        self.writes.append(path)

    def list_keys(self, path_prefix: str) -> List[str]:
        prefix = f"{path_prefix.strip('/')}/certs/"
        return [p[len(prefix):] for p in self.records if p.startswith(prefix)]


@pytest.fixture
def fake_storage():
    return FakeStorage()
