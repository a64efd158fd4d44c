"""Tests for certificate inspection."""

from datetime import datetime, timezone

import pytest

from venafi_vault.identifiers import derive_by_serial
from venafi_vault.inspection import (
    CertificateParseError,
    format_san_list,
    format_serial,
    get_serial_from_certificate,
    inspect_certificate,
    load_certificate,
)


@pytest.mark.parametrize(
    "serial, expected",
    [
        (0xAA01FF, "aa:01:ff"),
        (0xAFF, "0a:ff"),
        (0x1, "01"),
        (0x00112233, "11:22:33"),
    ],
)
def test_format_serial(serial, expected):
    assert format_serial(serial) == expected


def test_serial_from_certificate(make_certificate):
    cert_pem, _ = make_certificate(serial=0xAA01FF)
    assert get_serial_from_certificate(cert_pem) == "aa:01:ff"


def test_serial_from_certificate_matches_typed_serial(make_certificate):
    cert_pem, _ = make_certificate(serial=0xAA01FF)
    extracted = derive_by_serial(get_serial_from_certificate(cert_pem))
    assert extracted == derive_by_serial("AA:01:FF") == "aa-01-ff"


def test_inspect_certificate(make_certificate):
    not_after = datetime(2031, 5, 17, 12, 0, tzinfo=timezone.utc)
    cert_pem, _ = make_certificate(
        common_name="example.com",
        alt_names=["example.com", "www.example.com"],
        serial=0x0102,
        not_after=not_after,
    )

    details = inspect_certificate(cert_pem)

    assert details.common_name == "example.com"
    assert details.subject == "CN=example.com"
    assert "CN=Example Issuing CA" in details.issuer
    assert details.serial_number == "01:02"
    assert details.not_after == not_after
    assert details.not_before < details.not_after
    assert details.dns_names == ["example.com", "www.example.com"]
    assert format_san_list(details) == "DNS:example.com, DNS:www.example.com"


def test_inspect_certificate_without_cn_or_san(make_certificate):
    cert_pem, _ = make_certificate(common_name=None)

    details = inspect_certificate(cert_pem)

    assert details.common_name == ""
    assert details.san_list == []
    assert format_san_list(details) == "No SAN found"


def test_load_certificate_accepts_bytes_and_bundles(make_certificate):
    first, _ = make_certificate(common_name="leaf.example.com")
    second, _ = make_certificate(common_name="intermediate.example.com")

    cert = load_certificate((first + second).encode())

    assert inspect_certificate(first).subject == cert.subject.rfc4514_string()


@pytest.mark.parametrize("data", ["", "   \n", "not a certificate", b"-----BEGIN CERTIFICATE-----\nAAAA\n-----END CERTIFICATE-----\n"])
def test_invalid_certificate_data(data):
    with pytest.raises(CertificateParseError):
        load_certificate(data)
