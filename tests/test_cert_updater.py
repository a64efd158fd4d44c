"""Tests for the certificate updater entry point."""

import json

import pytest

import cert_updater
from venafi_vault.identifiers import DerivationMode, InvalidInputError
from venafi_vault.inspection import CertificateParseError
from venafi_vault.storage import CertificateRecord


HASH_KEY = "d4b99698cf30dc401c3cdf46838580b373c7a7fa"


@pytest.fixture
def cert_files(tmp_path, make_certificate):
    """Certificate, key and chain files for serial AA:01:FF."""
    cert_pem, key_pem = make_certificate(common_name="example.com", serial=0xAA01FF)
    chain_pem, _ = make_certificate(common_name="Example Intermediate", serial=0x10)

    cert = tmp_path / "new-cert.pem"
    key = tmp_path / "new-key.pem"
    chain = tmp_path / "chain.pem"
    cert.write_text(cert_pem)
    key.write_text(key_pem)
    chain.write_text(chain_pem)

    return {"cert": str(cert), "key": str(key), "chain": str(chain),
            "cert_pem": cert_pem, "key_pem": key_pem, "chain_pem": chain_pem}


@pytest.fixture
def storage(monkeypatch, fake_storage):
    monkeypatch.setattr(cert_updater, "VaultStorageClient", lambda config: fake_storage)
    return fake_storage


# ---------------------------------------------------------------------------
# Storage key resolution
# ---------------------------------------------------------------------------

def test_resolve_typed_serial():
    key = cert_updater.resolve_storage_key(DerivationMode.BY_SERIAL, cert_uid="00:11:22:33:44")
    assert key == "00-11-22-33-44"


def test_resolve_serial_from_certificate_matches_typed_serial(make_certificate):
    cert_pem, _ = make_certificate(serial=0xAA01FF)

    from_cert = cert_updater.resolve_storage_key(DerivationMode.BY_SERIAL, cert_content=cert_pem)
    typed = cert_updater.resolve_storage_key(DerivationMode.BY_SERIAL, cert_uid="AA:01:FF")

    assert from_cert == typed == "aa-01-ff"


def test_resolve_serial_without_uid_or_certificate():
    with pytest.raises(InvalidInputError, match="Certificate file is required"):
        cert_updater.resolve_storage_key(DerivationMode.BY_SERIAL)


def test_resolve_serial_from_bad_certificate():
    with pytest.raises(CertificateParseError):
        cert_updater.resolve_storage_key(DerivationMode.BY_SERIAL, cert_content="garbage")


def test_resolve_common_name():
    assert cert_updater.resolve_storage_key(
        DerivationMode.BY_COMMON_NAME, cert_uid="example.com"
    ) == "example.com"
    assert cert_updater.resolve_storage_key(
        DerivationMode.BY_COMMON_NAME, common_name="example.com"
    ) == "example.com"
    with pytest.raises(InvalidInputError, match="Common name is required"):
        cert_updater.resolve_storage_key(DerivationMode.BY_COMMON_NAME)


def test_resolve_hash():
    assert cert_updater.resolve_storage_key(
        DerivationMode.BY_CONTENT_HASH, common_name="example.com", zone="Default"
    ) == HASH_KEY
    assert cert_updater.resolve_storage_key(
        DerivationMode.BY_CONTENT_HASH, cert_uid=HASH_KEY.upper()
    ) == HASH_KEY
    with pytest.raises(InvalidInputError, match="Zone"):
        cert_updater.resolve_storage_key(DerivationMode.BY_CONTENT_HASH, common_name="example.com")
    with pytest.raises(InvalidInputError):
        cert_updater.resolve_storage_key(DerivationMode.BY_CONTENT_HASH, cert_uid="example.com")


def test_resolve_explicit_storage_key_wins():
    assert cert_updater.resolve_storage_key(
        DerivationMode.BY_SERIAL, cert_uid="00:11", storage_key="aa-01-ff"
    ) == "aa-01-ff"
    with pytest.raises(InvalidInputError):
        cert_updater.resolve_storage_key(DerivationMode.BY_SERIAL, storage_key="")


def test_build_record(make_certificate):
    cert_pem, key_pem = make_certificate(serial=0xAA01FF)
    record = cert_updater.build_record(cert_pem, key_pem)
    assert record.serial_number == "aa:01:ff"
    assert record.certificate_chain == ""
    assert record.private_key == key_pem


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------

def test_update_requires_cert_and_key():
    with pytest.raises(SystemExit):
        cert_updater.parse_arguments(["-i", "example.com", "-m", "cn"])
    with pytest.raises(SystemExit):
        cert_updater.parse_arguments(["-c", "cert.pem", "-i", "example.com"])


def test_show_needs_no_files():
    args = cert_updater.parse_arguments(["-i", "example.com", "-m", "cn", "-s"])
    assert args.show
    assert args.mode == "cn"
    assert args.cert_uid == "example.com"


def test_invalid_mode_is_rejected():
    with pytest.raises(SystemExit):
        cert_updater.parse_arguments(["-s", "-i", "x", "-m", "thumbprint"])


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------

def test_update_by_serial_from_certificate(vault_env, storage, cert_files):
    exit_code = cert_updater.main([
        "-c", cert_files["cert"], "-k", cert_files["key"], "-C", cert_files["chain"],
    ])

    assert exit_code == 0
    record = storage.records["venafi-pki/certs/aa-01-ff"]
    assert record.certificate == cert_files["cert_pem"]
    assert record.private_key == cert_files["key_pem"]
    assert record.certificate_chain == cert_files["chain_pem"]
    assert record.serial_number == "aa:01:ff"


def test_update_by_common_name_with_custom_prefix(vault_env, storage, cert_files):
    exit_code = cert_updater.main([
        "-c", cert_files["cert"], "-k", cert_files["key"],
        "-i", "example.com", "-m", "cn", "-p", "pki-prod",
    ])

    assert exit_code == 0
    assert storage.writes == ["pki-prod/certs/example.com"]
    assert storage.records["pki-prod/certs/example.com"].certificate_chain == ""


def test_update_by_hash(vault_env, storage, cert_files):
    exit_code = cert_updater.main([
        "-c", cert_files["cert"], "-k", cert_files["key"],
        "-m", "hash", "-n", "example.com", "-z", "Default",
    ])

    assert exit_code == 0
    assert storage.writes == [f"venafi-pki/certs/{HASH_KEY}"]


def test_dry_run_writes_nothing(vault_env, storage, cert_files, capsys):
    exit_code = cert_updater.main([
        "-c", cert_files["cert"], "-k", cert_files["key"], "-i", "AA:01:FF", "-d",
    ])

    assert exit_code == 0
    assert storage.writes == []
    captured = capsys.readouterr()
    assert "DRY RUN: Would update certificate in Vault at path: venafi-pki/certs/aa-01-ff" in captured.err
    assert json.loads(captured.out)["serial_number"] == "aa:01:ff"


def test_show_certificate(vault_env, storage, make_certificate, capsys):
    cert_pem, _ = make_certificate(common_name="example.com", alt_names=["example.com"])
    storage.records["venafi-pki/certs/example.com"] = CertificateRecord(
        certificate=cert_pem, private_key="KEY", serial_number="aa:01:ff"
    )

    exit_code = cert_updater.main(["-i", "example.com", "-m", "cn", "-s"])

    assert exit_code == 0
    assert storage.writes == []
    captured = capsys.readouterr()
    assert "Subject: CN=example.com" in captured.err
    assert "SAN: DNS:example.com" in captured.err
    assert json.loads(captured.out)["serial_number"] == "aa:01:ff"


def test_show_unparsable_certificate(vault_env, storage, capsys):
    storage.records["venafi-pki/certs/aa-01-ff"] = CertificateRecord(certificate="garbage")

    assert cert_updater.main(["-i", "aa:01:ff", "-s"]) == 0
    assert "Unable to parse certificate" in capsys.readouterr().err


def test_show_missing_certificate(vault_env, storage, monkeypatch, capsys):
    monkeypatch.setenv("VAULT_NAMESPACE", "admin/pki")

    assert cert_updater.main(["-i", "example.com", "-m", "cn", "-s"]) == 1
    err = capsys.readouterr().err
    assert "Certificate not found at path: venafi-pki/certs/example.com" in err
    assert "admin/pki" in err


def test_missing_vault_env_is_configuration_error(monkeypatch, storage, capsys):
    monkeypatch.delenv("VAULT_ADDR", raising=False)
    monkeypatch.setenv("VAULT_TOKEN", "t")

    assert cert_updater.main(["-i", "example.com", "-m", "cn", "-s"]) == 2
    assert "VAULT_ADDR environment variable is not set" in capsys.readouterr().err


def test_invalid_serial_fails(vault_env, storage, cert_files):
    exit_code = cert_updater.main([
        "-c", cert_files["cert"], "-k", cert_files["key"], "-i", "not-a-serial",
    ])
    assert exit_code == 1
    assert storage.writes == []


def test_missing_key_file_fails(vault_env, storage, cert_files, tmp_path):
    exit_code = cert_updater.main([
        "-c", cert_files["cert"], "-k", str(tmp_path / "missing.key"),
    ])
    assert exit_code == 1
    assert storage.writes == []


def test_der_certificate_file_fails_cleanly(vault_env, storage, cert_files, tmp_path, capsys):
    der = tmp_path / "cert.der"
    der.write_bytes(b"\x30\x82\x03\x1e\x30\x82\x02\x06\xa0\x03")

    exit_code = cert_updater.main(["-c", str(der), "-k", cert_files["key"]])

    assert exit_code == 1
    assert storage.writes == []
    assert "File is not PEM text" in capsys.readouterr().err


def test_serial_show_without_uid_or_certificate_fails(vault_env, storage):
    assert cert_updater.main(["-s"]) == 1
