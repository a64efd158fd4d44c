#!/usr/bin/env python3
"""
Venafi PKI Certificate Updater - Contingency Entry Point.

Manually updates (or shows) certificates that the Venafi PKI secrets
engine stored in HashiCorp Vault, writing straight to Vault's raw
storage under ``<prefix>/certs/<uid>``. The certificate UID is derived
the same way the plugin derives it: from the common name, from the
serial number, or from a hash of the CN, SANs and zone.

Usage:
    # Update by common name
    python cert_updater.py -c new-cert.pem -k new-key.pem -C chain.pem -i example.com -m cn

    # Update by serial number (typed, or taken from the certificate)
    python cert_updater.py -c new-cert.pem -k new-key.pem -i '00:11:22:33:44' -m serial
    python cert_updater.py -c new-cert.pem -k new-key.pem

    # Show the stored certificate without updating
    python cert_updater.py -i example.com -m cn -s
"""

import argparse
import json
import sys
from typing import Iterable, List, Optional

from venafi_vault.logger import setup_logger, get_logger
from venafi_vault.config_loader import (
    ConfigurationError,
    load_config,
    validate_settings,
    validate_vault_config,
)
from venafi_vault.identifiers import (
    DerivationMode,
    InvalidInputError,
    derive_by_common_name,
    derive_by_content_hash,
    derive_by_serial,
    normalize_content_hash,
)
from venafi_vault.inspection import (
    CertificateParseError,
    format_san_list,
    get_serial_from_certificate,
    inspect_certificate,
)
from venafi_vault.storage import (
    CertificateNotFoundError,
    CertificateRecord,
    StorageError,
    VaultStorageClient,
    build_storage_path,
)
from venafi_vault.helpers import parse_name_list, read_text_file


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Updates certificates stored by the Venafi PKI plugin in HashiCorp Vault.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment variables:
  VAULT_ADDR            Vault server address (required)
  VAULT_TOKEN           Vault authentication token (required)
  VAULT_NAMESPACE       Vault namespace (for Vault Enterprise)
  VAULT_CACERT          CA bundle used to verify the Vault server

Examples:
  %(prog)s -c new-cert.pem -k new-key.pem -C chain.pem -i example.com -m cn
  %(prog)s -c new-cert.pem -k new-key.pem -i '00:11:22:33:44' -m serial
  %(prog)s -i example.com -m cn -s                 # Show current certificate
  %(prog)s -i '00:11:22:33:44' -m serial -s        # Show by serial number
        """,
    )

    parser.add_argument("-c", "--cert", help="Certificate file in PEM format (required for update)")
    parser.add_argument("-k", "--key", help="Private key file in PEM format (required for update)")
    parser.add_argument("-C", "--chain", help="Certificate chain file in PEM format")
    parser.add_argument(
        "-i", "--id",
        dest="cert_uid",
        help="Certificate UID to update (CN, serial, or hash)",
    )
    parser.add_argument(
        "-m", "--mode",
        choices=[m.value for m in DerivationMode],
        default=DerivationMode.BY_SERIAL.value,
        help="Storage mode: cn, serial, hash (default: serial)",
    )
    parser.add_argument("-z", "--zone", default="", help="Zone (required for hash mode)")
    parser.add_argument("-n", "--cn", dest="common_name", default="", help="Common name (for cn and hash modes)")
    parser.add_argument("-a", "--alt-names", default="", help="Comma-separated list of SANs (for hash mode)")
    parser.add_argument(
        "-p", "--path",
        dest="path_prefix",
        default=None,
        help="Path prefix in Vault (default: venafi-pki)",
    )
    parser.add_argument(
        "--storage-key",
        default=None,
        help="Exact storage key of the record; skips UID derivation",
    )
    parser.add_argument(
        "-d", "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )
    parser.add_argument(
        "-s", "--show",
        action="store_true",
        help="Show current certificate content without updating",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Optional YAML configuration file",
    )
    parser.add_argument(
        "--log-file",
        default=None,
        help="Also write log records to this file",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument(
        "--no-color",
        action="store_true",
        help="Disable colored output",
    )

    args = parser.parse_args(argv)

    if not args.show:
        if not args.cert:
            parser.error("Certificate file is required for update operation")
        if not args.key:
            parser.error("Private key file is required for update operation")

    return args


def resolve_storage_key(
    mode: DerivationMode,
    cert_uid: Optional[str] = None,
    common_name: str = "",
    alt_names: Optional[Iterable[str]] = None,
    zone: str = "",
    cert_content: Optional[str] = None,
    storage_key: Optional[str] = None,
) -> str:
    """
    Work out the storage key of the record to show or update.

    An explicit storage key is used verbatim. An explicit UID goes
    through the same normalization as a computed one, so a serial typed
    as ``AA:01:FF`` and the serial read from the certificate both map
    to ``aa-01-ff``.

    Raises:
        InvalidInputError: If the inputs the mode needs are missing or invalid
        CertificateParseError: If the serial must come from an unparsable certificate
    """
    if storage_key is not None:
        if not storage_key:
            raise InvalidInputError("Storage key must not be empty")
        return storage_key

    if cert_uid:
        if mode is DerivationMode.BY_COMMON_NAME:
            return derive_by_common_name(cert_uid)
        if mode is DerivationMode.BY_SERIAL:
            return derive_by_serial(cert_uid)
        return normalize_content_hash(cert_uid)

    if mode is DerivationMode.BY_COMMON_NAME:
        if not common_name:
            raise InvalidInputError(
                "Common name is required when mode is 'cn' and certificate UID is not provided"
            )
        return derive_by_common_name(common_name)

    if mode is DerivationMode.BY_SERIAL:
        if not cert_content:
            raise InvalidInputError(
                "Certificate file is required when mode is 'serial' "
                "and certificate UID is not provided"
            )
        return derive_by_serial(get_serial_from_certificate(cert_content))

    return derive_by_content_hash(common_name, alt_names, zone)


def build_record(cert_content: str, key_content: str, chain_content: str = "") -> CertificateRecord:
    """
    Build the record written for a new certificate.

    Raises:
        CertificateParseError: If the certificate cannot be parsed
    """
    return CertificateRecord(
        certificate=cert_content,
        certificate_chain=chain_content,
        private_key=key_content,
        serial_number=get_serial_from_certificate(cert_content),
    )


def show_certificate(
    client: VaultStorageClient,
    cert_uid: str,
    mode: str,
    path_prefix: str,
) -> CertificateRecord:
    """
    Print the certificate currently stored for a UID.

    Raises:
        CertificateNotFoundError: If nothing is stored for the UID
        StorageError: If Vault cannot be read
    """
    logger = get_logger()
    storage_path = build_storage_path(path_prefix, cert_uid)

    logger.info(f"Reading certificate with UID: {cert_uid}")
    logger.info(f"Storage mode: {mode}")
    logger.info(f"Storage path: {storage_path}")

    record = client.read_record(storage_path)

    logger.section("Certificate Details")
    if record.certificate:
        try:
            details = inspect_certificate(record.certificate)
            logger.info(f"Subject: {details.subject}")
            logger.info(f"Issuer: {details.issuer}")
            logger.info(f"Serial Number: {details.serial_number}")
            logger.info(f"Not Before: {details.not_before}")
            logger.info(f"Not After: {details.not_after}")
            logger.info(f"SAN: {format_san_list(details)}")
        except CertificateParseError as e:
            logger.warning(f"Unable to parse certificate: {e}")
    else:
        logger.warning("Unable to extract certificate from response")

    logger.subsection("Raw Data")
    print(json.dumps(record.to_dict(), indent=2))

    return record


def update_certificate(
    client: VaultStorageClient,
    record: CertificateRecord,
    cert_uid: str,
    mode: str,
    path_prefix: str,
    dry_run: bool = False,
) -> bool:
    """
    Write a certificate record to Vault.

    Returns:
        True if the record was written, False for a dry run

    Raises:
        StorageError: If the write fails
    """
    logger = get_logger()
    storage_path = build_storage_path(path_prefix, cert_uid)

    logger.info(f"Updating certificate with UID: {cert_uid}")
    logger.info(f"Storage mode: {mode}")
    logger.info(f"Storage path: {storage_path}")

    if dry_run:
        logger.warning(f"DRY RUN: Would update certificate in Vault at path: {storage_path}")
        logger.info("Payload would be:")
        print(json.dumps(record.to_dict(), indent=2))
        return False

    logger.info("Writing certificate to Vault storage...")
    client.write_record(storage_path, record)
    logger.success(f"Certificate updated successfully at path: {storage_path}")
    return True


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Exit Codes:
        0 - Operation succeeded (or dry run completed)
        1 - Operation failed
        2 - Configuration or usage error

    Returns:
        Exit code
    """
    args = parse_arguments(argv)

    logger = setup_logger(
        name="VenafiCertUpdater",
        verbose=args.verbose,
        use_colors=not args.no_color,
        log_file=args.log_file,
    )

    try:
        config = load_config(args.config)

        if args.path_prefix:
            config.settings.path_prefix = args.path_prefix
        if args.dry_run:
            config.settings.dry_run = True

        validate_vault_config(config.vault)
        validate_settings(config.settings)

        path_prefix = config.settings.path_prefix
        mode = DerivationMode.from_cli(args.mode)
        cert_content = read_text_file(args.cert) if args.cert else None

        cert_uid = resolve_storage_key(
            mode,
            cert_uid=args.cert_uid,
            common_name=args.common_name,
            alt_names=parse_name_list(args.alt_names),
            zone=args.zone,
            cert_content=cert_content,
            storage_key=args.storage_key,
        )
        if not args.cert_uid and args.storage_key is None:
            logger.info(f"Calculated certificate UID: {cert_uid}")

        client = VaultStorageClient(config.vault)

        if args.show:
            show_certificate(client, cert_uid, mode.value, path_prefix)
            return 0

        chain_content = read_text_file(args.chain) if args.chain else ""
        record = build_record(cert_content, read_text_file(args.key), chain_content)

        update_certificate(
            client,
            record,
            cert_uid,
            mode.value,
            path_prefix,
            dry_run=config.settings.dry_run,
        )
        return 0

    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    except CertificateNotFoundError as e:
        logger.failure(str(e))
        if config.vault.namespace:
            logger.error(
                f"Ensure the namespace '{config.vault.namespace}' is correct "
                "and that you have appropriate permissions."
            )
        return 1

    except (InvalidInputError, CertificateParseError, StorageError, OSError) as e:
        logger.failure(str(e))
        return 1


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
