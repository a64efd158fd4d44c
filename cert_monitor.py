#!/usr/bin/env python3
"""
Venafi PKI Certificate Monitor - Expiry Monitoring Entry Point.

Scans every certificate record the Venafi PKI secrets engine stored in
Vault, reports days until expiry as CSV, alerts on certificates nearing
expiry and optionally replaces critical or expired certificates with
new ones from a local directory using the certificate updater.

Usage:
    # Report only
    python cert_monitor.py

    # Custom thresholds with Slack alerts
    python cert_monitor.py -w 45 -c 10 -s https://hooks.slack.com/services/...

    # Replace critical certificates from ./renewed (dry run)
    python cert_monitor.py -a -d ./renewed -n
"""

import argparse
import csv
import json
import os
import shlex
import shutil
import subprocess
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from venafi_vault.logger import setup_logger, get_logger
from venafi_vault.config_loader import (
    Config,
    ConfigurationError,
    VaultConfig,
    load_config,
    validate_settings,
    validate_vault_config,
)
from venafi_vault.inspection import CertificateParseError, inspect_certificate
from venafi_vault.storage import StorageError, VaultStorageClient, build_storage_path
from venafi_vault.helpers import (
    ExpiryStatus,
    classify_expiry,
    days_until_expiry,
    format_expiry_date,
    parse_name_list,
)
from venafi_vault.notification import AlertContext, NotificationManager


CSV_HEADER = ["Certificate UID", "Common Name", "Expiry Date", "Days Until Expiry", "Status"]

UPDATE_TIMEOUT = 300


class UpdateError(Exception):
    """Raised when an automatic certificate update cannot be performed."""
    pass


@dataclass
class CertificateCheck:
    """Expiry check result for one stored certificate."""
    cert_uid: str
    common_name: str
    expiry_date: datetime
    days_until_expiry: int
    status: ExpiryStatus
    updated: bool = False
    error: Optional[str] = None

    def to_row(self) -> List[str]:
        return [
            self.cert_uid,
            self.common_name,
            format_expiry_date(self.expiry_date),
            str(self.days_until_expiry),
            self.status.value,
        ]

    def to_alert(self) -> AlertContext:
        return AlertContext(
            cert_uid=self.cert_uid,
            common_name=self.common_name,
            expiry_date=format_expiry_date(self.expiry_date),
            days_until_expiry=self.days_until_expiry,
            status=self.status.value,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "cert_uid": self.cert_uid,
            "common_name": self.common_name,
            "expiry_date": self.expiry_date.isoformat(),
            "days_until_expiry": self.days_until_expiry,
            "status": self.status.value,
            "updated": self.updated,
            "error": self.error,
        }


@dataclass
class MonitorSummary:
    """Summary of a monitoring run."""
    path_prefix: str
    started_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    completed_at: Optional[str] = None
    dry_run: bool = False
    checks: List[CertificateCheck] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    alerts_sent: int = 0
    exit_code: int = 0

    def add_check(self, check: CertificateCheck) -> None:
        self.checks.append(check)
        if check.error:
            self.exit_code = 1

    def add_error(self, error: str) -> None:
        self.errors.append(error)
        self.exit_code = 1

    def count(self, status: ExpiryStatus) -> int:
        return sum(1 for c in self.checks if c.status is status)

    def finalize(self) -> None:
        """Mark the run as complete."""
        self.completed_at = datetime.now(timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "path_prefix": self.path_prefix,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "dry_run": self.dry_run,
            "success": self.exit_code == 0,
            "exit_code": self.exit_code,
            "summary": {
                "total_checked": len(self.checks),
                "ok": self.count(ExpiryStatus.OK),
                "warning": self.count(ExpiryStatus.WARNING),
                "critical": self.count(ExpiryStatus.CRITICAL),
                "expired": self.count(ExpiryStatus.EXPIRED),
                "updated": sum(1 for c in self.checks if c.updated),
                "alerts_sent": self.alerts_sent,
            },
            "certificates": [c.to_dict() for c in self.checks],
            "errors": self.errors,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description=(
            "Monitors certificates in Vault stored by the Venafi PKI plugin "
            "and alerts on upcoming expiry."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Environment variables:
  VAULT_ADDR             Vault server address (required)
  VAULT_TOKEN            Vault authentication token (required)
  SENDGRID_API_KEY       API key for email alerts
        """,
    )

    parser.add_argument("-p", "--path", dest="path_prefix", default=None,
                        help="Path prefix in Vault (default: venafi-pki)")
    parser.add_argument("-w", "--warning", dest="warning_days", type=int, default=None,
                        help="Days before expiry to generate warning (default: 30)")
    parser.add_argument("-c", "--critical", dest="critical_days", type=int, default=None,
                        help="Days before expiry to generate critical alert (default: 7)")
    parser.add_argument("-u", "--update-script", default=None,
                        help="Update command (default: the bundled certificate updater). "
                             "It is called with -c, -k, optional -C, --storage-key <uid> "
                             "and -p <prefix>, so it must accept --storage-key")
    parser.add_argument("-a", "--auto-update", action="store_true",
                        help="Enable automatic updates using provided certificates")
    parser.add_argument("-d", "--cert-dir", default=None,
                        help="Directory with new certificates (for auto-update)")
    parser.add_argument("-e", "--email", default=None,
                        help="Email to send alerts to (comma separated for multiple)")
    parser.add_argument("--email-from", default=None,
                        help="Sender address for email alerts")
    parser.add_argument("-s", "--slack-webhook", default=None,
                        help="Slack webhook URL for notifications")
    parser.add_argument("-n", "--dry-run", action="store_true",
                        help="Show what would be done without making changes")
    parser.add_argument("--config", default=None,
                        help="Optional YAML configuration file")
    parser.add_argument("--json-summary", action="store_true",
                        help="Output machine-readable JSON summary at the end of execution")
    parser.add_argument("--log-file", default=None,
                        help="Also write log records to this file")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Enable verbose/debug logging")
    parser.add_argument("--no-color", action="store_true",
                        help="Disable colored output")

    return parser.parse_args(argv)


def apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    """Apply command-line options on top of the loaded configuration."""
    settings = config.settings
    if args.path_prefix:
        settings.path_prefix = args.path_prefix
    if args.warning_days is not None:
        settings.warning_days = args.warning_days
    if args.critical_days is not None:
        settings.critical_days = args.critical_days
    if args.dry_run:
        settings.dry_run = True

    notifications = config.notifications
    if args.email:
        notifications.email.enabled = True
        notifications.email.to_emails = parse_name_list(args.email)
    if args.email_from:
        notifications.email.from_email = args.email_from
    if args.slack_webhook:
        notifications.slack.enabled = True
        notifications.slack.webhook_url = args.slack_webhook

    auto_update = config.auto_update
    if args.auto_update:
        auto_update.enabled = True
    if args.update_script:
        auto_update.update_command = args.update_script
    if args.cert_dir:
        auto_update.cert_dir = args.cert_dir

    if auto_update.enabled and not auto_update.cert_dir:
        raise ConfigurationError("Certificate directory is required when auto-update is enabled")

    return config


def check_certificate_expiry(
    client: VaultStorageClient,
    cert_uid: str,
    path_prefix: str,
    warning_days: int,
    critical_days: int,
    now: Optional[datetime] = None,
) -> CertificateCheck:
    """
    Check how long a stored certificate has left.

    Raises:
        StorageError: If the record cannot be read
        CertificateParseError: If the stored certificate is unusable
    """
    logger = get_logger()
    logger.debug(f"Checking expiry for certificate: {cert_uid}")

    record = client.read_record(build_storage_path(path_prefix, cert_uid))
    if not record.certificate:
        raise CertificateParseError(f"Failed to retrieve certificate data for {cert_uid}")

    details = inspect_certificate(record.certificate)
    days = days_until_expiry(details.not_after, now=now)

    return CertificateCheck(
        cert_uid=cert_uid,
        common_name=details.common_name,
        expiry_date=details.not_after,
        days_until_expiry=days,
        status=classify_expiry(days, warning_days, critical_days),
    )


def default_update_command() -> List[str]:
    """Run the bundled certificate updater with the current interpreter."""
    return [sys.executable, "-m", "cert_updater"]


def resolve_update_command(update_command: Optional[str]) -> List[str]:
    """
    Turn the configured update command into an argument list.

    Raises:
        UpdateError: If a configured command cannot be found
    """
    if not update_command:
        return default_update_command()

    command = shlex.split(update_command)
    if not command:
        return default_update_command()
    if not (os.path.isfile(command[0]) or shutil.which(command[0])):
        raise UpdateError(f"Update script not found: {command[0]}")
    return command


def build_update_command(
    base_command: List[str],
    cert_uid: str,
    cert_file: str,
    key_file: str,
    chain_file: Optional[str],
    path_prefix: str,
) -> List[str]:
    """Build the updater invocation for one certificate."""
    command = list(base_command) + ["-c", cert_file, "-k", key_file]
    if chain_file:
        command += ["-C", chain_file]
    command += ["--storage-key", cert_uid, "-p", path_prefix]
    return command


def is_safe_file_stem(name: str) -> bool:
    """True if ``name`` names a file directly inside a directory."""
    separators = {"/", "\\", os.sep, os.altsep} - {None}
    if any(sep in name for sep in separators) or "\0" in name:
        return False
    return name not in (".", "..")


def _updater_env(vault: VaultConfig) -> Dict[str, str]:
    env = dict(os.environ)
    env["VAULT_ADDR"] = vault.addr
    env["VAULT_TOKEN"] = vault.token
    if vault.namespace:
        env["VAULT_NAMESPACE"] = vault.namespace
    if vault.ca_cert:
        env["VAULT_CACERT"] = vault.ca_cert
    return env


def trigger_update(
    check: CertificateCheck,
    config: Config,
    dry_run: bool = False,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> bool:
    """
    Replace a certificate with the files waiting in the certificate directory.

    Looks for ``<cn>.pem``, ``<cn>.key`` and the optional ``<cn>.chain.pem``.

    Returns:
        True if the updater ran successfully, False for a dry run

    Raises:
        UpdateError: If files are missing or the updater fails
    """
    logger = get_logger()
    cert_dir = config.auto_update.cert_dir

    if not cert_dir:
        raise UpdateError("Auto-update is enabled but certificate directory is not provided")
    if not check.common_name:
        raise UpdateError(f"Certificate {check.cert_uid} has no common name to look up files by")
    if not is_safe_file_stem(check.common_name):
        raise UpdateError(
            f"Certificate {check.cert_uid} has a common name that is not usable "
            f"as a file name: {check.common_name!r}"
        )

    cert_file = os.path.join(cert_dir, f"{check.common_name}.pem")
    key_file = os.path.join(cert_dir, f"{check.common_name}.key")
    chain_file = os.path.join(cert_dir, f"{check.common_name}.chain.pem")

    if not os.path.isfile(cert_file):
        raise UpdateError(f"New certificate file not found: {cert_file}")
    if not os.path.isfile(key_file):
        raise UpdateError(f"New private key file not found: {key_file}")
    if not os.path.isfile(chain_file):
        chain_file = None

    command = build_update_command(
        resolve_update_command(config.auto_update.update_command),
        check.cert_uid,
        cert_file,
        key_file,
        chain_file,
        config.settings.path_prefix,
    )
    command_str = shlex.join(command)

    if dry_run:
        logger.warning(f"DRY RUN: Would execute update command: {command_str}")
        return False

    logger.info(f"Executing update command: {command_str}")
    try:
        result = runner(
            command,
            env=_updater_env(config.vault),
            capture_output=True,
            text=True,
            timeout=UPDATE_TIMEOUT,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise UpdateError(f"Failed to run update command: {e}") from e

    if result.stdout:
        logger.debug(result.stdout.strip())

    if result.returncode != 0:
        raise UpdateError(
            f"Update command exited with {result.returncode}: {(result.stderr or '').strip()}"
        )

    logger.success(f"Certificate {check.cert_uid} updated from {cert_file}")
    return True


def monitor_certificates(
    client: VaultStorageClient,
    config: Config,
    notification_manager: NotificationManager,
    summary: MonitorSummary,
    out=None,
    runner: Callable[..., subprocess.CompletedProcess] = subprocess.run,
) -> MonitorSummary:
    """
    Check every stored certificate, alert and update as configured.

    CSV rows are written to ``out`` (stdout by default).

    Raises:
        StorageError: If the certificate list cannot be retrieved
    """
    logger = get_logger()
    settings = config.settings
    out = out or sys.stdout

    logger.info(
        f"Monitoring certificates in Vault with expiry warning at {settings.warning_days} days "
        f"and critical at {settings.critical_days} days"
    )
    logger.info(f"Listing certificates at path: {settings.path_prefix}")

    cert_uids = client.list_keys(settings.path_prefix)
    if not cert_uids:
        logger.info("No certificates found")
        return summary

    writer = csv.writer(out, lineterminator="\n")
    writer.writerow(CSV_HEADER)

    for cert_uid in cert_uids:
        try:
            check = check_certificate_expiry(
                client,
                cert_uid,
                settings.path_prefix,
                settings.warning_days,
                settings.critical_days,
            )
        except (StorageError, CertificateParseError) as e:
            logger.failure(f"Failed to check certificate {cert_uid}: {e}")
            summary.add_error(f"{cert_uid}: {e}")
            continue

        writer.writerow(check.to_row())
        logger.certificate_status(check.cert_uid, check.status.value, check.days_until_expiry)

        if check.status.needs_alert:
            summary.alerts_sent += notification_manager.notify(check.to_alert())

            if config.auto_update.enabled and check.status.needs_update:
                try:
                    check.updated = trigger_update(
                        check, config, dry_run=settings.dry_run, runner=runner
                    )
                except UpdateError as e:
                    logger.failure(str(e))
                    check.error = str(e)

        summary.add_check(check)

    return summary


def print_monitor_summary(summary: MonitorSummary, output_json: bool = False) -> None:
    """Log the end-of-run summary, optionally followed by JSON."""
    logger = get_logger()

    logger.section("MONITORING SUMMARY")
    logger.info(f"  Certificates checked: {len(summary.checks)}")
    for status in ExpiryStatus:
        logger.info(f"  {status.value + ':':<10} {summary.count(status)}")
    logger.info(f"  Updated:   {sum(1 for c in summary.checks if c.updated)}")
    logger.info(f"  Alerts:    {summary.alerts_sent}")

    for error in summary.errors:
        logger.error(f"  - {error}")
    for check in summary.checks:
        if check.error:
            logger.error(f"  - {check.cert_uid}: {check.error}")

    logger.info(f"Exit Code: {summary.exit_code}")

    if output_json:
        logger.info("--- BEGIN JSON SUMMARY ---")
        print(summary.to_json())
        logger.info("--- END JSON SUMMARY ---")


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point.

    Exit Codes:
        0 - All certificates checked (alerts do not affect the exit code)
        1 - A certificate could not be checked or updated
        2 - Configuration error

    Returns:
        Exit code
    """
    args = parse_arguments(argv)

    logger = setup_logger(
        name="VenafiCertMonitor",
        verbose=args.verbose,
        use_colors=not args.no_color,
        log_file=args.log_file,
    )

    try:
        config = apply_overrides(load_config(args.config), args)
        validate_vault_config(config.vault)
        validate_settings(config.settings)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    if config.settings.dry_run:
        logger.warning("DRY RUN MODE - No changes will be made")

    summary = MonitorSummary(
        path_prefix=config.settings.path_prefix,
        dry_run=config.settings.dry_run,
    )

    try:
        monitor_certificates(
            VaultStorageClient(config.vault),
            config,
            NotificationManager(config.notifications),
            summary,
        )
    except StorageError as e:
        logger.failure(f"Failed to list certificates: {e}")
        summary.add_error(str(e))

    summary.finalize()
    print_monitor_summary(summary, output_json=args.json_summary)

    return summary.exit_code


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
