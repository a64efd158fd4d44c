"""
Vault raw storage operations.

Reads, writes and lists the certificate records the Venafi PKI
secrets engine keeps under ``<prefix>/certs/<key>``, going through
Vault's ``sys/raw`` endpoint.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests

from .config_loader import VaultConfig
from .logger import get_logger


class StorageError(Exception):
    """Raised when a Vault storage operation fails."""
    pass


class CertificateNotFoundError(StorageError):
    """Raised when no record exists at a storage path."""

    def __init__(self, path: str):
        super().__init__(f"Certificate not found at path: {path}")
        self.path = path


@dataclass
class CertificateRecord:
    """
    Certificate record as stored by the plugin.

    serial_number holds the colon-delimited lower-case serial.
    """
    certificate: str
    certificate_chain: str = ""
    private_key: str = ""
    serial_number: str = ""

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {
            "certificate": self.certificate,
            "certificate_chain": self.certificate_chain,
            "private_key": self.private_key,
            "serial_number": self.serial_number,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CertificateRecord":
        return cls(
            certificate=data.get("certificate") or "",
            certificate_chain=data.get("certificate_chain") or "",
            private_key=data.get("private_key") or "",
            serial_number=data.get("serial_number") or "",
        )


def build_storage_path(path_prefix: str, storage_key: str) -> str:
    """
    Build the storage path of a certificate record.

    Examples:
        >>> build_storage_path("venafi-pki", "aa-01-ff")
        'venafi-pki/certs/aa-01-ff'
    """
    return f"{path_prefix.strip('/')}/certs/{storage_key}"


def build_list_path(path_prefix: str) -> str:
    """Path listing every record under a prefix (trailing slash included)."""
    return f"{path_prefix.strip('/')}/certs/"


class VaultStorageClient:
    """
    Client for Vault's raw storage API.

    Honors the Vault token, optional Enterprise namespace and optional
    CA bundle from VaultConfig.
    """

    def __init__(self, config: VaultConfig, session: Optional[requests.Session] = None):
        self.config = config
        self.base_url = config.addr.rstrip("/")
        self.verify = config.ca_cert if config.ca_cert else True
        self.session = session or requests.Session()
        self.logger = get_logger()

    def _headers(self) -> Dict[str, str]:
        headers = {
            "X-Vault-Token": self.config.token,
            "Content-Type": "application/json",
        }
        if self.config.namespace:
            headers["X-Vault-Namespace"] = self.config.namespace
        return headers

    def _url(self, path: str) -> str:
        return f"{self.base_url}/v1/sys/raw/{path.lstrip('/')}"

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = self._url(path)
        self.logger.debug(f"{method} {url}")
        try:
            return self.session.request(
                method,
                url,
                headers=self._headers(),
                timeout=self.config.timeout,
                verify=self.verify,
                **kwargs,
            )
        except requests.RequestException as e:
            raise StorageError(f"Vault request {method} {url} failed: {e}") from e

    def _raise_for_status(self, response: requests.Response, method: str, path: str) -> None:
        if response.status_code >= 400:
            hint = ""
            if response.status_code == 403 and self.config.namespace:
                hint = (
                    f" (ensure the namespace '{self.config.namespace}' is correct "
                    "and that you have appropriate permissions)"
                )
            raise StorageError(
                f"Vault {method} {self._url(path)} returned "
                f"{response.status_code}: {response.text}{hint}"
            )

    @staticmethod
    def _decode_json(response: requests.Response, path: str) -> Dict[str, Any]:
        try:
            return response.json()
        except ValueError as e:
            raise StorageError(
                f"Invalid response from Vault for {path}: {response.text}"
            ) from e

    def read(self, path: str) -> Optional[Dict[str, Any]]:
        """
        Read the value stored at a raw storage path.

        Args:
            path: Storage path (e.g. venafi-pki/certs/aa-01-ff)

        Returns:
            Decoded value, or None if nothing is stored there

        Raises:
            StorageError: On transport errors or unexpected responses
        """
        response = self._request("GET", path)
        if response.status_code == 404:
            return None
        self._raise_for_status(response, "GET", path)

        body = self._decode_json(response, path)
        value = (body.get("data") or {}).get("value")
        if value is None:
            return None

        # sys/raw hands values back as strings
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except ValueError as e:
                raise StorageError(f"Stored value at {path} is not JSON") from e

        if not isinstance(value, dict):
            raise StorageError(f"Stored value at {path} is not a JSON object")

        return value

    def read_record(self, path: str) -> CertificateRecord:
        """
        Read a certificate record.

        Raises:
            CertificateNotFoundError: If no record exists at the path
            StorageError: On other failures
        """
        value = self.read(path)
        if value is None:
            raise CertificateNotFoundError(path)
        return CertificateRecord.from_dict(value)

    def write_record(self, path: str, record: CertificateRecord) -> None:
        """
        Create or overwrite the certificate record at a path.

        Raises:
            StorageError: If Vault rejects the write
        """
        payload = {"value": json.dumps(record.to_dict())}
        response = self._request("PUT", path, json=payload)
        self._raise_for_status(response, "PUT", path)
        self.logger.debug(f"Wrote certificate record to {path}")

    def list_keys(self, path_prefix: str) -> List[str]:
        """
        List the storage keys of every record under a prefix.

        Returns:
            Keys in the order Vault returns them (empty if none)
        """
        path = build_list_path(path_prefix)
        response = self._request("LIST", path)
        if response.status_code == 404:
            return []
        self._raise_for_status(response, "LIST", path)

        body = self._decode_json(response, path)
        return list((body.get("data") or {}).get("keys") or [])
