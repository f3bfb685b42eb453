"""Client for sending log batches to the Dynatrace logs ingest API."""

import json
import logging
from typing import Any, Dict, List, Optional

import requests

from .config import ExportConfig


class ExportError(Exception):
    """Raised when a batch could not be delivered to the ingest endpoint."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class PayloadEncodingError(ExportError):
    """Raised when a batch cannot be encoded as JSON. Retrying cannot help."""

    pass


def encode_payload(payload: List[Dict[str, Any]]) -> bytes:
    """Encode a batch as UTF-8 JSON, stringifying values JSON has no type for.

    Raises:
        PayloadEncodingError: On circular references or non-string keys
    """
    try:
        return json.dumps(payload, default=str).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise PayloadEncodingError(f"Cannot encode log batch as JSON: {e}")


class DynatraceClient:
    """Client for sending logs to Dynatrace."""

    def __init__(self, config: ExportConfig, session: Optional[requests.Session] = None):
        """Initialize the Dynatrace client.

        Args:
            config: Export configuration holding the endpoint and token
            session: Optional requests session, a plain ``requests.post`` is
                used when omitted
        """
        self.config = config
        self.session = session
        self.logger = logging.getLogger(self.__class__.__name__)
        if not config.verify_tls:
            self.logger.warning(
                "TLS certificate verification is disabled for log export"
            )
        self.logger.info(f"Initialized Dynatrace client with URL: {config.url}")

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Api-Token {self.config.api_token}",
            "Content-Type": "application/json; charset=utf-8",
        }

    def post_batch(self, payload: List[Dict[str, Any]]) -> requests.Response:
        """POST one batch as a JSON array.

        Args:
            payload: Entries already converted to the ingest format

        Returns:
            requests.Response: The successful response

        Raises:
            ExportError: On network errors, timeouts or non-2xx responses
            PayloadEncodingError: If the batch cannot be encoded
        """
        if not self.config.export_enabled:
            raise ExportError("Export endpoint or API token is not configured")

        body = encode_payload(payload)

        post = self.session.post if self.session is not None else requests.post
        try:
            response = post(
                self.config.url,
                data=body,
                headers=self.headers,
                timeout=self.config.request_timeout,
                verify=self.config.verify_tls,
            )
            response.raise_for_status()
            return response
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise ExportError(f"Ingest endpoint rejected batch: {e}", status)
        except requests.exceptions.Timeout:
            raise ExportError("Request to ingest endpoint timed out")
        except requests.exceptions.RequestException as e:
            raise ExportError(f"Error connecting to ingest endpoint: {e}")

    def send_logs(self, payload: List[Dict[str, Any]]) -> bool:
        """Send a batch of logs to Dynatrace.

        Args:
            payload: Entries already converted to the ingest format

        Returns:
            bool: True if logs were sent successfully, False otherwise

        Raises:
            PayloadEncodingError: If the batch cannot be encoded, so the
                caller can drop it instead of retrying
        """
        if not payload:
            return True

        try:
            self.post_batch(payload)
            return True
        except PayloadEncodingError:
            raise
        except ExportError as e:
            self.logger.error(f"Failed to export log batch to Dynatrace: {e}")
            return False

    def close(self):
        if self.session is not None:
            self.session.close()
