# nextlog_client.py
"""
HTTP client for the Nextlog logging service.

send_contact() never raises for transport or HTTP problems; it reports them in
the returned NextlogResponse so the caller can journal the contact as
'not submitted'. There is no retry: a failed contact stays failed.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests
from requests.exceptions import ConnectionError, HTTPError, RequestException, Timeout

from loghandler import get_logger

DEFAULT_API_URL = "https://nextlog.app/api/v1"


class NextlogClientError(Exception):
    """Raised for client misconfiguration (e.g. no API URL)."""
    pass


@dataclass(frozen=True)
class NextlogResponse:
    success: bool
    message: str
    contact_id: Optional[str] = None


class NextlogClient:
    def __init__(self, api_url: str = DEFAULT_API_URL, api_key: str = "", timeout: float = 8.0):
        self.logger = get_logger()
        self.api_url = (api_url or "").rstrip("/")
        self.api_key = api_key or ""
        self.timeout = float(timeout)

    @classmethod
    def from_settings(cls, nextlog_settings: Dict[str, Any]) -> "NextlogClient":
        return cls(
            api_url=nextlog_settings.get("api_url", DEFAULT_API_URL),
            api_key=nextlog_settings.get("api_key", ""),
        )

    def update_config(self, api_url: Optional[str] = None, api_key: Optional[str] = None,
                      timeout: Optional[float] = None) -> None:
        if api_url is not None:
            self.api_url = api_url.rstrip("/")
        if api_key is not None:
            self.api_key = api_key
        if timeout is not None:
            self.timeout = float(timeout)

    def get_config(self) -> Dict[str, Any]:
        return {"api_url": self.api_url, "api_key": self.api_key, "timeout": self.timeout}

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json", "Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _require_url(self):
        if not self.api_url:
            raise NextlogClientError("Nextlog API URL not configured")

    # -------------------------------------------------------------------------
    # Contacts
    # -------------------------------------------------------------------------
    def send_contact(self, contact) -> NextlogResponse:
        """POST one contact to {api_url}/contacts."""
        try:
            self._require_url()
        except NextlogClientError as e:
            self.logger.error(f"[NEXTLOG] {e}")
            return NextlogResponse(success=False, message=str(e))

        payload = contact.to_payload()
        self.logger.debug(f"[NEXTLOG] Sending contact: {payload}")
        try:
            response = requests.post(
                f"{self.api_url}/contacts",
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except Timeout:
            self.logger.error("[NEXTLOG] Request to Nextlog timed out.")
            return NextlogResponse(success=False, message="Request to Nextlog timed out.")
        except ConnectionError:
            self.logger.error("[NEXTLOG] Could not connect to Nextlog.")
            return NextlogResponse(success=False, message="Could not connect to Nextlog.")
        except HTTPError as e:
            self.logger.error(f"[NEXTLOG] HTTP error while sending contact: {e}")
            return NextlogResponse(success=False, message=f"HTTP error: {e}")
        except RequestException as e:
            self.logger.error(f"[NEXTLOG] Unexpected error while communicating with Nextlog: {e}")
            return NextlogResponse(success=False, message=f"Communication error: {e}")

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        contact_id = body.get("contactId") or body.get("contact_id") or body.get("id")
        message = body.get("message") or "Contact logged successfully"
        self.logger.info(f"[NEXTLOG] Contact {payload.get('call')} submitted")
        return NextlogResponse(
            success=bool(body.get("success", True)),
            message=message,
            contact_id=str(contact_id) if contact_id is not None else None,
        )

    def test_connection(self) -> bool:
        """GET {api_url}/ping; True on any 2xx."""
        if not self.api_url:
            return False
        try:
            response = requests.get(
                f"{self.api_url}/ping",
                headers=self._headers(),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except RequestException as e:
            self.logger.warning(f"[NEXTLOG] Connection test failed: {e}")
            return False
        self.logger.info("[NEXTLOG] Connection test succeeded")
        return True
