"""HTTP bridge that forwards named commands to the mail backend."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

import requests
from requests import Response

from .config import Settings
from .exceptions import CommandError
from .models import RemoteItem, Session

logger = logging.getLogger(__name__)


class HttpCommandBridge:
    """Thin wrapper that posts JSON commands and decodes their results.

    The backend owns IMAP/SMTP and credential handling; this class only knows
    command names and payload shapes. Error messages keep the backend's own
    text so failures can be classified by keyword downstream.
    """

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None) -> None:
        self.settings = settings
        self.session = session or requests.Session()
        self.base_url = settings.backend_url
        self.timeout = settings.backend_timeout
        self.token: Optional[str] = None

    def invoke(self, command: str, payload: Optional[Dict[str, Any]] = None) -> Any:
        """POST ``payload`` to ``/commands/<command>`` and return the decoded body."""
        url = f"{self.base_url}/commands/{command}"
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        logger.debug("Invoking backend command %s", command)
        try:
            response = self.session.post(url, json=payload or {}, headers=headers, timeout=self.timeout)
        except requests.Timeout as exc:
            raise CommandError(f"Request timeout: {exc}", command) from exc
        except requests.RequestException as exc:
            raise CommandError(f"Connection failed: {exc}", command) from exc

        if response.status_code >= 400:
            detail = self._error_detail(response)
            logger.error("Command %s failed (%s): %s", command, response.status_code, detail)
            raise CommandError(f"{detail} (HTTP {response.status_code})", command)

        return self._parse_response_body(response, command)

    async def authenticate(self, account: str, secret: str) -> Session:
        raw = await asyncio.to_thread(self.invoke, "login", {"email": account, "password": secret})
        session = Session.from_dict(raw)
        self.token = session.token
        return session

    async def deauthenticate(self) -> None:
        try:
            await asyncio.to_thread(self.invoke, "logout")
        finally:
            self.token = None

    async def fetch_remote_items(self) -> List[RemoteItem]:
        raw_items = await asyncio.to_thread(self.invoke, "fetch_emails")
        return [RemoteItem.from_dict(raw) for raw in raw_items or []]

    async def send_remote_item(self, destination: str, subject: str, body: str) -> None:
        await asyncio.to_thread(
            self.invoke, "send_email", {"to": destination, "subject": subject, "body": body}
        )

    @staticmethod
    def _parse_response_body(response: Response, command: str) -> Any:
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise CommandError(f"Could not parse backend response: {exc}", command) from exc

    @staticmethod
    def _error_detail(response: Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text.strip() or response.reason or "Backend error"
        if isinstance(payload, dict):
            return str(payload.get("error") or payload.get("message") or payload)
        return str(payload)
