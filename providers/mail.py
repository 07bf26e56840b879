"""
Mail provider contract and the Gmail REST adapter.
"""

import base64
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from email.mime.text import MIMEText
from email.utils import parseaddr
from typing import Any, Dict, List, Optional, Tuple

import requests

from core.errors import ProviderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailMessage:
    id: str
    sender: str
    subject: str
    body: str
    received_at: Optional[datetime] = None

    @property
    def sender_address(self) -> str:
        """Bare address from a ``Name <addr>`` header."""
        return parseaddr(self.sender)[1].lower()


@dataclass(frozen=True)
class MailFilter:
    query: str = "in:inbox -label:processed newer_than:2d"
    max_results: int = 50


class MailProvider(ABC):
    """Abstract mailbox access."""

    @abstractmethod
    def list_recent(self, mail_filter: Optional[MailFilter] = None) -> List[MailMessage]:
        """List messages matching the filter, newest first."""

    @abstractmethod
    def mark_processed(self, message_id: str) -> None:
        """Label a message so later scans skip it."""

    @abstractmethod
    def send(self, to: str, subject: str, body: str) -> str:
        """Send a plain-text email and return the provider message id."""

    @abstractmethod
    def get_own_address(self) -> str:
        """Address of the connected mailbox."""

    def list_recent_with_report(
        self, mail_filter: Optional[MailFilter] = None
    ) -> Tuple[List[MailMessage], List[Tuple[str, ProviderError]]]:
        """Like ``list_recent`` but also returns messages that could not be fetched.

        Raises:
            ProviderError: if the listing itself fails
        """
        return self.list_recent(mail_filter), []


def _decode_body(data: str) -> str:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")


def extract_text(payload: Dict[str, Any]) -> str:
    """Concatenate the text/plain parts of a Gmail message payload."""
    if payload.get("mimeType") == "text/plain":
        data = payload.get("body", {}).get("data")
        return _decode_body(data) if data else ""

    content = ""
    for part in payload.get("parts", []) or []:
        if part.get("mimeType", "").startswith("multipart/"):
            content += extract_text(part)
        elif part.get("mimeType") == "text/plain" and part.get("body", {}).get("data"):
            content += _decode_body(part["body"]["data"])
    return content


class GmailClient(MailProvider):
    """Gmail REST API client authenticated with an OAuth access token."""

    provider = "gmail"

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://gmail.googleapis.com/gmail/v1/users/me",
        processed_label: str = "processed",
        timeout: int = 30,
    ):
        """Initialize Gmail client.

        Args:
            access_token: OAuth access token with the gmail.modify scope
            base_url: Gmail API base URL for the authenticated user
            processed_label: Label applied to scanned messages
            timeout: Request timeout in seconds
        """
        if not access_token:
            raise ValueError("GMAIL_ACCESS_TOKEN is not configured")
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.processed_label = processed_label
        self.timeout = timeout
        self._label_id: Optional[str] = None
        self._own_address: Optional[str] = None

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        """Make an authenticated Gmail API request."""
        try:
            response = requests.request(
                method,
                f"{self.base_url}/{path}",
                headers={
                    "Authorization": f"Bearer {self.access_token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                **kwargs,
            )
        except requests.exceptions.Timeout as e:
            logger.error(f"[GmailClient] Timeout on {method} {path}")
            raise ProviderError(f"Request timed out: {e}", provider=self.provider) from e
        except requests.exceptions.RequestException as e:
            logger.error(f"[GmailClient] Request error on {method} {path}: {e}")
            raise ProviderError(str(e), provider=self.provider) from e

        if response.status_code == 401:
            raise ProviderError(
                "Gmail token expired or invalid", provider=self.provider, status_code=401
            )
        if not response.ok:
            raise ProviderError(
                f"Gmail API error: {response.text[:200]}",
                provider=self.provider,
                status_code=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(
                f"Gmail response to {method} {path} was not JSON", provider=self.provider
            ) from e

    def list_recent(self, mail_filter: Optional[MailFilter] = None) -> List[MailMessage]:
        messages, failures = self.list_recent_with_report(mail_filter)
        if failures:
            raise failures[0][1]
        return messages

    def list_recent_with_report(
        self, mail_filter: Optional[MailFilter] = None
    ) -> Tuple[List[MailMessage], List[Tuple[str, ProviderError]]]:
        mail_filter = mail_filter or MailFilter()
        listing = self._request(
            "GET",
            "messages",
            params={"q": mail_filter.query, "maxResults": mail_filter.max_results},
        )

        messages = []
        failures = []
        for ref in listing.get("messages", []):
            try:
                data = self._request("GET", f"messages/{ref['id']}", params={"format": "full"})
            except ProviderError as e:
                logger.warning(f"[GmailClient] Could not fetch message {ref['id']}: {e}")
                failures.append((ref["id"], e))
                continue
            messages.append(self._parse_message(data))

        logger.info(f"[GmailClient] Listed {len(messages)} message(s), {len(failures)} unreadable")
        return messages, failures

    @staticmethod
    def _parse_message(data: Dict[str, Any]) -> MailMessage:
        payload = data.get("payload", {})
        headers = {
            h.get("name", "").lower(): h.get("value", "") for h in payload.get("headers", [])
        }
        received_at = None
        if data.get("internalDate"):
            received_at = datetime.fromtimestamp(int(data["internalDate"]) / 1000, tz=timezone.utc)
        return MailMessage(
            id=data.get("id", ""),
            sender=headers.get("from", ""),
            subject=headers.get("subject", ""),
            body=extract_text(payload) or data.get("snippet", ""),
            received_at=received_at,
        )

    def _processed_label_id(self) -> str:
        if self._label_id:
            return self._label_id
        labels = self._request("GET", "labels").get("labels", [])
        for label in labels:
            if label.get("name") == self.processed_label:
                self._label_id = label["id"]
                return self._label_id
        created = self._request(
            "POST",
            "labels",
            json={
                "name": self.processed_label,
                "labelListVisibility": "labelShow",
                "messageListVisibility": "show",
            },
        )
        self._label_id = created["id"]
        logger.info(f"[GmailClient] Created label '{self.processed_label}'")
        return self._label_id

    def mark_processed(self, message_id: str) -> None:
        self._request(
            "POST",
            f"messages/{message_id}/modify",
            json={"addLabelIds": [self._processed_label_id()]},
        )

    def send(self, to: str, subject: str, body: str) -> str:
        message = MIMEText(body, "plain", "utf-8")
        message["To"] = to
        message["From"] = self.get_own_address()
        message["Subject"] = subject
        raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")

        result = self._request("POST", "messages/send", json={"raw": raw})
        logger.info(f"[GmailClient] Sent '{subject}' to {to}")
        return result.get("id", "")

    def get_own_address(self) -> str:
        if self._own_address is None:
            profile = self._request("GET", "profile")
            self._own_address = (profile.get("emailAddress") or "").lower()
        return self._own_address
