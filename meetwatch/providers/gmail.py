"""
Tool: Gmail Provider
Purpose: Gmail message source and reply sink via the Gmail REST API

GmailMessageSource lists unread inbox messages, fetches them, and marks
them processed by removing the UNREAD label. GmailReplySink sends plain
text replies threaded onto the original conversation.

Usage:
    from meetwatch.providers.credentials import OAuthCredentialProvider
    from meetwatch.providers.gmail import GmailMessageSource, GmailReplySink

    credentials = OAuthCredentialProvider.from_token_file("data/google_token.json")
    await credentials.init()

    source = GmailMessageSource(credentials)
    for message_id in await source.list_unread(max_results=10):
        message = await source.get(message_id)

Dependencies:
    - aiohttp (pip install aiohttp)
"""

from __future__ import annotations

import base64
from email.mime.text import MIMEText
from typing import Any

from meetwatch.errors import ExternalCallFailure, ReplyTransmissionFailure
from meetwatch.logging_config import get_logger
from meetwatch.models import EmailAddress, InboundMessage
from meetwatch.providers.base import MessageSource, ReplySink
from meetwatch.providers.google_api import GoogleApiClient

logger = get_logger(__name__)

GMAIL_API_BASE = "https://gmail.googleapis.com/gmail/v1"


def _angle(message_id: str) -> str:
    """Message-ID headers are written in angle brackets; add them if missing."""
    message_id = message_id.strip()
    if message_id.startswith("<") and message_id.endswith(">"):
        return message_id
    return f"<{message_id}>"


def extract_body(payload: dict, mime_type: str = "text/plain") -> str | None:
    """Extract the first body part of the given MIME type."""
    if payload.get("mimeType") == mime_type:
        body_data = payload.get("body", {}).get("data")
        if body_data:
            padded = body_data + "=" * (-len(body_data) % 4)
            return base64.urlsafe_b64decode(padded).decode("utf-8", errors="ignore")

    for part in payload.get("parts", []):
        result = extract_body(part, mime_type)
        if result:
            return result

    return None


def parse_gmail_message(data: dict[str, Any]) -> InboundMessage:
    """Parse a Gmail API message resource into an InboundMessage."""
    payload = data.get("payload", {})
    headers = {h["name"].lower(): h["value"] for h in payload.get("headers", [])}

    sender_raw = headers.get("reply-to") or headers.get("from", "")
    sender = EmailAddress.from_string(sender_raw) if sender_raw else None

    return InboundMessage(
        id=data.get("id", ""),
        thread_id=data.get("threadId"),
        subject=headers.get("subject", ""),
        sender=sender,
        message_id_header=headers.get("message-id"),
        snippet=data.get("snippet", ""),
        body_text=extract_body(payload, "text/plain"),
        headers=headers,
        labels=data.get("labelIds", []),
    )


class GmailMessageSource(GoogleApiClient, MessageSource):
    """Unread Gmail messages as a message source."""

    service = "gmail"

    def __init__(self, credentials, request_timeout_seconds: float = 20.0, query: str = "is:unread in:inbox"):
        super().__init__(credentials, request_timeout_seconds)
        self.query = query

    @property
    def provider_name(self) -> str:
        return "gmail"

    async def list_unread(self, max_results: int = 10) -> list[str]:
        url = f"{GMAIL_API_BASE}/users/me/messages"
        params = {"q": self.query, "maxResults": max_results}
        data = self.unwrap(await self._make_request("GET", url, params=params))
        return [m["id"] for m in data.get("messages", []) if m.get("id")]

    async def get(self, message_id: str) -> InboundMessage:
        url = f"{GMAIL_API_BASE}/users/me/messages/{message_id}"
        data = self.unwrap(await self._make_request("GET", url, params={"format": "full"}))
        return parse_gmail_message(data)

    async def mark_processed(self, message_id: str) -> None:
        url = f"{GMAIL_API_BASE}/users/me/messages/{message_id}/modify"
        self.unwrap(await self._make_request("POST", url, data={"removeLabelIds": ["UNREAD"]}))
        logger.debug(f"Marked {message_id} as read")


class GmailReplySink(GoogleApiClient, ReplySink):
    """Sends plain text replies through Gmail, threaded onto the original message."""

    service = "gmail"

    def build_raw(
        self,
        to_address: str,
        subject: str,
        body: str,
        in_reply_to_message_id: str | None = None,
    ) -> str:
        """Build the base64url-encoded RFC 822 message Gmail expects in `raw`."""
        message = MIMEText(body, "plain", "utf-8")
        message["To"] = to_address
        message["Subject"] = subject if subject.lower().startswith("re:") else f"Re: {subject}"
        if in_reply_to_message_id:
            message["In-Reply-To"] = _angle(in_reply_to_message_id)
            message["References"] = _angle(in_reply_to_message_id)
        return base64.urlsafe_b64encode(message.as_bytes()).decode()

    async def send(
        self,
        to_address: str,
        subject: str,
        body: str,
        thread_id: str | None = None,
        in_reply_to_message_id: str | None = None,
    ) -> bool:
        data: dict[str, Any] = {"raw": self.build_raw(to_address, subject, body, in_reply_to_message_id)}
        if thread_id:
            data["threadId"] = thread_id

        url = f"{GMAIL_API_BASE}/users/me/messages/send"
        try:
            sent = self.unwrap(await self._make_request("POST", url, data=data))
        except ExternalCallFailure as e:
            raise ReplyTransmissionFailure(f"Sending reply to {to_address} failed: {e}") from e

        logger.info(f"Sent reply to {to_address} (gmail id {sent.get('id')})")
        return True
