"""
Gmail API client for per-user mailbox access.

Every call authenticates with the OAuth tokens stored for the user in the
credential store. Tokens refreshed on the way are written back.
"""

import base64
import html
import re
from datetime import timezone
from email.message import EmailMessage
from typing import Any

import httplib2
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build

from inbox_agent.config import settings
from inbox_agent.core.database import Database
from inbox_agent.core.exceptions import ConfigurationError
from inbox_agent.core.logging import get_logger
from inbox_agent.core.models import MailMessage, UserCredentials

log = get_logger(__name__)

GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.modify",
]

STARRED_LABEL = "STARRED"


class GmailClient:
    """Gmail client authenticated per user from the credential store."""

    def __init__(
        self,
        store: Database | None = None,
        client_id: str | None = None,
        client_secret: str | None = None,
        timeout: float | None = None,
    ):
        self.store = store or Database()
        self.client_id = client_id or settings.gmail_client_id
        self.client_secret = client_secret or settings.gmail_client_secret
        self.timeout = timeout or settings.gmail_timeout_seconds

    def list_unseen(self, user_id: str, query: str = "", max_results: int = 10) -> list[dict[str, Any]]:
        """
        List messages matching a Gmail search query and fetch each in full.

        Args:
            user_id: Agent user whose mailbox to read
            query: Gmail search query, e.g. "is:unread newer_than:1d"
            max_results: Maximum number of messages to return

        Returns:
            Raw Gmail message resources (format=full)
        """
        service = self._service(user_id)
        response = service.users().messages().list(
            userId="me",
            q=query,
            maxResults=max_results,
        ).execute()

        messages = []
        for ref in response.get("messages", []) or []:
            message = service.users().messages().get(
                userId="me",
                id=ref["id"],
                format="full",
            ).execute()
            messages.append(message)

        log.info("gmail_messages_listed", user_id=user_id, query=query, count=len(messages))
        return messages

    @staticmethod
    def extract(raw: dict[str, Any]) -> MailMessage:
        """Pull sender, subject and plain-text body out of a raw Gmail message."""
        payload = raw.get("payload") or {}
        headers = {
            h.get("name", "").lower(): h.get("value", "")
            for h in payload.get("headers", []) or []
        }
        text, html_body = _extract_bodies(payload)

        return MailMessage(
            message_id=raw.get("id", ""),
            thread_id=raw.get("threadId", ""),
            sender=headers.get("from", ""),
            subject=headers.get("subject", ""),
            body=text or _strip_html(html_body),
            internet_message_id=headers.get("message-id", ""),
            references=headers.get("references", ""),
        )

    def send(
        self,
        user_id: str,
        to: str,
        subject: str,
        body: str,
        thread_id: str | None = None,
        in_reply_to: str | None = None,
        references: str | None = None,
    ) -> None:
        """
        Send a plain-text email from the user's mailbox.

        When answering a message, pass its thread id and RFC Message-ID so
        Gmail files the reply in the same conversation.
        """
        message = EmailMessage()
        message["To"] = to
        message["Subject"] = subject
        if in_reply_to:
            message["In-Reply-To"] = in_reply_to
            message["References"] = f"{references} {in_reply_to}".strip() if references else in_reply_to
        message.set_content(body)

        request_body: dict[str, Any] = {
            "raw": base64.urlsafe_b64encode(message.as_bytes()).decode("ascii"),
        }
        if thread_id:
            request_body["threadId"] = thread_id

        service = self._service(user_id)
        service.users().messages().send(userId="me", body=request_body).execute()
        log.info("gmail_message_sent", user_id=user_id, to=to, subject=subject)

    def flag(self, user_id: str, message_id: str) -> None:
        """Star a message."""
        service = self._service(user_id)
        service.users().messages().modify(
            userId="me",
            id=message_id,
            body={"addLabelIds": [STARRED_LABEL]},
        ).execute()
        log.info("gmail_message_starred", user_id=user_id, message_id=message_id)

    def _service(self, user_id: str):
        """Build a Gmail API service for the user, refreshing the token if expired."""
        stored = self.store.get_credentials(user_id)
        if not stored or not stored.is_mail_connected:
            raise ConfigurationError("Gmail not connected")

        credentials = self._build_credentials(stored)
        if credentials.expired and credentials.refresh_token:
            credentials.refresh(Request())
            self.store.upsert_credentials(
                user_id,
                gmail_access_token=credentials.token,
                gmail_token_expiry=credentials.expiry.replace(tzinfo=timezone.utc) if credentials.expiry else None,
            )
            log.info("gmail_token_refreshed", user_id=user_id)

        http = AuthorizedHttp(credentials, http=httplib2.Http(timeout=self.timeout))
        return build("gmail", "v1", http=http, cache_discovery=False)

    def _build_credentials(self, stored: UserCredentials) -> Credentials:
        expiry = stored.gmail_token_expiry
        if expiry is not None and expiry.tzinfo is not None:
            # google-auth compares against naive UTC
            expiry = expiry.astimezone(timezone.utc).replace(tzinfo=None)

        return Credentials(
            token=stored.gmail_access_token,
            refresh_token=stored.gmail_refresh_token,
            token_uri=settings.gmail_token_uri,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=GMAIL_SCOPES,
            expiry=expiry,
        )


def _decode_b64url(data: str) -> bytes:
    s = data.strip()
    padding = 4 - (len(s) % 4)
    if padding and padding < 4:
        s += "=" * padding
    return base64.urlsafe_b64decode(s.encode("utf-8"))


def _extract_bodies(payload: dict[str, Any]) -> tuple[str, str]:
    """Collect text/plain and text/html content from a (possibly nested) payload."""
    text_parts: list[str] = []
    html_parts: list[str] = []

    def visit(part: dict[str, Any]) -> None:
        mime_type = part.get("mimeType", "")
        data = (part.get("body") or {}).get("data")
        decoded = _decode_b64url(data).decode("utf-8", errors="replace") if data else ""
        if mime_type.startswith("text/plain") and decoded:
            text_parts.append(decoded)
        elif mime_type.startswith("text/html") and decoded:
            html_parts.append(decoded)
        for child in part.get("parts", []) or []:
            visit(child)

    if payload:
        visit(payload)
        if not text_parts and not html_parts:
            # Single-part messages may carry data without a text mime type
            data = (payload.get("body") or {}).get("data")
            if data:
                text_parts.append(_decode_b64url(data).decode("utf-8", errors="replace"))
    return "\n".join(text_parts).strip(), "\n".join(html_parts).strip()


def _strip_html(content: str) -> str:
    """Strip HTML tags from text and decode entities."""
    if not content:
        return ""
    text = re.sub(r"(?is)<(script|style)[^>]*>.*?</\1>", " ", content)
    text = re.sub(r"<[^>]+>", " ", text)
    text = html.unescape(text)
    return re.sub(r"\s+", " ", text).strip()
