"""
Data models for inbox processing.

Uses dataclasses for clean, typed data structures.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parseaddr
from enum import Enum
from typing import Any, Iterable

from inbox_agent.core.exceptions import ClassificationError


class Action(str, Enum):
    """What the agent does with a classified email."""

    REPLY = "reply"
    STAR = "star"
    IGNORE = "ignore"


class LogStatus(str, Enum):
    """Status recorded on an email log entry."""

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


TERMINAL_STATUSES = {LogStatus.SENT, LogStatus.FAILED}


@dataclass
class UserCredentials:
    """Per-user connection details and agent settings."""

    user_id: str
    agent_active: bool = False
    gmail_access_token: str | None = None
    gmail_refresh_token: str | None = None
    gmail_token_expiry: datetime | None = None
    classifier_api_key: str | None = None
    personal_description: str | None = None
    resume_link: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_mail_connected(self) -> bool:
        return bool(self.gmail_access_token)


@dataclass
class MailMessage:
    """Parsed view of a provider message."""

    message_id: str
    thread_id: str = ""
    sender: str = ""
    subject: str = ""
    body: str = ""
    internet_message_id: str = ""
    references: str = ""

    @property
    def sender_email(self) -> str:
        """Extract email address from sender header like 'Name <email@example.com>'."""
        if not self.sender:
            return ""
        _, address = parseaddr(self.sender)
        return address or self.sender


@dataclass
class ClassificationResult:
    """Action proposed by the classifier for one email."""

    action: Action
    confidence: float = 0.0
    reasoning: str = ""

    def __post_init__(self):
        self.confidence = clamp_confidence(self.confidence)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClassificationResult":
        """
        Create ClassificationResult from a classifier response dict.

        Raises:
            ClassificationError: If the action is missing or not a known action.
        """
        raw_action = data.get("action")
        if not isinstance(raw_action, str):
            raise ClassificationError(f"Classifier returned no action: {data!r}")
        try:
            action = Action(raw_action.strip().lower())
        except ValueError:
            raise ClassificationError(f"Unknown action from classifier: {raw_action!r}")

        return cls(
            action=action,
            confidence=data.get("confidence"),
            reasoning=data.get("reasoning") or "No reasoning provided",
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


def clamp_confidence(value: Any) -> float:
    """Coerce a raw confidence value into [0, 1]; unusable values become 0."""
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(confidence):
        return 0.0
    return max(0.0, min(1.0, confidence))


@dataclass
class EmailLogEntry:
    """Append-only record of one processing outcome for one email."""

    user_id: str
    message_id: str
    from_email: str
    action: Action
    status: LogStatus = LogStatus.PENDING
    subject: str | None = None
    response_text: str | None = None
    id: int | None = None
    created_at: datetime | None = None


@dataclass
class ActivityEntry:
    """User-facing audit trail item."""

    user_id: str
    type: str
    description: str
    metadata: dict[str, Any] = field(default_factory=dict)
    id: int | None = None
    created_at: datetime | None = None


@dataclass
class ProcessingResult:
    """Result from handling one classified email."""

    success: bool
    message_id: str
    action: Action | None  # None when processing broke off before a decision was recorded
    status: LogStatus | None
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


@dataclass
class UserStats:
    """Aggregate counters over a user's email log."""

    emails_processed: int = 0
    auto_replies: int = 0
    starred_emails: int = 0
    success_rate: int = 0

    @classmethod
    def from_entries(cls, entries: Iterable[EmailLogEntry]) -> "UserStats":
        entries = list(entries)
        total = len(entries)
        sent = sum(1 for e in entries if e.status == LogStatus.SENT)
        return cls(
            emails_processed=total,
            auto_replies=sum(1 for e in entries if e.action == Action.REPLY),
            starred_emails=sum(1 for e in entries if e.action == Action.STAR),
            # Halves round up
            success_rate=(sent * 200 + total) // (total * 2) if total else 0,
        )

    def to_dict(self) -> dict[str, int]:
        return {
            "emailsProcessed": self.emails_processed,
            "autoReplies": self.auto_replies,
            "starredEmails": self.starred_emails,
            "successRate": self.success_rate,
        }


def processed_message_ids(
    entries: Iterable[EmailLogEntry],
    retry_pending_before: datetime | None = None,
) -> set[str]:
    """
    Message ids that must not be processed again.

    Any log row marks a message as processed. When retry_pending_before is
    given, a message whose rows are all pending reply/star rows created
    before that instant is left out, so an attempt that died between the
    pending row and its terminal row is picked up again. Ignore decisions
    never become retryable.
    """
    by_message: dict[str, list[EmailLogEntry]] = {}
    for entry in entries:
        by_message.setdefault(entry.message_id, []).append(entry)

    if retry_pending_before is None:
        return set(by_message)

    processed = set()
    for message_id, rows in by_message.items():
        stale = all(
            row.status == LogStatus.PENDING
            and row.action in (Action.REPLY, Action.STAR)
            and row.created_at is not None
            and row.created_at < retry_pending_before
            for row in rows
        )
        if not stale:
            processed.add(message_id)
    return processed


def current_status_by_message(entries: Iterable[EmailLogEntry]) -> dict[str, LogStatus]:
    """
    Derive the current status of each message from its append-only log rows.

    A terminal row (sent/failed) wins over pending; among rows of the same
    kind the newest wins. Entries without a timestamp sort as oldest.
    """
    ordered = sorted(
        entries,
        key=lambda e: (e.created_at.timestamp() if e.created_at else float("-inf"), e.id or 0),
    )
    statuses: dict[str, LogStatus] = {}
    for entry in ordered:
        current = statuses.get(entry.message_id)
        if current in TERMINAL_STATUSES and entry.status == LogStatus.PENDING:
            continue
        statuses[entry.message_id] = entry.status
    return statuses
