"""
Shared pytest fixtures for inbox_agent tests.
"""

import base64
from datetime import datetime, timezone
from itertools import count
from unittest.mock import MagicMock

import pytest

from inbox_agent.core.models import (
    Action,
    ActivityEntry,
    ClassificationResult,
    EmailLogEntry,
    MailMessage,
    UserCredentials,
)
from inbox_agent.services.gmail import GmailClient


def encode_body(text: str) -> str:
    """Encode text the way the Gmail API returns body data."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


def make_raw_message(
    message_id: str = "msg-1",
    sender: str = "Recruiter <recruiter@acme.com>",
    subject: str = "Software Engineer role",
    body: str = "Hi, please send your resume.",
    thread_id: str = "thread-1",
) -> dict:
    """Build a raw Gmail message resource (format=full, single part)."""
    return {
        "id": message_id,
        "threadId": thread_id,
        "payload": {
            "mimeType": "text/plain",
            "headers": [
                {"name": "From", "value": sender},
                {"name": "Subject", "value": subject},
                {"name": "Message-ID", "value": f"<{message_id}@mail.acme.com>"},
            ],
            "body": {"data": encode_body(body)},
        },
    }


@pytest.fixture
def raw_message() -> dict:
    """Unread recruiter email asking for a resume."""
    return make_raw_message()


@pytest.fixture
def sample_message() -> MailMessage:
    """Parsed recruiter email."""
    return MailMessage(
        message_id="msg-1",
        thread_id="thread-1",
        sender="Recruiter <recruiter@acme.com>",
        subject="Software Engineer role",
        body="Hi, please send your resume.",
        internet_message_id="<msg-1@mail.acme.com>",
    )


@pytest.fixture
def sample_credentials() -> UserCredentials:
    """Active user with mail and classifier connected."""
    return UserCredentials(
        user_id="user-1",
        agent_active=True,
        gmail_access_token="access-token",
        gmail_refresh_token="refresh-token",
        classifier_api_key="sk-test",
        personal_description="a backend engineer with 5 years of Python",
        resume_link="https://example.com/resume.pdf",
    )


@pytest.fixture
def reply_classification() -> ClassificationResult:
    return ClassificationResult(action=Action.REPLY, confidence=0.9, reasoning="Asks for resume")


@pytest.fixture
def mock_store(sample_credentials):
    """Mock credential store and log/activity sink without a real DB connection."""
    store = MagicMock()
    ids = count(1)

    def append_log(entry: EmailLogEntry) -> EmailLogEntry:
        entry.id = next(ids)
        entry.created_at = datetime.now(timezone.utc)
        return entry

    def append_activity(entry: ActivityEntry) -> ActivityEntry:
        entry.id = next(ids)
        entry.created_at = datetime.now(timezone.utc)
        return entry

    store.get_credentials.return_value = sample_credentials
    store.get_processed_message_ids.return_value = set()
    store.append_log.side_effect = append_log
    store.append_activity.side_effect = append_activity
    return store


@pytest.fixture
def mock_mail(raw_message):
    """Mock mail client returning one unread message; extract parses for real."""
    mail = MagicMock()
    mail.list_unseen.return_value = [raw_message]
    mail.extract.side_effect = GmailClient.extract
    return mail


@pytest.fixture
def mock_classifier(reply_classification):
    """Mock classifier that always proposes a reply."""
    classifier = MagicMock()
    classifier.classify.return_value = reply_classification
    classifier.draft_reply.return_value = "Thanks for reaching out! My resume: https://example.com/resume.pdf"
    return classifier


def logged(store) -> list[EmailLogEntry]:
    """Log entries appended to a mock store, in order."""
    return [c.args[0] for c in store.append_log.call_args_list]


def activities(store) -> list[ActivityEntry]:
    """Activity entries appended to a mock store, in order."""
    return [c.args[0] for c in store.append_activity.call_args_list]
