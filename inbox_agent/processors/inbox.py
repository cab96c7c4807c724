"""
Inbox processor.

Runs one pipeline pass for one user: fetch unread mail, skip messages that
already have log history, classify the rest and dispatch each to its
action handler.
"""

import argparse
from datetime import datetime, timedelta, timezone
from typing import Any

from inbox_agent.config import settings
from inbox_agent.core.logging import get_logger, bind_context, unbind_context
from inbox_agent.core.database import Database
from inbox_agent.core.models import (
    Action,
    ActivityEntry,
    ClassificationResult,
    EmailLogEntry,
    LogStatus,
    MailMessage,
    ProcessingResult,
)
from inbox_agent.classifiers import BaseClassifier, get_classifier
from inbox_agent.handlers import HandlerContext, get_handler
from inbox_agent.services.gmail import GmailClient
from inbox_agent.processors.base import BaseProcessor

log = get_logger(__name__)

ACTIVITY_VERBS = {
    Action.REPLY: "replied to",
    Action.STAR: "starred",
    Action.IGNORE: "processed",
}


class InboxProcessor(BaseProcessor):
    """
    Per-user inbox triage pipeline.

    Errors while loading credentials or listing mail abort the run; errors
    while handling one message are logged and the batch moves on.
    """

    def __init__(
        self,
        store: Database | None = None,
        mail: GmailClient | None = None,
        classifier: BaseClassifier | None = None,
    ):
        self.store = store or Database()
        self.mail = mail or GmailClient(store=self.store)
        self.classifier = classifier or get_classifier(store=self.store)

    def process(self, user_id: str) -> dict:
        return self.process_new_emails(user_id)

    def process_new_emails(self, user_id: str) -> dict:
        """
        Run the pipeline once for a user.

        Does nothing (no mail calls, no writes) unless the user has a
        credentials record with the agent switched on.

        Returns:
            Statistics dict with counts
        """
        stats = {
            "fetched": 0,
            "processed": 0,
            "skipped": 0,
            "replied": 0,
            "starred": 0,
            "ignored": 0,
            "failed": 0,
            "errors": 0,
        }

        bind_context(user_id=user_id)
        try:
            try:
                credentials = self.store.get_credentials(user_id)
                if not credentials or not credentials.agent_active:
                    log.debug("agent_inactive_skip")
                    return stats

                messages = self.mail.list_unseen(
                    user_id,
                    settings.mail_query,
                    settings.max_emails_per_run,
                )
                processed_ids = self._processed_ids(user_id)
            except Exception as e:
                log.error("pipeline_run_aborted", error=str(e))
                stats["errors"] += 1
                return stats

            stats["fetched"] = len(messages)
            log.info("pipeline_run_started", count=len(messages))

            for raw in messages:
                result = self.process_email(user_id, raw, processed_ids)
                self._count(stats, result)

            log.info("pipeline_run_complete", **stats)
            return stats

        finally:
            unbind_context("user_id")

    def process_email(
        self,
        user_id: str,
        raw: dict[str, Any],
        processed_ids: set[str] | None = None,
    ) -> ProcessingResult | None:
        """
        Classify and act on one raw message.

        Args:
            user_id: Owner of the mailbox
            raw: Raw provider message
            processed_ids: Message ids with log history; loaded from the store if not given.
                Updated in place once this message's pending row is written.

        Returns:
            ProcessingResult, or None if the message was already processed
        """
        message_id = raw.get("id", "")
        bind_context(message_id=message_id)
        try:
            if processed_ids is None:
                processed_ids = self._processed_ids(user_id)
            if message_id in processed_ids:
                log.debug("email_already_processed")
                return None

            message = self.mail.extract(raw)
            classification = self.classifier.classify(user_id, message.body)

            self.store.append_log(EmailLogEntry(
                user_id=user_id,
                message_id=message_id,
                from_email=message.sender,
                subject=message.subject,
                action=classification.action,
                status=LogStatus.PENDING,
            ))
            processed_ids.add(message_id)

            result = self._dispatch(user_id, message, classification)
            self._record_activity(user_id, message, classification)
            return result

        except Exception as e:
            log.error("process_email_error", error=str(e))
            return ProcessingResult(
                success=False,
                message_id=message_id,
                action=None,
                status=None,
                error=str(e),
            )

        finally:
            unbind_context("message_id")

    def _dispatch(
        self,
        user_id: str,
        message: MailMessage,
        classification: ClassificationResult,
    ) -> ProcessingResult:
        handler = get_handler(classification.action)
        if not handler:
            # Ignore: the pending row is the whole record
            return ProcessingResult(
                success=True,
                message_id=message.message_id,
                action=classification.action,
                status=LogStatus.PENDING,
            )

        context = HandlerContext(
            user_id=user_id,
            mail=self.mail,
            classifier=self.classifier,
            store=self.store,
        )
        return handler.handle(context, message, classification)

    def _record_activity(
        self,
        user_id: str,
        message: MailMessage,
        classification: ClassificationResult,
    ) -> None:
        action = classification.action
        self.store.append_activity(ActivityEntry(
            user_id=user_id,
            type=f"email_{action.value}",
            description=f"Email {ACTIVITY_VERBS[action]}: {message.subject}",
            metadata={
                "from": message.sender,
                "subject": message.subject,
                "action": action.value,
                "confidence": classification.confidence,
            },
        ))

    def _processed_ids(self, user_id: str) -> set[str]:
        retry_before = None
        if settings.pending_retry_after_minutes is not None:
            retry_before = datetime.now(timezone.utc) - timedelta(
                minutes=settings.pending_retry_after_minutes
            )
        return self.store.get_processed_message_ids(user_id, retry_pending_before=retry_before)

    @staticmethod
    def _count(stats: dict, result: ProcessingResult | None) -> None:
        if result is None:
            stats["skipped"] += 1
            return
        if result.action is None:
            stats["errors"] += 1
            return

        stats["processed"] += 1
        if result.action == Action.REPLY:
            stats["replied"] += 1
        elif result.action == Action.STAR:
            stats["starred"] += 1
        else:
            stats["ignored"] += 1
        if not result.success:
            stats["failed"] += 1


def run():
    """Entry point for running one pipeline pass for a user."""
    from inbox_agent.core.logging import configure_logging
    configure_logging()

    parser = argparse.ArgumentParser(description="Process new emails for one user.")
    parser.add_argument("user_id", help="User whose mailbox to process")
    args = parser.parse_args()

    processor = InboxProcessor()
    stats = processor.process_new_emails(args.user_id)
    print(f"Inbox processing complete: {stats}")


if __name__ == "__main__":
    run()
