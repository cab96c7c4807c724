"""
Reply handler: drafts and sends an answer to the sender.
"""

from inbox_agent.core.logging import get_logger
from inbox_agent.core.models import (
    Action,
    ClassificationResult,
    EmailLogEntry,
    LogStatus,
    MailMessage,
    ProcessingResult,
)
from inbox_agent.handlers.base import BaseHandler, HandlerContext
from inbox_agent.handlers.registry import register_handler

log = get_logger(__name__)

REPLY_PREFIX = "Re:"
FAILED_SUBJECT = "Reply failed"


def reply_subject(subject: str) -> str:
    """Prefix a subject with 'Re: ' unless it already starts with 'Re:' (case-sensitive)."""
    subject = subject or ""
    return subject if subject.startswith(REPLY_PREFIX) else f"{REPLY_PREFIX} {subject}"


@register_handler
class ReplyHandler(BaseHandler):
    """Handler for emails that ask for something the user can answer, e.g. a resume."""

    def can_handle(self, action: Action) -> bool:
        return action == Action.REPLY

    def handle(
        self,
        context: HandlerContext,
        message: MailMessage,
        classification: ClassificationResult,
    ) -> ProcessingResult:
        """
        Draft a reply, send it and record the outcome.

        1. Draft reply body with the classifier
        2. Send it to the original sender
        3. Append a sent (or failed) log entry
        """
        subject = reply_subject(message.subject)

        try:
            reply_text = context.classifier.draft_reply(
                context.user_id,
                message.body,
                message.sender,
            )
            context.mail.send(
                context.user_id,
                message.sender,
                subject,
                reply_text,
                thread_id=message.thread_id or None,
                in_reply_to=message.internet_message_id or None,
                references=message.references or None,
            )
        except Exception as e:
            log.error("reply_failed", message_id=message.message_id, error=str(e))
            context.store.append_log(EmailLogEntry(
                user_id=context.user_id,
                message_id=message.message_id,
                from_email=message.sender,
                subject=FAILED_SUBJECT,
                action=Action.REPLY,
                status=LogStatus.FAILED,
            ))
            return ProcessingResult(
                success=False,
                message_id=message.message_id,
                action=Action.REPLY,
                status=LogStatus.FAILED,
                error=str(e),
            )

        # Reply is already delivered at this point
        try:
            context.store.append_log(EmailLogEntry(
                user_id=context.user_id,
                message_id=message.message_id,
                from_email=message.sender,
                subject=subject,
                action=Action.REPLY,
                response_text=reply_text,
                status=LogStatus.SENT,
            ))
        except Exception as e:
            log.error("reply_log_failed", message_id=message.message_id, error=str(e))
        log.info("reply_sent", message_id=message.message_id, to=message.sender_email)

        return ProcessingResult(
            success=True,
            message_id=message.message_id,
            action=Action.REPLY,
            status=LogStatus.SENT,
            details={"subject": subject, "to": message.sender},
        )
