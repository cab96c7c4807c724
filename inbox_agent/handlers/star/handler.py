"""
Star handler: flags promising emails in the mailbox.
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

STARRED_SUBJECT = "Email starred"
FAILED_SUBJECT = "Star failed"


@register_handler
class StarHandler(BaseHandler):
    """Handler for positive responses (next round, interview invitations)."""

    def can_handle(self, action: Action) -> bool:
        return action == Action.STAR

    def handle(
        self,
        context: HandlerContext,
        message: MailMessage,
        classification: ClassificationResult,
    ) -> ProcessingResult:
        try:
            context.mail.flag(context.user_id, message.message_id)
        except Exception as e:
            log.error("star_failed", message_id=message.message_id, error=str(e))
            context.store.append_log(EmailLogEntry(
                user_id=context.user_id,
                message_id=message.message_id,
                from_email="",
                subject=FAILED_SUBJECT,
                action=Action.STAR,
                status=LogStatus.FAILED,
            ))
            return ProcessingResult(
                success=False,
                message_id=message.message_id,
                action=Action.STAR,
                status=LogStatus.FAILED,
                error=str(e),
            )

        context.store.append_log(EmailLogEntry(
            user_id=context.user_id,
            message_id=message.message_id,
            from_email="",
            subject=STARRED_SUBJECT,
            action=Action.STAR,
            status=LogStatus.SENT,
        ))
        log.info("email_starred", message_id=message.message_id)

        return ProcessingResult(
            success=True,
            message_id=message.message_id,
            action=Action.STAR,
            status=LogStatus.SENT,
        )
