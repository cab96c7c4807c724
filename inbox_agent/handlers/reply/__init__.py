"""Reply action handler."""

from .handler import ReplyHandler, reply_subject

__all__ = ["ReplyHandler", "reply_subject"]
