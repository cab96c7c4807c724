"""Action handlers."""

from .base import BaseHandler, HandlerContext
from .registry import register_handler, get_handler

# Import handlers to trigger registration via @register_handler decorator
from .reply import ReplyHandler
from .star import StarHandler

__all__ = [
    "BaseHandler",
    "HandlerContext",
    "register_handler",
    "get_handler",
    "ReplyHandler",
    "StarHandler",
]
