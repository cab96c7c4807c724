"""
Handler registry for routing classified emails to action handlers.
"""

from typing import Type

from inbox_agent.core.logging import get_logger
from inbox_agent.core.models import Action
from inbox_agent.handlers.base import BaseHandler

log = get_logger(__name__)

# Global handler registry
_handlers: list[BaseHandler] = []


def register_handler(handler_class: Type[BaseHandler]) -> Type[BaseHandler]:
    """
    Decorator to register a handler class.

    Usage:
        @register_handler
        class ReplyHandler(BaseHandler):
            ...
    """
    _handlers.append(handler_class())
    log.debug("handler_registered", handler=handler_class.__name__)
    return handler_class


def get_handler(action: Action) -> BaseHandler | None:
    """
    Get the handler for an action.

    Args:
        action: Action chosen by the classifier

    Returns:
        Handler that performs this action, or None (e.g. for ignore)
    """
    for handler in _handlers:
        if handler.can_handle(action):
            return handler
    return None


def get_all_handlers() -> list[BaseHandler]:
    """Get all registered handlers."""
    return _handlers.copy()


def clear_handlers() -> None:
    """Clear all registered handlers (for testing)."""
    _handlers.clear()
