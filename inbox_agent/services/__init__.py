"""External service clients."""

from .gmail import GmailClient

__all__ = ["GmailClient"]
