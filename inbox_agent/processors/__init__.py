"""Email processors."""

from .base import BaseProcessor
from .inbox import InboxProcessor

__all__ = ["BaseProcessor", "InboxProcessor"]
