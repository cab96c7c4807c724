"""
Abstract base class for email processors.
"""

from abc import ABC, abstractmethod


class BaseProcessor(ABC):
    """Abstract processor interface for per-user email processing pipelines."""

    @abstractmethod
    def process(self, user_id: str) -> dict:
        """
        Process new emails for one user.

        Args:
            user_id: User whose mailbox to process

        Returns:
            Processing statistics dict
        """
        pass
