"""
Abstract base class for email classifiers.
"""

from abc import ABC, abstractmethod

from inbox_agent.core.models import ClassificationResult


class BaseClassifier(ABC):
    """Abstract classifier interface."""

    @abstractmethod
    def classify(self, user_id: str, body: str) -> ClassificationResult:
        """
        Decide what to do with an email.

        Args:
            user_id: User whose classifier credentials to use
            body: Plain-text email body

        Returns:
            ClassificationResult with action, clamped confidence and reasoning
        """
        pass

    @abstractmethod
    def draft_reply(self, user_id: str, body: str, from_email: str) -> str:
        """
        Draft the body of a reply to an email.

        Args:
            user_id: User on whose behalf the reply is written
            body: Plain-text body of the email being answered
            from_email: Sender of the email being answered

        Returns:
            Reply body text (no headers)
        """
        pass
