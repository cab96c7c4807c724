"""
Abstract base class for action handlers.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from inbox_agent.core.models import Action, ClassificationResult, MailMessage, ProcessingResult


@dataclass
class HandlerContext:
    """Collaborators a handler acts through, bound to one user."""

    user_id: str
    mail: Any
    classifier: Any
    store: Any


class BaseHandler(ABC):
    """Abstract handler interface for acting on classified emails."""

    @abstractmethod
    def can_handle(self, action: Action) -> bool:
        """
        Check if this handler performs the given action.

        Args:
            action: Action chosen by the classifier

        Returns:
            True if this handler performs this action
        """
        pass

    @abstractmethod
    def handle(
        self,
        context: HandlerContext,
        message: MailMessage,
        classification: ClassificationResult,
    ) -> ProcessingResult:
        """
        Perform the action and append its terminal log entry.

        Failures of the action itself are recorded as a failed log entry
        rather than raised.

        Args:
            context: User-bound collaborators
            message: Parsed email being acted on
            classification: Classification that selected this handler

        Returns:
            ProcessingResult with the terminal status
        """
        pass
