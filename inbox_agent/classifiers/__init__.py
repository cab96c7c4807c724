"""
Email classifiers module.

Uses an OpenAI-compatible chat completions API with each user's own key.
"""

from inbox_agent.classifiers.base import BaseClassifier
from inbox_agent.classifiers.llm import LLMClassifier


def get_classifier(store=None) -> LLMClassifier:
    """
    Get the classifier for inbox triage.

    Args:
        store: Credential store to read per-user API keys from
    """
    return LLMClassifier(store=store)


__all__ = [
    "BaseClassifier",
    "LLMClassifier",
    "get_classifier",
]
