"""
Error types raised by the agent's clients.

Anything else reaching the pipeline (network, API, database errors) is
treated as a transient failure.
"""


class AgentError(RuntimeError):
    """Base class for inbox agent errors."""


class ConfigurationError(AgentError):
    """A user is missing something a client needs (API key, mail connection)."""


class ClassificationError(AgentError):
    """The classifier returned output that cannot be turned into an action."""
