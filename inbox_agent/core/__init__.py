"""Core modules for inbox processing."""

from .logging import configure_logging, get_logger
from .exceptions import AgentError, ConfigurationError, ClassificationError
from .models import (
    Action,
    LogStatus,
    UserCredentials,
    MailMessage,
    ClassificationResult,
    EmailLogEntry,
    ActivityEntry,
    ProcessingResult,
    UserStats,
)
from .database import Database

__all__ = [
    "configure_logging",
    "get_logger",
    "AgentError",
    "ConfigurationError",
    "ClassificationError",
    "Action",
    "LogStatus",
    "UserCredentials",
    "MailMessage",
    "ClassificationResult",
    "EmailLogEntry",
    "ActivityEntry",
    "ProcessingResult",
    "UserStats",
    "Database",
]
