"""Star action handler."""

from .handler import StarHandler

__all__ = ["StarHandler"]
