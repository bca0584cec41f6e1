"""Repository classes for domain-specific database operations."""

from .messages import MessageRepository

__all__ = [
    "MessageRepository",
]
