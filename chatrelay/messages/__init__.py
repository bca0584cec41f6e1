"""Chat message model and the create/update service."""

from .models import Message
from .service import MessageService

__all__ = ["Message", "MessageService"]
