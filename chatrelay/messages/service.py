"""Message service: store writes plus the hub producer hook.

Creating or editing a message persists it first, then hands it to the
broadcast hub (best-effort) so push subscribers see it immediately.
Polling subscribers pick it up from the store on their next tick.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..database.manager import DatabaseManager
    from ..sse.hub import BroadcastHub
    from .models import Message

logger = logging.getLogger(__name__)


class MessageService:
    """Creates and edits messages; publishes them to the hub when one is set."""

    def __init__(self, db_manager: DatabaseManager, hub: BroadcastHub | None = None) -> None:
        self.db_manager = db_manager
        self.hub = hub

    def create(self, sender: str, receiver: str, content: str, timestamp: datetime | None = None) -> Message:
        message = self.db_manager.messages_repo.create_message(sender, receiver, content, timestamp=timestamp)
        logger.info(f"Message {message.id} created ({sender} -> {receiver})")
        self._publish(message)
        return message

    def update(self, message_id: str, content: str) -> Message | None:
        message = self.db_manager.messages_repo.update_content(message_id, content)
        if message is None:
            return None
        logger.info(f"Message {message.id} updated")
        self._publish(message)
        return message

    def recent(self, limit: int = 20) -> list[Message]:
        return self.db_manager.messages_repo.get_recent(limit)

    def _publish(self, message: Message) -> None:
        if self.hub is None:
            return
        result = self.hub.broadcast([message])
        logger.debug(f"Message {message.id} broadcast to {result.delivered} subscriber(s)")
