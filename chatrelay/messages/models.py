"""Message value object shared by the store, the hub and the poller."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class Message(BaseModel):
    """A chat message as read from the store.

    Field names follow Python conventions; the wire/JSON form uses the
    camelCase aliases (``createdAt``, ``updatedAt``) the web client expects.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    sender: str
    receiver: str
    content: str
    timestamp: datetime
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
