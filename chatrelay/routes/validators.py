"""Pydantic models for POST/PATCH endpoint input validation."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator


class MessageInput(BaseModel):
    sender: str = Field(min_length=1, max_length=200)
    receiver: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1, max_length=10000)
    timestamp: datetime | None = None

    @field_validator("content")
    @classmethod
    def validate_content(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content must not be blank")
        return v

    @field_validator("timestamp")
    @classmethod
    def to_naive_utc(cls, v: datetime | None) -> datetime | None:
        # Stored as naive UTC
        if v is not None and v.tzinfo is not None:
            return v.astimezone(timezone.utc).replace(tzinfo=None)
        return v


class MessageUpdateInput(BaseModel):
    content: str = Field(min_length=1, max_length=10000)
