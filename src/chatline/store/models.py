"""Data models for the message store.

Messages are the only persistent entity. They are created by the send
pipeline, never mutated (models are frozen) and never deleted here.
"""

from collections.abc import Iterable
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class Sender(str, Enum):
    """Author of a message."""

    USER = "user"
    BOT = "bot"


class Message(BaseModel):
    """A chat message.

    ``id`` and ``timestamp`` are assigned by the store on append and are
    ``None`` until then.
    """

    model_config = ConfigDict(frozen=True)

    id: str | None = Field(default=None, description="Store-assigned identifier")
    text: str = Field(min_length=1, description="User-visible content (plain text or markdown)")
    sender: Sender = Field(description="Who wrote the message")
    timestamp: datetime | None = Field(default=None, description="Store-assigned ordering value")
    is_error: bool = Field(default=False, description="Surfaced failure notice, not a model reply")

    @property
    def is_persisted(self) -> bool:
        """Whether the store has assigned an id."""
        return self.id is not None

    @field_serializer("timestamp")
    def serialize_timestamp(self, value: datetime | None) -> str | None:
        """Serialize datetime to ISO format."""
        return value.isoformat() if value else None


class ConversationScope(BaseModel):
    """Identifies one user's conversation within an application."""

    model_config = ConfigDict(frozen=True)

    app_id: str = Field(min_length=1)
    user_id: str = Field(min_length=1)

    @property
    def path(self) -> str:
        """Logical collection path of the scope's messages."""
        return f"artifacts/{self.app_id}/users/{self.user_id}/messages"


def _order_key(message: Message) -> tuple:
    # Unassigned timestamps sort last; ids break ties
    return (
        message.timestamp is None,
        message.timestamp or datetime.min,
        message.id or "",
    )


def sort_messages(messages: Iterable[Message]) -> list[Message]:
    """Order messages by timestamp, regardless of arrival order.

    Args:
        messages: Messages in any order

    Returns:
        New list, oldest first
    """
    return sorted(messages, key=_order_key)
