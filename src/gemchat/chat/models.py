"""Data models for chat conversations.

Messages are immutable once created; a session only ever appends them.
"""

from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Author(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class MediaKind(str, Enum):
    IMAGE = "image"


class SessionState(str, Enum):
    """Observable state of a chat session."""

    IDLE = "idle"
    AWAITING = "awaiting"


class Attachment(BaseModel):
    """Media attached to a message.

    References are strings: a file path, a URL, or ``memory:`` for images
    that only ever existed as bytes. Thumbnails are PNG ``data:`` URIs.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    thumbnail: str = Field(description="Reference used for previews")
    full: str = Field(description="Reference to the full-resolution media")
    kind: MediaKind = MediaKind.IMAGE
    mime_type: str | None = None


class Message(BaseModel):
    """A single entry in a conversation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    author: Author
    text: str = Field(default="", description="Message text, may be empty when an image is attached")
    attachment: Attachment | None = None
    timestamp: datetime = Field(default_factory=_utcnow)
    is_error: bool = Field(default=False, description="True when the text describes a failed turn")

    @property
    def is_user(self) -> bool:
        return self.author is Author.USER

    def to_transcript_dict(self) -> dict:
        """Plain JSON-compatible representation for transcript export."""
        return self.model_dump(mode="json", exclude_none=True)


DEFAULT_GREETING = (
    "Hey there I am Google's LLM!\n"
    "[Learn More](https://deepmind.google/technologies/gemini/)"
)
