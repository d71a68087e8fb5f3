from collections.abc import AsyncIterator
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class StreamingResponse:
    """Wrapper for streaming backend replies that captures usage info.

    Acts as an async iterator for text fragments while storing token usage
    and the finish reason that become available at the end of the stream.

    Usage:
        stream = await conversation.send_stream(TextContent(text="hi"))
        async for chunk in stream:
            print(chunk, end="")
        # After iteration, usage is available
        print(stream.usage)  # {"prompt_tokens": 100, "completion_tokens": 50, ...}
    """

    def __init__(self, async_iter: AsyncIterator[str]):
        """Initialize with an async iterator of text fragments.

        Args:
            async_iter: Async iterator yielding text fragments
        """
        self._iter = async_iter
        self._usage: dict[str, Any] | None = None
        self._finish_reason: str | None = None

    @property
    def usage(self) -> dict[str, Any] | None:
        """Get token usage info (available after iteration completes)."""
        return self._usage

    def set_usage(self, usage: dict[str, Any]) -> None:
        """Set token usage info (called by provider at end of stream)."""
        self._usage = usage

    @property
    def finish_reason(self) -> str | None:
        """Why the backend ended the stream (available after iteration)."""
        return self._finish_reason

    def set_finish_reason(self, reason: str | None) -> None:
        self._finish_reason = reason

    def __aiter__(self) -> "StreamingResponse":
        """Return self as async iterator."""
        return self

    async def __anext__(self) -> str:
        """Get next fragment from the underlying iterator."""
        return await self._iter.__anext__()


class BackendMode(str, Enum):
    """Which kind of backend request a turn needs."""

    TEXT = "text"
    MULTIMODAL = "multimodal"


class ImagePayload(BaseModel):
    """Raw image bytes plus their media type."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(description="Encoded image bytes")
    mime_type: str = Field(default="image/jpeg", description="Media type, e.g. image/png")
    source: str | None = Field(default=None, description="Where the image came from (path or URL)")


class TextContent(BaseModel):
    """A turn made of text only."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["text"] = "text"
    text: str


class ImageContent(BaseModel):
    """A turn made of a single image and no text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["image"] = "image"
    image: ImagePayload


class ImageTextContent(BaseModel):
    """A turn made of an image with accompanying text."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["image_text"] = "image_text"
    image: ImagePayload
    text: str


TurnContent = Annotated[
    TextContent | ImageContent | ImageTextContent,
    Field(discriminator="kind"),
]


def mode_for(content: TurnContent) -> BackendMode:
    """Return the backend mode able to handle ``content``.

    Raises:
        TypeError: If ``content`` is not one of the known variants
    """
    if isinstance(content, TextContent):
        return BackendMode.TEXT
    if isinstance(content, (ImageContent, ImageTextContent)):
        return BackendMode.MULTIMODAL
    raise TypeError(f"Unsupported turn content: {type(content).__name__}")


def build_turn_content(text: str | None, image: ImagePayload | None) -> TurnContent:
    """Pick the content variant for an optional text and an optional image.

    Raises:
        ValueError: If both text and image are absent
    """
    has_text = bool(text and text.strip())
    if image is None:
        if not has_text:
            raise ValueError("A turn needs text, an image, or both")
        return TextContent(text=text)
    if has_text:
        return ImageTextContent(image=image, text=text)
    return ImageContent(image=image)


class HarmCategory(str, Enum):
    """Harm categories understood by the backend's safety filter."""

    HARASSMENT = "HARM_CATEGORY_HARASSMENT"
    HATE_SPEECH = "HARM_CATEGORY_HATE_SPEECH"
    SEXUALLY_EXPLICIT = "HARM_CATEGORY_SEXUALLY_EXPLICIT"
    DANGEROUS_CONTENT = "HARM_CATEGORY_DANGEROUS_CONTENT"


class BlockThreshold(str, Enum):
    """How aggressively a harm category is filtered."""

    BLOCK_NONE = "BLOCK_NONE"
    BLOCK_ONLY_HIGH = "BLOCK_ONLY_HIGH"
    BLOCK_MEDIUM_AND_ABOVE = "BLOCK_MEDIUM_AND_ABOVE"
    BLOCK_LOW_AND_ABOVE = "BLOCK_LOW_AND_ABOVE"


# Only sexually explicit content is tuned; everything else keeps the backend default
DEFAULT_SAFETY_SETTINGS: dict[HarmCategory, BlockThreshold] = {
    HarmCategory.SEXUALLY_EXPLICIT: BlockThreshold.BLOCK_ONLY_HIGH,
}


class BackendReply(BaseModel):
    """Complete reply to a single turn."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(description="Generated text content")
    model: str = Field(description="Model that generated the reply")
    usage: dict[str, int] | None = Field(
        default=None,
        description="Token usage information"
    )
    finish_reason: str | None = Field(default=None, description="Why generation ended")
