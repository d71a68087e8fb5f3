from abc import ABC, abstractmethod
from typing import Any

from .models import BackendReply, StreamingResponse, TurnContent


class Conversation(ABC):
    """Handle on one ongoing conversation with a backend.

    The handle owns whatever continuation state the backend needs for text
    turns, so callers only pass the new turn, never the whole history.
    Multimodal turns are answered as one-shot requests.
    """

    @abstractmethod
    async def send(self, content: TurnContent) -> BackendReply:
        """Send one turn and wait for the complete reply.

        Args:
            content: The user's turn (text, image, or image with text)

        Returns:
            BackendReply containing the generated text and metadata

        Raises:
            ContentBlocked: The prompt or reply was filtered
            EmptyResponse: The backend returned no text
            StoppedEarly: The reply was truncated
            TransportError: Network, authentication or API failure
        """

    @abstractmethod
    async def send_stream(self, content: TurnContent) -> StreamingResponse:
        """Send one turn and receive the reply incrementally.

        Args:
            content: The user's turn

        Returns:
            StreamingResponse yielding text fragments in arrival order.
            Iterating it may raise any of the errors listed on ``send``.
        """


class ChatBackend(ABC):
    """Abstract base class for generative-text backends.

    This module hides the design decision of which service answers chat
    turns. Implementations must handle provider-specific details like:
    - API client setup and authentication
    - Request/response format conversion
    - Translating failures into ``gemchat.backend.errors``
    - Safety filter configuration

    Supports async context manager protocol for proper resource cleanup:
        async with backend:
            conversation = backend.start_conversation()
            reply = await conversation.send(TextContent(text="hi"))
        # Automatically cleaned up
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short identifier of the backend (e.g. 'gemini')."""

    @abstractmethod
    def start_conversation(self) -> Conversation:
        """Open a new, empty conversation."""

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""

    async def __aenter__(self) -> "ChatBackend":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup.
        This is a known harmless race condition in httpx/anyio cleanup:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            # Suppress harmless cleanup errors from httpx/anyio
            if "Event loop is closed" not in str(e):
                raise
