"""Offline backend that answers every turn by repeating it.

Useful for trying the terminal client without an API key and for tests
that need a real ``ChatBackend`` without network access.
"""

import asyncio
from collections.abc import AsyncIterator

from ..base import ChatBackend, Conversation
from ..models import (
    BackendReply,
    ImageContent,
    ImageTextContent,
    StreamingResponse,
    TextContent,
    TurnContent,
)


def echo_text(content: TurnContent) -> str:
    if isinstance(content, TextContent):
        return content.text
    if isinstance(content, ImageContent):
        image = content.image
        return f"Received a {image.mime_type} image ({len(image.data)} bytes)"
    if isinstance(content, ImageTextContent):
        image = content.image
        return f"Received a {image.mime_type} image ({len(image.data)} bytes): {content.text}"
    raise TypeError(f"Unsupported turn content: {type(content).__name__}")


class EchoConversation(Conversation):

    def __init__(self, chunk_size: int, delay: float):
        self._chunk_size = chunk_size
        self._delay = delay
        self.turns: list[TurnContent] = []

    async def send(self, content: TurnContent) -> BackendReply:
        self.turns.append(content)
        await asyncio.sleep(self._delay)
        return BackendReply(text=echo_text(content), model="echo", finish_reason="STOP")

    async def send_stream(self, content: TurnContent) -> StreamingResponse:
        self.turns.append(content)
        return StreamingResponse(self._chunks(echo_text(content)))

    async def _chunks(self, text: str) -> AsyncIterator[str]:
        for start in range(0, len(text), self._chunk_size):
            await asyncio.sleep(self._delay)
            yield text[start:start + self._chunk_size]


class EchoBackend(ChatBackend):
    """Backend that replies with the user's own turn."""

    def __init__(self, chunk_size: int = 8, delay: float = 0.0):
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self._chunk_size = chunk_size
        self._delay = delay

    @property
    def name(self) -> str:
        return "echo"

    def start_conversation(self) -> EchoConversation:
        return EchoConversation(self._chunk_size, self._delay)

    async def close(self) -> None:
        pass
