"""Pytest configuration and shared fixtures."""
import asyncio
import os
from collections.abc import AsyncIterator
from io import BytesIO

import pytest
from PIL import Image

from gemchat.backend import (
    BackendReply,
    ChatBackend,
    Conversation,
    StreamingResponse,
    TurnContent,
)


def encode_image(image_format: str = "PNG", size: tuple[int, int] = (32, 24)) -> bytes:
    """Encode a small solid-colour picture in the given Pillow format."""
    buffer = BytesIO()
    Image.new("RGB", size, (200, 80, 40)).save(buffer, format=image_format)
    return buffer.getvalue()


class ScriptedConversation(Conversation):
    """Conversation that answers from a script instead of a real service.

    Each script entry is either a reply string, a list of stream fragments,
    or an exception instance to raise.
    """

    def __init__(self, script: list, gate: asyncio.Event | None = None):
        self.script = script
        self.gate = gate
        self.turns: list[TurnContent] = []

    def _next(self):
        if not self.script:
            return "ok"
        return self.script.pop(0)

    async def send(self, content: TurnContent) -> BackendReply:
        self.turns.append(content)
        if self.gate is not None:
            await self.gate.wait()
        entry = self._next()
        if isinstance(entry, BaseException):
            raise entry
        if isinstance(entry, list):
            entry = "".join(entry)
        return BackendReply(text=entry, model="scripted")

    async def send_stream(self, content: TurnContent) -> StreamingResponse:
        self.turns.append(content)
        return StreamingResponse(self._fragments(self._next()))

    async def _fragments(self, entry) -> AsyncIterator[str]:
        if self.gate is not None:
            await self.gate.wait()
        if isinstance(entry, str):
            entry = [entry]
        for fragment in entry:
            if isinstance(fragment, BaseException):
                raise fragment
            yield fragment


class ScriptedBackend(ChatBackend):

    def __init__(self, script: list | None = None, gate: asyncio.Event | None = None):
        self.conversation = ScriptedConversation(list(script or []), gate)

    @property
    def name(self) -> str:
        return "scripted"

    def start_conversation(self) -> ScriptedConversation:
        return self.conversation

    async def close(self) -> None:
        pass


@pytest.fixture
def scripted_backend():
    """Factory for backends answering from a script."""
    def _make(*script, gate: asyncio.Event | None = None) -> ScriptedBackend:
        return ScriptedBackend(list(script), gate=gate)
    return _make


@pytest.fixture
def image_bytes():
    """Factory for real encoded images."""
    return encode_image


@pytest.fixture
def png_bytes():
    return encode_image("PNG")


@pytest.fixture
def png_file(tmp_path, png_bytes):
    """Create a temporary PNG file."""
    path = tmp_path / "picture.png"
    path.write_bytes(png_bytes)
    return path


@pytest.fixture
def clean_env(monkeypatch):
    """Remove gemchat-related variables from the environment."""
    for name in list(os.environ):
        if name.startswith(("GEMINI_", "GEMCHAT_", "GOOGLE_API_KEY")):
            monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "gemini": os.getenv("GEMINI_API_KEY"),
    }
