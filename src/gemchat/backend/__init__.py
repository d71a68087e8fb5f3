"""Generative-text backends.

Hides which service answers chat turns and how its SDK is driven.
"""

from .base import ChatBackend, Conversation
from .errors import BackendError, ContentBlocked, EmptyResponse, StoppedEarly, TransportError
from .factory import create_chat_backend
from .models import (
    DEFAULT_SAFETY_SETTINGS,
    BackendMode,
    BackendReply,
    BlockThreshold,
    HarmCategory,
    ImageContent,
    ImagePayload,
    ImageTextContent,
    StreamingResponse,
    TextContent,
    TurnContent,
    build_turn_content,
    mode_for,
)
from .providers import EchoBackend, GeminiBackend

__all__ = [
    "ChatBackend",
    "Conversation",
    "create_chat_backend",
    "BackendError",
    "ContentBlocked",
    "EmptyResponse",
    "StoppedEarly",
    "TransportError",
    "DEFAULT_SAFETY_SETTINGS",
    "BackendMode",
    "BackendReply",
    "BlockThreshold",
    "HarmCategory",
    "ImageContent",
    "ImagePayload",
    "ImageTextContent",
    "StreamingResponse",
    "TextContent",
    "TurnContent",
    "build_turn_content",
    "mode_for",
    "EchoBackend",
    "GeminiBackend",
]
