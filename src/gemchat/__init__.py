"""
gemchat: a chat client core over Google's Gemini models.

Each module hides one design decision: the conversation state machine
(``chat``), the generative-text service (``backend``), image loading
(``images``) and configuration (``config``).
"""

__version__ = "0.1.0"

from .backend import (
    BackendError,
    ChatBackend,
    ContentBlocked,
    EmptyResponse,
    StoppedEarly,
    TransportError,
    create_chat_backend,
)
from .chat import ChatSession, Message, SessionBusyError, SessionState
from .config import Settings, create_backend, load_settings
from .errors import ConfigError, GemchatError, MissingCredentialError

__all__ = [
    "BackendError",
    "ChatBackend",
    "ContentBlocked",
    "EmptyResponse",
    "StoppedEarly",
    "TransportError",
    "create_chat_backend",
    "ChatSession",
    "Message",
    "SessionBusyError",
    "SessionState",
    "Settings",
    "create_backend",
    "load_settings",
    "ConfigError",
    "GemchatError",
    "MissingCredentialError",
]
