"""Chat session module for gemchat.

Holds the conversation history and mediates between user turns and a backend.
"""

from .events import MessageAppended, SessionEvent, SessionListener, StateChanged
from .models import DEFAULT_GREETING, Attachment, Author, MediaKind, Message, SessionState
from .session import ChatSession, SessionBusyError

__all__ = [
    "ChatSession",
    "SessionBusyError",
    "MessageAppended",
    "SessionEvent",
    "SessionListener",
    "StateChanged",
    "DEFAULT_GREETING",
    "Attachment",
    "Author",
    "MediaKind",
    "Message",
    "SessionState",
]
