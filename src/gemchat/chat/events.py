"""Notifications a chat session sends to its listeners.

Presentation code subscribes to these instead of polling the session.
"""

from collections.abc import Callable
from dataclasses import dataclass

from .models import Message, SessionState


@dataclass(frozen=True)
class MessageAppended:
    message: Message


@dataclass(frozen=True)
class StateChanged:
    state: SessionState


SessionEvent = MessageAppended | StateChanged

SessionListener = Callable[[SessionEvent], None]
