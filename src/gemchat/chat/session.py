"""Chat session: ordered history plus a live backend conversation.

Every turn produces an assistant message, including failed ones. Backend
failures become error messages in the history instead of exceptions.

A session handles one turn at a time. Starting a turn while another is in
flight raises ``SessionBusyError``; nothing is queued. Cancelling the task
that runs a turn returns the session to idle.
"""

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from pathlib import Path

from ..backend import (
    BackendError,
    ChatBackend,
    EmptyResponse,
    ImagePayload,
    TextContent,
    TurnContent,
    build_turn_content,
)
from ..errors import GemchatError
from ..images import ImageLoadError, load_image, thumbnail_uri
from .events import MessageAppended, SessionEvent, SessionListener, StateChanged
from .models import DEFAULT_GREETING, Attachment, Author, Message, SessionState

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], Awaitable[None] | None]
ImageSource = ImagePayload | bytes | str | Path


class SessionBusyError(GemchatError):
    """A turn was started while another one is still awaiting its reply."""

    def __init__(self) -> None:
        super().__init__("A reply is already being generated for this session")


def _reference_for(image: ImageSource) -> str:
    if isinstance(image, ImagePayload):
        return image.source or "memory:"
    if isinstance(image, (bytes, bytearray)):
        return "memory:"
    return str(image)


class ChatSession:
    """Conversation with a generative-text backend.

    Args:
        backend: Backend used to open the conversation
        greeting: Assistant message seeded at the start (None to skip)
        listener: Optional callback receiving SessionEvent notifications
    """

    def __init__(
        self,
        backend: ChatBackend,
        greeting: str | None = DEFAULT_GREETING,
        listener: SessionListener | None = None,
    ):
        self._backend = backend
        self._conversation = backend.start_conversation()
        self._messages: list[Message] = []
        self._state = SessionState.IDLE
        self._listeners: list[SessionListener] = []

        if listener is not None:
            self.add_listener(listener)
        if greeting:
            self._append(Message(author=Author.ASSISTANT, text=greeting))

    @property
    def backend(self) -> ChatBackend:
        return self._backend

    @property
    def messages(self) -> tuple[Message, ...]:
        """Snapshot of the history in display order."""
        return tuple(self._messages)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_busy(self) -> bool:
        return self._state is SessionState.AWAITING

    @property
    def last_reply(self) -> Message | None:
        """Most recent assistant message, or None if there is none."""
        for message in reversed(self._messages):
            if message.author is Author.ASSISTANT:
                return message
        return None

    def add_listener(self, listener: SessionListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SessionListener) -> None:
        self._listeners.remove(listener)

    def export_transcript(self) -> list[dict]:
        """History as plain dicts, oldest first."""
        return [message.to_transcript_dict() for message in self._messages]

    def _emit(self, event: SessionEvent) -> None:
        for listener in list(self._listeners):
            listener(event)

    def _append(self, message: Message) -> Message:
        self._messages.append(message)
        self._emit(MessageAppended(message))
        return message

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        self._state = state
        self._emit(StateChanged(state))

    @contextmanager
    def _turn(self) -> Iterator[None]:
        if self.is_busy:
            raise SessionBusyError()
        try:
            # A listener failing on this notification must still reach idle
            self._set_state(SessionState.AWAITING)
            yield
        finally:
            self._set_state(SessionState.IDLE)

    def _append_failure(self, error: GemchatError, partial_text: str = "") -> Message:
        logger.warning("Turn failed (%s): %s", type(error).__name__, error.description)
        text = f"{partial_text}\n\n{error.description}" if partial_text else error.description
        return self._append(Message(author=Author.ASSISTANT, text=text, is_error=True))

    async def _reply(self, content: TurnContent) -> Message:
        try:
            reply = await self._conversation.send(content)
        except BackendError as e:
            return self._append_failure(e)
        logger.debug("Reply from %s (%d chars)", reply.model, len(reply.text))
        return self._append(Message(author=Author.ASSISTANT, text=reply.text))

    async def send_text(self, text: str) -> Message:
        """Send a text turn and return the assistant's reply message.

        Blank input is not checked here; callers filter it out first.

        Raises:
            SessionBusyError: If another turn is still awaiting its reply
        """
        with self._turn():
            self._append(Message(author=Author.USER, text=text))
            logger.debug("Sending text turn (%d chars)", len(text))
            return await self._reply(TextContent(text=text))

    async def send_text_with_image(
        self,
        text: str | None,
        image: ImageSource | None,
    ) -> Message:
        """Send a turn made of text, an image, or both.

        Args:
            text: Prompt text, may be None or empty when an image is given
            image: Payload, raw bytes, file path, or http(s) URL

        Returns:
            The assistant's reply message

        Raises:
            ValueError: If both text and image are absent (nothing is sent)
            SessionBusyError: If another turn is still awaiting its reply
        """
        has_text = bool(text and text.strip())
        if image is None and not has_text:
            raise ValueError("A turn needs text, an image, or both")

        with self._turn():
            payload: ImagePayload | None = None
            thumbnail: str | None = None
            load_error: ImageLoadError | None = None
            if image is not None:
                try:
                    payload = await load_image(image)
                    thumbnail = thumbnail_uri(payload)
                except ImageLoadError as e:
                    load_error = e

            attachment = None
            if image is not None:
                reference = _reference_for(image)
                attachment = Attachment(
                    thumbnail=thumbnail or reference,
                    full=reference,
                    mime_type=payload.mime_type if payload else None,
                )
            self._append(Message(author=Author.USER, text=text or "", attachment=attachment))

            if load_error is not None:
                return self._append_failure(load_error)

            logger.debug("Sending turn with image=%s text=%s", payload is not None, has_text)
            return await self._reply(build_turn_content(text, payload))

    async def send_text_streamed(self, text: str, on_chunk: ChunkCallback) -> Message:
        """Send a text turn and deliver the reply fragment by fragment.

        Each non-empty fragment is passed to ``on_chunk`` in arrival order.
        The final message text is the exact concatenation of the delivered
        fragments, without trimming. If the stream fails part way, the
        message keeps the partial text followed by the failure description.

        Args:
            text: Prompt text
            on_chunk: Called (or awaited, if it returns an awaitable) per fragment

        Raises:
            SessionBusyError: If another turn is still awaiting its reply
        """
        with self._turn():
            self._append(Message(author=Author.USER, text=text))
            logger.debug("Streaming text turn (%d chars)", len(text))

            received: list[str] = []
            try:
                stream = await self._conversation.send_stream(TextContent(text=text))
                async for chunk in stream:
                    if not chunk:
                        continue
                    received.append(chunk)
                    result = on_chunk(chunk)
                    if inspect.isawaitable(result):
                        await result
            except BackendError as e:
                return self._append_failure(e, partial_text="".join(received))

            if not received:
                return self._append_failure(EmptyResponse())
            return self._append(Message(author=Author.ASSISTANT, text="".join(received)))
