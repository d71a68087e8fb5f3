"""Failures reported by a generative-text backend.

Every provider translates its SDK-specific failures into one of these,
so the chat session only ever deals with a single taxonomy.
"""

from ..errors import GemchatError


class BackendError(GemchatError):
    """A turn could not produce a usable reply."""


class ContentBlocked(BackendError):
    """The prompt or the response was filtered by the backend's policy."""

    def __init__(self, reason: str = ""):
        self.reason = reason
        super().__init__(f"Prompt blocked for: {reason}" if reason else "Prompt blocked")


class EmptyResponse(BackendError):
    """The backend answered without any text."""

    def __init__(self) -> None:
        super().__init__("AI has nothing to say")


class StoppedEarly(BackendError):
    """The response was cut short (length limit, safety filter, ...)."""

    def __init__(self, reason: str, partial_text: str = ""):
        self.reason = reason
        self.partial_text = partial_text
        super().__init__(f"Response stopped early due to {reason}")


class TransportError(BackendError):
    """Network, authentication or API failure talking to the backend."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(str(cause) or cause.__class__.__name__)
