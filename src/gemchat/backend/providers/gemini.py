"""Google Gemini backend implementation.

Uses the official Google GenAI SDK for async chat turns.
Reference: https://github.com/googleapis/python-genai

Text turns continue an SDK chat, so the conversation context lives with the
chat handle. Image turns are one-shot requests to the vision model.

Note: Gemini can return empty responses due to safety filtering or service issues.
Non-streamed turns are retried a few times before giving up.

The SDK sends requests through httpx or, when installed, aiohttp, so its
network failures have no common base class. Any exception raised while
talking to the SDK is reported as TransportError.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from typing import Any

from google import genai
from google.genai import types

from ...errors import MissingCredentialError
from ..base import ChatBackend, Conversation
from ..errors import BackendError, ContentBlocked, EmptyResponse, StoppedEarly, TransportError
from ..models import (
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
    mode_for,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"

# Finish reasons that mean the model ended its answer on its own
_NORMAL_FINISH = {None, "STOP", "FINISH_REASON_UNSPECIFIED"}

_FINISH_REASON_TEXT = {
    "FINISH_REASON_UNSPECIFIED": "unspecified",
    "STOP": "stop",
    "MAX_TOKENS": "max tokens",
    "SAFETY": "safety",
    "RECITATION": "recitation",
    "LANGUAGE": "unsupported language",
    "BLOCKLIST": "blocklist",
    "PROHIBITED_CONTENT": "prohibited content",
    "SPII": "sensitive personal information",
    "MALFORMED_FUNCTION_CALL": "malformed function call",
    "OTHER": "other",
}


def _enum_value(value: Any) -> str | None:
    if value is None:
        return None
    return getattr(value, "value", None) or str(value)


def describe_finish_reason(reason: str | None) -> str:
    """Human-readable form of a Gemini finish reason."""
    if reason is None:
        return "unknown"
    return _FINISH_REASON_TEXT.get(reason, reason.lower().replace("_", " "))


def _image_part(image: ImagePayload) -> types.Part:
    return types.Part.from_bytes(data=image.data, mime_type=image.mime_type)


def to_parts(content: TurnContent) -> list[types.Part]:
    """Convert a turn into Gemini parts (image first, then text)."""
    if isinstance(content, TextContent):
        return [types.Part(text=content.text)]
    if isinstance(content, ImageContent):
        return [_image_part(content.image)]
    if isinstance(content, ImageTextContent):
        return [_image_part(content.image), types.Part(text=content.text)]
    raise TypeError(f"Unsupported turn content: {type(content).__name__}")


def extract_text(response: types.GenerateContentResponse) -> str:
    """Extract text content from a Gemini response, handling empty responses.

    Args:
        response: Gemini GenerateContentResponse (or one streamed chunk)

    Returns:
        Text content or empty string
    """
    # Check if response has valid candidates with content
    if response.candidates and len(response.candidates) > 0:
        candidate = response.candidates[0]
        if candidate.content and candidate.content.parts:
            # Join all text parts, skipping thoughts
            texts = [
                part.text for part in candidate.content.parts
                if getattr(part, "text", None) and not getattr(part, "thought", False)
            ]
            if texts:
                return "".join(texts)
    return ""


def extract_finish_reason(response: types.GenerateContentResponse) -> str | None:
    if response.candidates:
        return _enum_value(response.candidates[0].finish_reason)
    return None


def extract_usage(response: types.GenerateContentResponse) -> dict[str, int] | None:
    if not response.usage_metadata:
        return None
    return {
        "prompt_tokens": response.usage_metadata.prompt_token_count or 0,
        "completion_tokens": response.usage_metadata.candidates_token_count or 0,
        "total_tokens": response.usage_metadata.total_token_count or 0,
    }


def check_prompt_feedback(response: types.GenerateContentResponse) -> None:
    """Raise ContentBlocked if the backend refused the prompt.

    Raises:
        ContentBlocked: If the prompt feedback carries a block reason
    """
    feedback = response.prompt_feedback
    if feedback is None or not feedback.block_reason:
        return
    reason = getattr(feedback, "block_reason_message", None) or _enum_value(feedback.block_reason)
    raise ContentBlocked(reason.lower().replace("_", " ") if reason.isupper() else reason)


class GeminiConversation(Conversation):
    """One Gemini chat plus access to the vision model for image turns."""

    def __init__(self, backend: "GeminiBackend"):
        self._backend = backend
        self._chat = backend.client.aio.chats.create(
            model=backend.model,
            config=backend.generation_config,
        )
        self._current_stream_response: StreamingResponse | None = None

    async def _request(self, content: TurnContent) -> types.GenerateContentResponse:
        parts = to_parts(content)
        try:
            if mode_for(content) is BackendMode.TEXT:
                return await self._chat.send_message(parts)
            return await self._backend.client.aio.models.generate_content(
                model=self._backend.vision_model,
                contents=parts,
                config=self._backend.generation_config,
            )
        except Exception as e:
            raise TransportError(e) from e

    async def _request_stream(self, content: TurnContent) -> AsyncIterator[types.GenerateContentResponse]:
        parts = to_parts(content)
        try:
            if mode_for(content) is BackendMode.TEXT:
                return await self._chat.send_message_stream(parts)
            return await self._backend.client.aio.models.generate_content_stream(
                model=self._backend.vision_model,
                contents=parts,
                config=self._backend.generation_config,
            )
        except Exception as e:
            raise TransportError(e) from e

    def _model_for(self, content: TurnContent) -> str:
        if mode_for(content) is BackendMode.TEXT:
            return self._backend.model
        return self._backend.vision_model

    async def send(self, content: TurnContent) -> BackendReply:
        """Send one turn, retrying empty replies (known Gemini issue)."""
        max_retries = self._backend.max_retries

        for attempt in range(max_retries):
            response = await self._request(content)
            check_prompt_feedback(response)

            text = extract_text(response)
            reason = extract_finish_reason(response)
            if reason not in _NORMAL_FINISH:
                raise StoppedEarly(describe_finish_reason(reason), partial_text=text)

            if text:
                return BackendReply(
                    text=text,
                    model=self._model_for(content),
                    usage=extract_usage(response),
                    finish_reason=reason,
                )

            # Empty response - wait briefly before retry
            if attempt < max_retries - 1:
                logger.info("Empty reply from Gemini, retrying (%d/%d)", attempt + 1, max_retries - 1)
                await asyncio.sleep(self._backend.retry_delay * (attempt + 1))

        raise EmptyResponse()

    async def send_stream(self, content: TurnContent) -> StreamingResponse:
        response = StreamingResponse(self._stream_generator(content))
        self._current_stream_response = response
        return response

    async def _stream_generator(self, content: TurnContent) -> AsyncIterator[str]:
        """Internal generator that yields text and captures usage from chunks."""
        stream = await self._request_stream(content)
        stream_response = self._current_stream_response
        usage = None
        reason = None
        received: list[str] = []

        try:
            async for chunk in stream:
                check_prompt_feedback(chunk)

                # usage_metadata and finish_reason arrive with the final chunk
                usage = extract_usage(chunk) or usage
                reason = extract_finish_reason(chunk) or reason

                text = extract_text(chunk)
                if text:
                    received.append(text)
                    yield text
        except BackendError:
            raise
        except Exception as e:
            raise TransportError(e) from e

        if reason not in _NORMAL_FINISH:
            raise StoppedEarly(describe_finish_reason(reason), partial_text="".join(received))
        if not received:
            raise EmptyResponse()

        if stream_response is not None:
            if usage:
                stream_response.set_usage(usage)
            stream_response.set_finish_reason(reason)


class GeminiBackend(ChatBackend):
    """Google Gemini backend implementation.

    Hidden design decisions:
    - Google GenAI client initialization
    - Turn content to Part conversion
    - Safety settings and generation config
    - Retry logic for empty responses (known Gemini issue)
    - Mapping SDK failures onto the backend error taxonomy
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        vision_model: str | None = None,
        safety_settings: dict[HarmCategory, BlockThreshold] | None = None,
        temperature: float | None = None,
        max_output_tokens: int | None = None,
        max_retries: int = 3,
        retry_delay: float = 0.5,
        client: genai.Client | None = None,
        **client_kwargs: Any
    ):
        """Initialize Gemini backend.

        Args:
            api_key: Google AI API key (required unless ``client`` is given)
            model: Model for text turns (gemini-2.5-flash, gemini-2.5-pro, ...)
            vision_model: Model for image turns (defaults to ``model``)
            safety_settings: Harm category to threshold mapping
            temperature: Sampling temperature (None keeps the model default)
            max_output_tokens: Reply length limit (None keeps the model default)
            max_retries: Max attempts for empty replies (default 3)
            retry_delay: Base delay in seconds between retries
            client: Pre-built GenAI client, mainly for tests
            **client_kwargs: Additional kwargs for Client

        Raises:
            MissingCredentialError: If neither api_key nor client is provided
        """
        if client is None and not api_key:
            raise MissingCredentialError("Gemini backend requires an API key")

        self._model = model
        self._vision_model = vision_model or model
        self._max_retries = max(1, max_retries)
        self._retry_delay = retry_delay
        self._owns_client = client is None
        self._client = client or genai.Client(api_key=api_key, **client_kwargs)

        settings = DEFAULT_SAFETY_SETTINGS if safety_settings is None else safety_settings
        self._config = types.GenerateContentConfig(
            temperature=temperature,
            max_output_tokens=max_output_tokens,
            safety_settings=[
                types.SafetySetting(
                    category=HarmCategory(category).value,
                    threshold=BlockThreshold(threshold).value,
                )
                for category, threshold in settings.items()
            ],
        )

    @property
    def name(self) -> str:
        return "gemini"

    @property
    def model(self) -> str:
        """Get the text model name."""
        return self._model

    @property
    def vision_model(self) -> str:
        """Get the model used for image turns."""
        return self._vision_model

    @property
    def client(self) -> genai.Client:
        return self._client

    @property
    def generation_config(self) -> types.GenerateContentConfig:
        return self._config

    @property
    def max_retries(self) -> int:
        return self._max_retries

    @property
    def retry_delay(self) -> float:
        return self._retry_delay

    def start_conversation(self) -> GeminiConversation:
        return GeminiConversation(self)

    async def close(self) -> None:
        """Close the async GenAI client.

        A client passed in by the caller is left open; its owner closes it.
        """
        if self._owns_client:
            await self._client.aio.aclose()
