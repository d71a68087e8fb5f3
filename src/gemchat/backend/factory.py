from typing import Any

from ..errors import MissingCredentialError
from .base import ChatBackend
from .providers import EchoBackend, GeminiBackend


def create_chat_backend(provider: str, **config: Any) -> ChatBackend:
    """Create a chat backend instance.

    This factory function hides the instantiation logic for different backends.

    Args:
        provider: Backend type ('gemini', 'echo')
        **config: Backend-specific configuration
            For Gemini:
                - api_key: str (required)
                - model: str (default: 'gemini-2.5-flash')
                - vision_model: str | None (default: same as model)
                - safety_settings: dict[HarmCategory, BlockThreshold] | None
                - temperature: float | None
                - max_output_tokens: int | None
            For Echo:
                - chunk_size: int (default: 8)
                - delay: float (default: 0.0)

    Returns:
        Initialized backend instance

    Raises:
        ValueError: If provider type is not supported
        MissingCredentialError: If the Gemini API key is missing

    Examples:
        >>> backend = create_chat_backend(
        ...     "gemini",
        ...     api_key="...",
        ...     model="gemini-2.5-flash"
        ... )

        >>> backend = create_chat_backend("echo", chunk_size=4)
    """
    provider_lower = provider.lower()

    if provider_lower in ("gemini", "google"):
        if not config.get("api_key") and config.get("client") is None:
            raise MissingCredentialError("Gemini backend requires 'api_key' in config")
        return GeminiBackend(**config)

    if provider_lower == "echo":
        return EchoBackend(**config)

    raise ValueError(
        f"Unsupported provider: {provider}. "
        f"Supported providers: 'gemini', 'echo'"
    )
