"""Root of the gemchat exception hierarchy."""


class GemchatError(Exception):
    """Base class for every error raised by gemchat."""

    @property
    def description(self) -> str:
        """Human-readable text suitable for showing in a conversation."""
        return str(self) or self.__class__.__name__


class ConfigError(GemchatError):
    """Settings are missing or invalid."""


class MissingCredentialError(ConfigError):
    """No API key is available to construct a backend connection."""
