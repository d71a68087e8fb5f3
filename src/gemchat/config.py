"""Runtime settings.

Hides where the API key and model settings come from. Sources, lowest
precedence first:
    1. a property-list file holding ``APIKEY`` (``Config.plist``)
    2. a ``.env`` file, loaded into the environment with python-dotenv
    3. the process environment

Environment variables:
    GEMINI_API_KEY: Gemini API key (fallback: GOOGLE_API_KEY)
    GEMINI_MODEL: Text model (default: gemini-2.5-flash)
    GEMINI_VISION_MODEL: Model for image turns (default: GEMINI_MODEL)
    GEMINI_TEMPERATURE: Sampling temperature (default: model default)
    GEMINI_MAX_OUTPUT_TOKENS: Reply length limit (default: model default)
    GEMCHAT_PROVIDER: Backend type, 'gemini' or 'echo' (default: gemini)
    GEMCHAT_CONFIG_PLIST: Path of a Config.plist holding APIKEY
    GEMCHAT_LOG_LEVEL: debug, info, warning or error (default: warning)
"""

import os
import plistlib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .backend import ChatBackend, create_chat_backend
from .errors import ConfigError, MissingCredentialError

PLIST_KEY = "APIKEY"

LOG_LEVELS = ("debug", "info", "warning", "error")


class Settings(BaseModel):
    """Resolved configuration for building a backend."""

    provider: str = Field(default="gemini", description="Backend type")
    api_key: str | None = Field(default=None, repr=False, description="Gemini API key")
    model: str = Field(default="gemini-2.5-flash", description="Model for text turns")
    vision_model: str | None = Field(default=None, description="Model for image turns")
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_output_tokens: int | None = Field(default=None, ge=1)
    log_level: str = Field(default="warning")

    @field_validator("provider", "log_level")
    @classmethod
    def _lower(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        if value not in LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(LOG_LEVELS)}")
        return value

    def require_api_key(self) -> str:
        """Return the API key.

        Raises:
            MissingCredentialError: If no key was configured
        """
        if not self.api_key:
            raise MissingCredentialError(
                "No Gemini API key found. Set GEMINI_API_KEY or provide a "
                f"Config.plist with an {PLIST_KEY} entry."
            )
        return self.api_key

    def backend_config(self) -> dict[str, Any]:
        """Keyword arguments for ``create_chat_backend``."""
        if self.provider == "echo":
            return {}
        return {
            "api_key": self.require_api_key(),
            "model": self.model,
            "vision_model": self.vision_model,
            "temperature": self.temperature,
            "max_output_tokens": self.max_output_tokens,
        }


def read_plist_api_key(path: str | Path) -> str | None:
    """Read the API key from a property-list file.

    Raises:
        ConfigError: If the file exists but cannot be parsed
    """
    plist_path = Path(path).expanduser()
    try:
        with plist_path.open("rb") as fh:
            data = plistlib.load(fh)
    except FileNotFoundError as e:
        raise ConfigError(f"Config file not found: {plist_path}") from e
    except (plistlib.InvalidFileException, ValueError) as e:
        raise ConfigError(f"Could not parse {plist_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{plist_path} does not contain a dictionary")
    key = data.get(PLIST_KEY)
    return key if isinstance(key, str) and key else None


def _blank_to_none(value: str | None) -> str | None:
    if value is None or not value.strip():
        return None
    return value.strip()


def load_settings(
    plist_path: str | Path | None = None,
    env_file: str | Path | None = None,
    environ: Mapping[str, str] | None = None,
    **overrides: Any,
) -> Settings:
    """Resolve settings from a plist file, .env and the environment.

    Args:
        plist_path: Config.plist to read APIKEY from (default: $GEMCHAT_CONFIG_PLIST)
        env_file: .env file to load (default: search from the working directory)
        environ: Mapping used instead of os.environ (the .env file is then ignored)
        **overrides: Explicit values that win over every other source

    Returns:
        Validated Settings. The API key may still be missing; call
        ``require_api_key`` (or ``create_backend``) to enforce it.

    Raises:
        ConfigError: If a value is invalid or the plist cannot be read
    """
    if environ is None:
        load_dotenv(env_file)
        environ = os.environ

    plist_path = plist_path or _blank_to_none(environ.get("GEMCHAT_CONFIG_PLIST"))
    plist_key = read_plist_api_key(plist_path) if plist_path else None

    values: dict[str, Any] = {
        "provider": environ.get("GEMCHAT_PROVIDER"),
        "api_key": (
            _blank_to_none(environ.get("GEMINI_API_KEY"))
            or _blank_to_none(environ.get("GOOGLE_API_KEY"))
            or plist_key
        ),
        "model": _blank_to_none(environ.get("GEMINI_MODEL")),
        "vision_model": _blank_to_none(environ.get("GEMINI_VISION_MODEL")),
        "temperature": _blank_to_none(environ.get("GEMINI_TEMPERATURE")),
        "max_output_tokens": _blank_to_none(environ.get("GEMINI_MAX_OUTPUT_TOKENS")),
        "log_level": _blank_to_none(environ.get("GEMCHAT_LOG_LEVEL")),
    }
    values.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return Settings(**{key: value for key, value in values.items() if value is not None})
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def create_backend(settings: Settings) -> ChatBackend:
    """Build the backend described by ``settings``.

    Raises:
        MissingCredentialError: If the Gemini backend has no API key
        ValueError: If the provider is unknown
    """
    return create_chat_backend(settings.provider, **settings.backend_config())
