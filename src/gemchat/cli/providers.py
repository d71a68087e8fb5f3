"""Session and logging setup for the CLI.

Centralizes creation of settings, backend and session instances.
Hides configuration details from command implementations.
"""

import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from ..backend import ChatBackend
from ..chat import ChatSession
from ..config import Settings, create_backend, load_settings
from ..errors import ConfigError

# Default console for output
_console = Console()


def setup_logging(level: str, console: Console | None = None) -> None:
    """Route gemchat's log records to a Rich handler on stderr."""
    handler = RichHandler(
        console=console or Console(stderr=True),
        show_path=False,
        rich_tracebacks=True,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))

    logger = logging.getLogger("gemchat")
    logger.handlers.clear()
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False


def get_settings(
    console: Console | None = None,
    config_path: Path | None = None,
    provider: str | None = None,
    model: str | None = None,
) -> Settings:
    """Load settings, exiting with a readable message when they are invalid.

    Raises:
        SystemExit: If the configuration cannot be loaded
    """
    con = console or _console
    try:
        return load_settings(plist_path=config_path, provider=provider, model=model)
    except ConfigError as e:
        con.print(f"[red]Error: {escape(e.description)}[/red]")
        raise typer.Exit(code=1)


def get_backend(settings: Settings, console: Console | None = None) -> ChatBackend:
    """Create the configured backend.

    Raises:
        SystemExit: If the backend cannot be built (missing key, unknown provider)
    """
    con = console or _console
    try:
        return create_backend(settings)
    except ConfigError as e:
        con.print(f"[red]Error: {escape(e.description)}[/red]")
        raise typer.Exit(code=1)
    except ValueError as e:
        con.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(code=1)


def get_session(backend: ChatBackend, greeting: bool = True) -> ChatSession:
    """Open a chat session, seeded with the greeting unless disabled."""
    if greeting:
        return ChatSession(backend)
    return ChatSession(backend, greeting=None)
