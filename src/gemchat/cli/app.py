"""Main CLI application using Typer."""
import asyncio
import json
import shlex
from pathlib import Path

import typer
from rich.console import Console
from rich.live import Live
from rich.markdown import Markdown
from rich.markup import escape

from .. import __version__
from ..chat import ChatSession, Message
from .providers import get_backend, get_session, get_settings, setup_logging
from .render import HELP_TEXT, history_table, render_message

# Create Typer app
app = typer.Typer(
    name="gemchat",
    help="Terminal chat client for Google's Gemini models",
    no_args_is_help=True,
    add_completion=True,
)

# Console for rich output
console = Console()

EXIT_WORDS = ("exit", "quit", "q", "/quit", "/exit")


async def send_turn(session: ChatSession, text: str, stream: bool) -> Message:
    """Send a text turn and print the reply."""
    if not stream:
        with console.status("[dim]Thinking...[/dim]"):
            reply = await session.send_text(text)
        render_message(console, reply)
        return reply

    received: list[str] = []
    with Live(Markdown(""), console=console, refresh_per_second=12) as live:
        def on_chunk(chunk: str) -> None:
            if not received:
                live.console.print("[bold green]Gemini:[/bold green]")
            received.append(chunk)
            live.update(Markdown("".join(received)))

        reply = await session.send_text_streamed(text, on_chunk)

    if reply.is_error and not received:
        render_message(console, reply)
    elif reply.is_error:
        # Partial text is already on screen, only the failure is left to show
        failure = reply.text[len("".join(received)):].strip()
        console.print(failure, style="red", markup=False, highlight=False)
    return reply


async def send_image_turn(session: ChatSession, source: str, text: str | None) -> Message:
    with console.status("[dim]Looking at the image...[/dim]"):
        reply = await session.send_text_with_image(text, source)
    render_message(console, reply)
    return reply


async def run_command(session: ChatSession, line: str) -> None:
    """Handle a slash command typed in the chat prompt."""
    try:
        parts = shlex.split(line)
    except ValueError as e:
        console.print(f"[red]Could not parse command: {escape(str(e))}[/red]")
        return

    command, args = parts[0].lower(), parts[1:]

    if command == "/help":
        console.print(HELP_TEXT)
    elif command == "/history":
        console.print(history_table(session.messages))
    elif command == "/save":
        if not args:
            console.print("[red]Usage: /save <file>[/red]")
            return
        target = Path(args[0]).expanduser()
        try:
            target.write_text(json.dumps(session.export_transcript(), indent=2, ensure_ascii=False))
        except OSError as e:
            console.print(f"[red]Could not save transcript to {escape(str(target))}: {escape(e.strerror or str(e))}[/red]")
            return
        console.print(f"[green]Saved {len(session.messages)} messages to {escape(str(target))}[/green]")
    elif command == "/last":
        reply = session.last_reply
        if reply is None:
            console.print("[dim]No reply yet[/dim]")
            return
        console.print(reply.text, markup=False, highlight=False)
    elif command == "/image":
        if not args:
            console.print("[red]Usage: /image <path-or-url> \\[text][/red]")
            return
        text = " ".join(args[1:]) or None
        await send_image_turn(session, args[0], text)
    else:
        console.print(f"[red]Unknown command: {escape(command)}[/red] [dim](try /help)[/dim]")


@app.command()
def chat(
    stream: bool = typer.Option(
        True,
        "--stream/--no-stream",
        help="Show replies as they are generated"
    ),
    provider: str | None = typer.Option(
        None,
        "--provider",
        "-p",
        help="Backend to use: gemini or echo (default: $GEMCHAT_PROVIDER or gemini)"
    ),
    model: str | None = typer.Option(
        None,
        "--model",
        "-m",
        help="Model for text turns (default: $GEMINI_MODEL)"
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        dir_okay=False,
        help="Config.plist holding the APIKEY entry"
    ),
):
    """Interactive chat with Gemini."""
    settings = get_settings(console, config_path=config, provider=provider, model=model)
    setup_logging(settings.log_level)

    async def _chat():
        backend = get_backend(settings, console)

        async with backend:
            session = get_session(backend)

            console.print("[bold cyan]gemchat[/bold cyan] [dim](/help for commands, /quit to leave)[/dim]\n")
            for message in session.messages:
                render_message(console, message)

            while True:
                try:
                    user_input = console.input("\n[bold yellow]You:[/bold yellow] ")
                except (KeyboardInterrupt, EOFError):
                    console.print("\n[dim]Goodbye![/dim]")
                    break

                line = user_input.strip()
                if not line:
                    continue

                if line.lower() in EXIT_WORDS:
                    console.print("[dim]Goodbye![/dim]")
                    break

                if line.startswith("/"):
                    await run_command(session, line)
                else:
                    await send_turn(session, line, stream)

    asyncio.run(_chat())


@app.command()
def ask(
    text: str = typer.Argument(
        "",
        help="Prompt to send (may be empty when --image is given)"
    ),
    image: str | None = typer.Option(
        None,
        "--image",
        "-i",
        help="Image file or http(s) URL to send with the prompt"
    ),
    stream: bool = typer.Option(
        False,
        "--stream/--no-stream",
        help="Show the reply as it is generated (text only)"
    ),
    provider: str | None = typer.Option(
        None,
        "--provider",
        "-p",
        help="Backend to use: gemini or echo"
    ),
    model: str | None = typer.Option(
        None,
        "--model",
        "-m",
        help="Model for text turns"
    ),
    config: Path | None = typer.Option(
        None,
        "--config",
        "-c",
        exists=True,
        dir_okay=False,
        help="Config.plist holding the APIKEY entry"
    ),
):
    """Send a single prompt and print the reply."""
    if not text.strip() and image is None:
        console.print("[red]Error: provide a prompt, an --image, or both[/red]")
        raise typer.Exit(code=2)

    settings = get_settings(console, config_path=config, provider=provider, model=model)
    setup_logging(settings.log_level)

    async def _ask() -> Message:
        backend = get_backend(settings, console)
        async with backend:
            session = get_session(backend, greeting=False)
            if image is not None:
                return await send_image_turn(session, image, text or None)
            return await send_turn(session, text, stream)

    reply = asyncio.run(_ask())
    if reply.is_error:
        raise typer.Exit(code=1)


@app.command()
def version():
    """Show the installed gemchat version."""
    console.print(f"gemchat {__version__}")


def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
