"""Rich rendering of chat messages for the terminal."""

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.table import Table

from ..chat import Message

HELP_TEXT = """\
[bold]Commands[/bold]
  /image <path-or-url> \\[text]  send an image, optionally with a prompt
  /history                     show the conversation so far
  /last                        print the latest reply as plain text
  /save <file>                 write the transcript as JSON
  /help                        show this help
  /quit                        leave the chat"""


def render_message(console: Console, message: Message) -> None:
    """Print one message the way the chat view shows it."""
    if message.is_user:
        console.print("[bold yellow]You:[/bold yellow] ", end="")
        console.print(message.text, markup=False, highlight=False)
        if message.attachment is not None:
            console.print(f"[dim]  attached {message.attachment.kind.value}: {escape(message.attachment.full)}[/dim]")
        return

    if message.is_error:
        console.print("[bold red]Gemini:[/bold red] ", end="")
        console.print(message.text, style="red", markup=False, highlight=False)
        return

    console.print("[bold green]Gemini:[/bold green]")
    console.print(Markdown(message.text))


def history_table(messages: tuple[Message, ...]) -> Table:
    """Summary table of a conversation."""
    table = Table(title="Conversation", show_lines=False)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Time", style="cyan")
    table.add_column("Author")
    table.add_column("Text")

    for index, message in enumerate(messages, 1):
        text = message.text if len(message.text) <= 80 else message.text[:77] + "..."
        if message.attachment is not None:
            text = f"[image] {text}".rstrip()
        author = message.author.value
        if message.is_error:
            author = f"[red]{author} (error)[/red]"
        table.add_row(str(index), message.timestamp.strftime("%H:%M:%S"), author, escape(text))

    return table
