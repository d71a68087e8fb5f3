"""Tests for the command line interface."""
import importlib
import json
from io import StringIO

import pytest
from rich.console import Console
from typer.testing import CliRunner

from gemchat import __version__
from gemchat.backend import TransportError
from gemchat.chat import ChatSession
from gemchat.cli import app

# The package re-exports the Typer object under the module's own name
app_module = importlib.import_module("gemchat.cli.app")

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated(clean_env, tmp_path):
    """Run every CLI test in an empty directory without gemchat variables."""
    clean_env.chdir(tmp_path)
    return tmp_path


class TestVersion:

    def test_prints_version(self):
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestAsk:

    def test_echo_reply(self):
        result = runner.invoke(app, ["ask", "hello there", "--provider", "echo"])

        assert result.exit_code == 0, result.output
        assert "hello there" in result.output

    def test_streamed_reply(self):
        result = runner.invoke(app, ["ask", "streamed words", "--provider", "echo", "--stream"])

        assert result.exit_code == 0, result.output
        assert "streamed words" in result.output

    def test_image_only(self, isolated, png_bytes):
        image = isolated / "picture.png"
        image.write_bytes(png_bytes)

        result = runner.invoke(app, ["ask", "--image", str(image), "--provider", "echo"])

        assert result.exit_code == 0, result.output
        assert "image/png" in result.output

    def test_unreadable_image_fails(self, isolated):
        result = runner.invoke(app, ["ask", "look", "--image", str(isolated / "nope.png"), "--provider", "echo"])

        assert result.exit_code == 1
        assert "Could not read image" in result.output

    def test_nothing_to_send(self):
        result = runner.invoke(app, ["ask", "  ", "--provider", "echo"])

        assert result.exit_code == 2
        assert "provide a prompt" in result.output

    def test_missing_api_key(self):
        result = runner.invoke(app, ["ask", "hello"])

        assert result.exit_code == 1
        assert "No Gemini API key" in result.output

    def test_invalid_configuration(self, clean_env):
        clean_env.setenv("GEMINI_TEMPERATURE", "scorching")

        result = runner.invoke(app, ["ask", "hello", "--provider", "echo"])

        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


class TestChat:

    def test_conversation_and_quit(self):
        result = runner.invoke(app, ["chat", "--provider", "echo"], input="hi\n\n/quit\n")

        assert result.exit_code == 0, result.output
        assert "Hey there I am Google's LLM!" in result.output
        assert "hi" in result.output
        assert "Goodbye!" in result.output

    def test_non_streaming(self):
        result = runner.invoke(app, ["chat", "--provider", "echo", "--no-stream"], input="plain reply\nq\n")

        assert result.exit_code == 0, result.output
        assert "plain reply" in result.output

    def test_save_transcript(self, isolated):
        result = runner.invoke(
            app,
            ["chat", "--provider", "echo"],
            input="first\n/save transcript.json\n/quit\n",
        )

        assert result.exit_code == 0, result.output
        transcript = json.loads((isolated / "transcript.json").read_text())
        assert [entry["author"] for entry in transcript] == ["assistant", "user", "assistant"]
        assert transcript[1]["text"] == "first"
        assert transcript[2]["text"] == "first"

    def test_image_command(self, isolated, png_bytes):
        (isolated / "cat.png").write_bytes(png_bytes)

        result = runner.invoke(
            app,
            ["chat", "--provider", "echo"],
            input="/image cat.png what is it\n/quit\n",
        )

        assert result.exit_code == 0, result.output
        assert "image/png" in result.output
        assert "what is it" in result.output

    def test_history_and_help(self):
        result = runner.invoke(app, ["chat", "--provider", "echo"], input="/history\n/help\n/quit\n")

        assert result.exit_code == 0, result.output
        assert "Conversation" in result.output
        assert "/image" in result.output

    def test_unknown_command(self):
        result = runner.invoke(app, ["chat", "--provider", "echo"], input="/dance\n/quit\n")

        assert result.exit_code == 0, result.output
        assert "Unknown command" in result.output

    def test_end_of_input_exits(self):
        result = runner.invoke(app, ["chat", "--provider", "echo"], input="")

        assert result.exit_code == 0, result.output
        assert "Goodbye!" in result.output

    def test_failed_save_keeps_the_conversation(self, isolated):
        missing = isolated / "no_such_dir" / "x.json"
        result = runner.invoke(
            app,
            ["chat", "--provider", "echo", "--no-stream"],
            input=f"hello\n/save {missing}\nstill here?\n/quit\n",
        )

        assert result.exit_code == 0, result.output
        assert "Could not save transcript" in result.output
        assert "still here?" in result.output
        assert "Goodbye!" in result.output

    def test_last_prints_latest_reply(self):
        result = runner.invoke(
            app,
            ["chat", "--provider", "echo", "--no-stream"],
            input="**bold words**\n/last\n/quit\n",
        )

        assert result.exit_code == 0, result.output
        # Raw text, not rendered Markdown
        assert "**bold words**" in result.output


class TestStreamedTurn:
    """Header styling of streamed replies."""

    @pytest.fixture
    def output(self, monkeypatch):
        buffer = StringIO()
        console = Console(file=buffer, force_terminal=True, color_system="standard", width=80)
        monkeypatch.setattr(app_module, "console", console)
        return buffer

    @pytest.mark.asyncio
    async def test_failure_without_text_uses_error_header(self, output, scripted_backend):
        session = ChatSession(scripted_backend([TransportError(ConnectionError("offline"))]), greeting=None)

        reply = await app_module.send_turn(session, "hello", stream=True)

        text = output.getvalue()
        assert reply.is_error
        assert "offline" in text
        assert "\x1b[1;31mGemini:" in text
        assert "\x1b[1;32mGemini:" not in text

    @pytest.mark.asyncio
    async def test_success_uses_reply_header(self, output, scripted_backend):
        session = ChatSession(scripted_backend(["Hel", "lo!"]), greeting=None)

        reply = await app_module.send_turn(session, "hello", stream=True)

        assert reply.text == "Hello!"
        assert "\x1b[1;32mGemini:" in output.getvalue()
