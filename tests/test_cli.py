"""Tests for the terminal chat's slash commands and entry point."""

from __future__ import annotations

import asyncio

from click.testing import CliRunner

from openai_api.cli import _chat_loop, handle_command, main
from openai_api.types import MessageRole
from tests.conftest import chunk


class _ScriptedSession:
    """Stands in for a PromptSession; answers prompts from a list, then EOF."""

    def __init__(self, *inputs: str) -> None:
        self._inputs = list(inputs)
        self.prompts = 0

    async def prompt_async(self, message):
        self.prompts += 1
        # Yield to the loop like a real prompt does
        await asyncio.sleep(0)
        if not self._inputs:
            raise EOFError
        return self._inputs.pop(0)


class TestHandleCommand:
    async def test_quit(self, api):
        conv = api.chat.create_conversation()
        assert handle_command("/quit", conv, None) == "quit"
        assert handle_command("/exit", conv, None) == "quit"

    async def test_reset_keeps_system_prompt(self, api):
        conv = api.chat.create_conversation()
        conv.append_system_message("be nice")
        conv.append_user_input("hi")
        conv.append_example_chatbot_output("hello")

        assert handle_command("/reset", conv, "be nice") is True

        assert len(conv.messages) == 1
        assert conv.messages[0].role is MessageRole.SYSTEM
        assert conv.messages[0].content == "be nice"

    async def test_reset_without_system(self, api):
        conv = api.chat.create_conversation()
        conv.append_user_input("hi")
        handle_command("/reset", conv, None)
        assert conv.messages == []

    async def test_history_and_help(self, api):
        conv = api.chat.create_conversation()
        conv.append_user_input("hi")
        assert handle_command("/history", conv, None) is True
        assert handle_command("/help", conv, None) is True

    async def test_unknown(self, api):
        conv = api.chat.create_conversation()
        assert handle_command("/bogus", conv, None) is False


def test_main_help():
    result = CliRunner().invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "--model" in result.output
    assert "--system" in result.output


class TestChatLoop:
    async def test_turn_streams_into_history(self, api, server):
        server.add_stream(chunk(role="assistant"), chunk(content="4"))
        session = _ScriptedSession("2+2?", "/quit", "never read")

        conv = await _chat_loop(api, None, "You are a calculator.", session)

        assert session.prompts == 2
        assert [(m.role, m.content) for m in conv.messages] == [
            (MessageRole.SYSTEM, "You are a calculator."),
            (MessageRole.USER, "2+2?"),
            (MessageRole.ASSISTANT, "4"),
        ]

    async def test_failed_turn_drops_user_input(self, api, server):
        server.add_json({"error": "bad key"}, status=401)
        session = _ScriptedSession("", "hello")

        conv = await _chat_loop(api, None, None, session)

        assert conv.messages == []
        assert session.prompts == 3
