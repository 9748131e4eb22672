"""Interactive terminal chat with streaming replies."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click
from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import HTML
from prompt_toolkit.history import FileHistory
from rich.console import Console
from rich.table import Table

from openai_api.api import OpenAIAPI
from openai_api.config import load_config
from openai_api.conversation import Conversation
from openai_api.errors import OpenAIError

console = Console()

HISTORY_PATH = Path.home() / ".config" / "openai-api" / "history"
_PROMPT = HTML("<ansigreen><b>you&gt;</b></ansigreen> ")


def _make_session(history_path: Path = HISTORY_PATH) -> PromptSession:
    history_path.parent.mkdir(parents=True, exist_ok=True)
    return PromptSession(history=FileHistory(str(history_path)))


def _print_history(conversation: Conversation) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", style="dim", width=3)
    table.add_column("Role")
    table.add_column("Content")
    for i, msg in enumerate(conversation.messages, 1):
        table.add_row(str(i), msg.role.value, (msg.content or "")[:120])
    console.print(table)


def handle_command(cmd: str, conversation: Conversation, system: str | None) -> bool | str:
    """Handle a slash command.  Returns ``"quit"`` to exit, True if handled."""
    if cmd in ("/quit", "/exit"):
        return "quit"
    if cmd == "/reset":
        for msg in conversation.messages:
            conversation.remove_message(msg)
        if system:
            conversation.append_system_message(system)
        console.print("[dim]Conversation cleared.[/dim]")
        return True
    if cmd == "/history":
        _print_history(conversation)
        return True
    if cmd == "/help":
        console.print("""
[bold]Commands:[/bold]
  /history  - Show the conversation so far
  /reset    - Clear the conversation
  /quit     - Exit
        """)
        return True
    return False


async def _chat_loop(
    api: OpenAIAPI,
    model: str | None,
    system: str | None,
    session: PromptSession,
) -> Conversation:
    conversation = api.chat.create_conversation(model=model)
    if system:
        conversation.append_system_message(system)
    console.print(f"[dim]Model: {conversation.model}. Type /help for commands.[/dim]\n")

    while True:
        try:
            text = (await session.prompt_async(_PROMPT)).strip()
        except (EOFError, KeyboardInterrupt):
            console.print()
            return conversation
        if not text:
            continue
        if text.startswith("/"):
            handled = handle_command(text, conversation, system)
            if handled == "quit":
                return conversation
            if not handled:
                console.print(f"[red]Unknown command: {text}[/red]")
            continue

        conversation.append_user_input(text)
        console.print("[bold cyan]assistant>[/bold cyan] ", end="")
        try:
            await conversation.stream_response(
                lambda token: console.print(token, end="", markup=False, highlight=False),
            )
        except OpenAIError as e:
            # Drop the unanswered input so the next turn starts clean
            conversation.remove_message(conversation.messages[-1])
            console.print(f"\n[red]{e}[/red]")
            continue
        console.print()


@click.command()
@click.option("--config", "-c", "config_path", default=None,
              help="Path to openai_api.yaml (auto-detected from CWD or ~/.config/openai-api/)")
@click.option("--model", "-m", default=None, help="Model name")
@click.option("--system", "-s", default=None, help="System prompt")
@click.option("--verbose", "-v", is_flag=True, help="Verbose logging")
def main(config_path: str | None, model: str | None, system: str | None, verbose: bool):
    """Chat with the model from the terminal."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)

    config = load_config(config_path)

    async def _run() -> None:
        async with OpenAIAPI(config=config) as api:
            await _chat_loop(api, model, system, _make_session())

    asyncio.run(_run())


if __name__ == "__main__":
    main()
