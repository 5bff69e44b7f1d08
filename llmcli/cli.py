"""llm CLI: Typer + Rich terminal interface.

Commands: ask (default, so ``llm 'prompt'`` works), init-db, logs.
"""

from __future__ import annotations

import asyncio
import logging
import sys

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from typer.core import TyperGroup

from llmcli import __version__
from llmcli.client import ChatClient
from llmcli.errors import LLMCliError
from llmcli.keys import get_api_key, get_organization, load_keys_env
from llmcli.persistence.database import close_db, connect_db, db_exists, init_db
from llmcli.persistence.log_store import ExchangeLogger, LogStore
from llmcli.prompt import (
    build_messages,
    expand_prompt,
    resolve_system_prompt,
    unwrap_markdown,
)
from llmcli.schemas.messages import ChatRequest
from llmcli.schemas.streaming import CompletionResult
from llmcli.settings import ClientConfig, load_config

logger = logging.getLogger(__name__)

console = Console()
err_console = Console(stderr=True)

DEFAULT_COMMAND = "ask"


class DefaultCommandGroup(TyperGroup):
    """Routes anything that is not a known subcommand to ``ask``."""

    _group_flags = frozenset({"--verbose", "-v"})
    _group_passthrough = frozenset({
        "--help", "--version", "-V", "--install-completion", "--show-completion",
    })

    def parse_args(self, ctx: typer.Context, args: list[str]) -> list[str]:
        idx = 0
        while idx < len(args) and args[idx] in self._group_flags:
            idx += 1
        head = args[idx] if idx < len(args) else None
        if head is None or (
            head not in self.commands and head not in self._group_passthrough
        ):
            args = [*args[:idx], DEFAULT_COMMAND, *args[idx:]]
        return super().parse_args(ctx, args)


HELP = """\
LLM CLI simplifies using LLM models, like OpenAI's GPT-3 and GPT-4, in your terminal.

Prompt can be multiple words and handle files by using {{f ./file.txt }}

Examples:

  llm -c 'write me a hello world in JavaScript'

  llm 'explain me the following code: {{f ./index.js }}'

  llm 'Hello, AI! How are you today?' --system 'You are a chatbot'
"""

app = typer.Typer(
    name="llm",
    help=HELP,
    cls=DefaultCommandGroup,
    no_args_is_help=False,
    rich_markup_mode=None,
)


# ── Version / verbosity callbacks ────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"llm {__version__}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    root = logging.getLogger("llmcli")
    root.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in root.handlers):
        root.addHandler(RichHandler(console=err_console, show_path=False))


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log requests and stream handling to stderr.",
    ),
) -> None:
    """Send prompts to a chat-completion API from the terminal."""
    _configure_logging(verbose)
    # Load API keys from ~/.llmcli/keys.env and .env
    load_keys_env()


# ── Helpers ──────────────────────────────────────────────────────


def _load_config() -> ClientConfig:
    """Load client config, exit on error."""
    try:
        return load_config()
    except (FileNotFoundError, ValueError) as e:
        err_console.print(f"[red]Error loading config:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None


def _read_stdin() -> str:
    return sys.stdin.read().strip()


async def _run_exchange(
    config: ClientConfig,
    request: ChatRequest,
    prompt_text: str,
    system: str,
    exchange_logger: ExchangeLogger,
    *,
    code: bool,
) -> None:
    """Issue the request, display the answer and log the exchange once."""

    async def _log(result: CompletionResult) -> None:
        await exchange_logger(
            prompt=prompt_text,
            model=request.model,
            system=system,
            response=result.text,
            data=result.data,
        )

    async with ChatClient(
        config.api_url,
        get_api_key(),
        organization=get_organization(),
        timeout=config.timeout,
    ) as client:
        if request.stream:
            async for fragment in client.stream(request, on_complete=_log):
                sys.stdout.write(fragment)
                sys.stdout.flush()
            return

        result = await client.complete(request)
        await _log(result)

    if code:
        sys.stdout.write(f"\n{unwrap_markdown(result.text)}\n\n\n")
    else:
        sys.stdout.write(result.text + "\n")
    sys.stdout.flush()


# ── llm ask (default) ────────────────────────────────────────────


@app.command(DEFAULT_COMMAND)
def ask(
    prompt: list[str] = typer.Argument(
        None, help="Prompt words; read from stdin when omitted",
    ),
    code: bool = typer.Option(
        False, "--code", "-c",
        help="Set System prompt of the conversation especially for code output",
    ),
    no_log: bool = typer.Option(
        False, "--no-log", "-n",
        help="Skip log to database",
    ),
    system: str = typer.Option(
        None, "--system",
        help="The System prompt of the conversation",
    ),
    gpt4: bool = typer.Option(False, "--gpt4", "-4", help="Use GPT-4 Model"),
    model: str = typer.Option(None, "--model", "-m", help="Use Model by name"),
    stream: bool = typer.Option(False, "--stream", "-s", help="Stream output"),
) -> None:
    """Send a prompt (the default command)."""
    config = _load_config()

    final_prompt = " ".join(prompt) if prompt else _read_stdin()
    if not final_prompt:
        err_console.print("No prompt provided")
        raise typer.Exit(1)

    if code and system:
        err_console.print("Can't use --code and --system together")
        raise typer.Exit(1)

    try:
        expanded = expand_prompt(final_prompt)
    except LLMCliError as e:
        err_console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None

    chosen_model = model or (config.gpt4_model if gpt4 else config.model)
    system_text = resolve_system_prompt(code=code, system=system)

    suffix = " (expanded)" if expanded != final_prompt else ""
    console.print(
        f"\n ⏳ loading prompt: {final_prompt}{suffix}\n\n",
        markup=False, highlight=False,
    )

    request = ChatRequest(
        model=chosen_model,
        messages=build_messages(system_text, expanded),
        stream=stream,
    )
    exchange_logger = ExchangeLogger(
        config.resolved_db_path,
        enabled=config.log and not no_log,
        console=err_console,
    )

    try:
        asyncio.run(_run_exchange(
            config, request, expanded, system_text, exchange_logger, code=code,
        ))
    except LLMCliError as e:
        sys.stdout.flush()
        err_console.print(f"\n[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None


# ── llm init-db ──────────────────────────────────────────────────


@app.command("init-db")
def init_db_command() -> None:
    """Create the SQLite log database."""
    config = _load_config()
    path = config.resolved_db_path
    if db_exists(path):
        console.print(f"Database already exists at {path}")
        return

    async def _create() -> None:
        db = await init_db(path)
        await close_db(db)

    asyncio.run(_create())
    console.print(f"Database created at {path}")


# ── llm logs ─────────────────────────────────────────────────────


@app.command("logs")
def logs_list(
    limit: int = typer.Option(10, "--limit", "-n", help="Max exchanges to show"),
) -> None:
    """Show recently logged exchanges."""
    config = _load_config()
    path = config.resolved_db_path
    if not db_exists(path):
        err_console.print("Couldn't find log database. Run `llm init-db` to create it.")
        raise typer.Exit(1)

    async def _list():
        db = await connect_db(path)
        try:
            return await LogStore(db).recent(limit)
        finally:
            await close_db(db)

    records = asyncio.run(_list())
    if not records:
        console.print("[dim]No exchanges logged.[/dim]")
        return

    table = Table(title=f"Exchanges ({len(records)} shown)")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("When", style="dim", no_wrap=True)
    table.add_column("Model")
    table.add_column("Prompt", max_width=40)
    table.add_column("Response", max_width=40)

    for r in records:
        table.add_row(
            str(r.id),
            r.timestamp.strftime("%Y-%m-%d %H:%M"),
            r.model,
            r.prompt.replace("\n", " ")[:40],
            r.response.replace("\n", " ")[:40],
        )

    console.print(table)


def run() -> None:
    """Console-script entry point."""
    app()


if __name__ == "__main__":
    run()
