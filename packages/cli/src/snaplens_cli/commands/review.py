"""review command — review a line range of a file as a threaded conversation."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console

from snaplens_cli.render import render_comment, render_status, render_thread
from snaplens_core.errors import ReviewError
from snaplens_core.session import SessionManager, get_client
from snaplens_core.thread import ThreadStatus
from snaplens_core.utils.code import detect_language, is_code_file

console = Console()


def _parse_line_range(ctx, param, value: str) -> tuple[int, int]:
    """Accept ``START-END`` or a single line number."""
    start, sep, end = value.partition("-")
    try:
        first = int(start)
        last = int(end) if sep else first
    except ValueError:
        raise click.BadParameter(f"Expected START-END or a line number, got {value!r}.")
    return first, last


def _wait_for(manager: SessionManager, thread_id: int, timeout: float | None) -> None:
    with console.status("Waiting for the model..."):
        finished = manager.wait(thread_id, timeout=timeout)
    if not finished:
        raise click.ClickException(f"No response within {timeout:g}s.")


@click.command("review")
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--lines",
    "line_range",
    required=True,
    callback=_parse_line_range,
    help="Line range to review, 1-based and inclusive, e.g. 12-18.",
)
@click.option("--question", "-q", default=None, help="What to ask about the selection.")
@click.option(
    "--model",
    type=click.Choice(["anthropic", "openai"]),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.option(
    "--context-lines",
    type=int,
    default=None,
    help="Lines of surrounding context sent with the selection. Overrides config file.",
)
@click.option(
    "--language",
    default=None,
    help="Language tag for the file. Detected from the extension when omitted.",
)
@click.option("--follow-up", "-f", is_flag=True, help="Keep asking follow-up questions until an empty line.")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for each response.")
@click.pass_context
def review_cmd(
    ctx,
    file_path: str,
    line_range: tuple[int, int],
    question: str | None,
    model: str | None,
    context_lines: int | None,
    language: str | None,
    follow_up: bool,
    timeout: float | None,
):
    """Ask an AI reviewer about lines of FILE_PATH.

    Sends the selected lines plus surrounding context, prints the reply with
    its severity and any suggested code, and with --follow-up continues the
    same conversation.

    \b
    Required environment variables:
      ANTHROPIC_API_KEY    Required when using --model anthropic
      OPENAI_API_KEY       Required when using --model openai
    """
    from snaplens_core.config import ReviewSettings, load_config

    config_path = (ctx.obj or {}).get("config_path", ".snaplens.yml")
    config = load_config(config_path, cli_overrides={"model": model, "context_lines": context_lines})

    if config["model"] == "anthropic" and not config.get("anthropic_api_key"):
        raise click.UsageError("ANTHROPIC_API_KEY environment variable is not set.")
    if config["model"] == "openai" and not config.get("openai_api_key"):
        raise click.UsageError("OPENAI_API_KEY environment variable is not set.")

    try:
        settings = ReviewSettings.from_config(config)
        client = get_client(config)
    except (ValueError, FileNotFoundError) as e:
        raise click.UsageError(str(e))

    if not is_code_file(file_path):
        raise click.UsageError(f"{file_path} does not look like a source file.")
    buffer_text = Path(file_path).read_text(encoding="utf-8", errors="replace")
    language = language if language is not None else detect_language(file_path)

    with SessionManager(client, settings=settings) as manager:
        try:
            thread_id = manager.review_selection(
                buffer_text,
                line_range,
                file_id=file_path,
                language=language,
                user_text=question,
            )
        except ReviewError as e:
            raise click.UsageError(str(e))

        _wait_for(manager, thread_id, timeout)
        thread = manager.get_thread(thread_id)
        render_thread(console, thread)

        while follow_up:
            text = click.prompt("Follow-up (empty line to finish)", default="", show_default=False)
            if not text.strip():
                break
            seen = len(thread.comments)
            manager.continue_thread(thread_id, text)
            _wait_for(manager, thread_id, timeout)
            for comment in thread.comments[seen + 1 :]:
                render_comment(console, comment)
            render_status(console, thread)

        if thread.status is ThreadStatus.FAILED:
            ctx.exit(1)
