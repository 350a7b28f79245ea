"""Terminal rendering of review threads with rich."""

from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax

from snaplens_core.parser import Severity
from snaplens_core.thread import Author, ReviewComment, ReviewThread, ThreadStatus

_SEVERITY_COLOR = {
    Severity.ERROR: "red",
    Severity.WARNING: "yellow",
    Severity.SUGGESTION: "blue",
    Severity.INFO: "dim",
}


def render_comment(console: Console, comment: ReviewComment) -> None:
    if comment.author is Author.USER:
        console.print("[bold cyan]You[/bold cyan]")
    else:
        header = "[bold green]AI[/bold green]"
        color = _SEVERITY_COLOR.get(comment.severity)
        if color:
            header += f"  [{color}]{comment.severity.label.upper()}[/{color}]"
        console.print(header)

    console.print(comment.body, markup=False, highlight=False)

    suggestion = comment.code_suggestion
    if suggestion is not None:
        console.print(
            Panel(
                Syntax(suggestion.code, (suggestion.language or "text").lower(), theme="ansi_dark"),
                title="Suggested code",
                title_align="left",
            )
        )
    console.print()


def render_thread(console: Console, thread: ReviewThread) -> None:
    selection = thread.selection
    console.print(f"\n[bold]Review #{thread.id}[/bold]  [cyan]{escape(selection.summary())}[/cyan]\n")
    for comment in thread.comments:
        render_comment(console, comment)
    render_status(console, thread)


def render_status(console: Console, thread: ReviewThread) -> None:
    if thread.status is ThreadStatus.FAILED:
        console.print(f"[red]Request failed: {escape(thread.failure_reason or '')}[/red]")
    elif thread.status is ThreadStatus.AWAITING_RESPONSE:
        console.print("[yellow]Still waiting for a response...[/yellow]")
