"""Rich console output for engine events, transcripts and issue plans."""

import logging
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from council.format import format_elapsed
from council.models import (
    Comment,
    CommentPostedEvent,
    EngineEvent,
    PhaseEvent,
    ProviderEvent,
    UserWaitEvent,
)
from council.plan import IssuePlan

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _preview(text: str, words: int = 50) -> str:
    """Return first N words of a comment."""
    all_words = text.split()
    preview = " ".join(all_words[:words])
    if len(all_words) > words:
        preview += "..."
    return preview


class EventPrinter:
    """Engine observer that renders each event on a rich console."""

    def __init__(self, out: Console | None = None, show_comments: bool = False) -> None:
        self._console = out or console
        self._show_comments = show_comments

    def __call__(self, event: EngineEvent) -> None:
        if isinstance(event, PhaseEvent):
            self._phase(event)
        elif isinstance(event, ProviderEvent):
            self._provider(event)
        elif isinstance(event, UserWaitEvent):
            self._user_wait(event)
        elif isinstance(event, CommentPostedEvent) and self._show_comments:
            self._console.print(f"[dim]comment posted ({event.bytes} bytes)[/dim]")

    def _phase(self, event: PhaseEvent) -> None:
        if event.type == "phase_started":
            self._console.print(Rule(f"[bold cyan]Round {event.round}: {event.phase}[/bold cyan]"))

    def _provider(self, event: ProviderEvent) -> None:
        if event.type == "provider_started":
            self._console.print(f"[dim]...[/dim] {escape(event.agent_name)} ({event.phase})")
            return
        elapsed = format_elapsed(event.elapsed_ms or 0)
        if event.ok:
            self._console.print(f"[green]OK  [/green] {escape(event.agent_name)} ({elapsed})")
        else:
            short_err = (event.error or "unknown error").splitlines()[0][:120]
            self._console.print(f"[red]FAIL[/red] {escape(event.agent_name)} ({elapsed}): {escape(short_err)}")

    def _user_wait(self, event: UserWaitEvent) -> None:
        if event.type == "waiting_for_user":
            body = Text("\n".join(f"- {q}" for q in event.questions) or "(no questions)")
            self._console.print(
                Panel(
                    body,
                    title=f"[bold yellow]Input requested[/bold yellow] ({event.waits_used}/{event.waits_max})",
                    subtitle=f"reply with: council reply {escape(event.issue_id)} ... ({event.timeout_seconds:g}s)",
                    border_style="yellow",
                )
            )
        elif event.type == "user_input_received":
            self._console.print(f"[green]User reply received:[/green] {escape(_preview(event.message or '', 20))}")
        else:
            self._console.print("[yellow]No user reply; continuing.[/yellow]")


def print_transcript(comments: list[Comment], tail: int = 10, out: Console | None = None) -> None:
    """Print the last ``tail`` comments as markdown panels."""
    target = out or console
    shown = comments[-tail:] if tail > 0 else comments
    for comment in shown:
        subtitle = " ".join(part for part in (comment.author, comment.created_at) if part)
        target.print(
            Panel(
                Markdown(comment.text),
                title=f"[bold]#{comment.id}[/bold]",
                subtitle=escape(subtitle) if subtitle else None,
                border_style="dim",
            )
        )


def print_plan(plan: IssuePlan, path: Path, out: Console | None = None) -> None:
    """Print an issue plan as a table."""
    target = out or console
    target.print(Rule("[bold green]Issue Plan[/bold green]"))
    target.print(Text(f"Source: {path}", style="dim"))

    table = Table(show_lines=False)
    table.add_column("#", justify="right")
    table.add_column("Title", style="bold")
    table.add_column("P")
    table.add_column("Labels")
    table.add_column("Depends on")
    for index, item in enumerate(plan.issues, start=1):
        table.add_row(
            str(index),
            escape(item.title),
            escape(item.priority),
            escape(", ".join(item.labels)),
            escape(", ".join(item.depends_on)),
        )
    target.print(table)
