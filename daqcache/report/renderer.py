"""Rich terminal renderer for publish and batch results.

Color scheme
------------
- green   : published (or already cached)
- red     : failed
- yellow  : warnings attached to an otherwise successful publish
"""

from __future__ import annotations

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from daqcache.models.results import BatchResult, PublishResult


def _status(result: PublishResult) -> str:
    if not result.ok:
        return "[bold red]FAILED[/bold red]"
    if result.already_cached:
        return "[green]CACHED[/green]"
    if result.warnings:
        return "[yellow]PUSHED*[/yellow]"
    return "[green]PUSHED[/green]"


def _details(result: PublishResult) -> str:
    parts: list[str] = []
    if result.error is not None:
        stage = result.failed_stage.value if result.failed_stage else "-"
        parts.append(f"[red]{result.error.value} ({stage})[/red]")
    if result.warnings:
        parts.append(
            "[yellow]" + ", ".join(w.value for w in result.warnings) + "[/yellow]"
        )
    if result.ambiguous_candidates:
        parts.append(
            f"[dim]{len(result.ambiguous_candidates)} candidates, "
            f"chose /{(result.selected_hash or '')[:7]}[/dim]"
        )
    if result.log_path and not result.ok:
        parts.append(f"[dim]{result.log_path}[/dim]")
    return " | ".join(parts) if parts else "[dim]-[/dim]"


class ResultsRenderer:
    """Renders ``BatchResult`` as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance. Defaults to one writing to stderr so that
        stdout carries only the summary line.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console(stderr=True)

    def render_batch(self, batch: BatchResult) -> Panel:
        table = self._build_table(batch)
        summary = (
            f"[bold]Succeeded:[/bold] {batch.succeeded}  |  "
            f"[bold]Failed:[/bold] {batch.failed}  |  "
            f"[bold]Warnings:[/bold] {batch.warnings}"
        )
        title = f"[bold]{batch.suite}[/bold]" if batch.suite else "[bold]Publish results[/bold]"
        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title=title,
            border_style="red" if batch.failed else "blue",
            padding=(1, 2),
        )

    def _build_table(self, batch: BatchResult) -> Table:
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=4, justify="right")
        table.add_column("Coordinate", min_width=30)
        table.add_column("Status", justify="center", min_width=8)
        table.add_column("Pushed", justify="right", width=7)
        table.add_column("Details", min_width=20)

        for i, result in enumerate(batch.results, start=1):
            table.add_row(
                str(i),
                Text(result.coordinate),
                _status(result),
                str(result.pushed_count),
                _details(result),
            )
        return table

    def print_batch(self, batch: BatchResult) -> None:
        self.console.print(self.render_batch(batch))
