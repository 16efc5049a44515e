"""
Manages a Rich Live display for a playlist run: overall progress, the state of
every track currently being converted or downloaded, and running statistics.
"""

import asyncio
import logging
from datetime import datetime

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from tunefetch.utils.formatting import shorten

log = logging.getLogger("tunefetch")

DESCRIPTION_WIDTH = 55


class ProgressManager:
    """
    Tracks per-track status lines and overall completion.

    With `enabled=False` the manager keeps its counters but renders nothing,
    which is what non-interactive runs and tests use.
    """

    def __init__(self, console: Console, enabled: bool = True):
        self.console = console
        self.enabled = enabled

        self.progress = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}", justify="left"),
            TextColumn("[magenta]{task.fields[status]}"),
            TimeElapsedColumn(),
            console=console,
            transient=False,
        )

        self.overall_progress = Progress(
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            "[progress.percentage]{task.percentage:>3.0f}%",
            TextColumn("[dim]{task.completed}/{task.total}"),
            console=console,
        )

        self._live: Live | None = None
        self._layout: Layout | None = None

        self._stats = {
            "total_tracks": 0,
            "completed": 0,
            "failed": 0,
            "skipped": 0,
            "active_tracks": 0,
            "peak_concurrent": 0,
            "start_time": None,
        }

        self._overall_task_id: TaskID | None = None
        self._active_tasks: dict[TaskID, str] = {}

    def _create_layout(self) -> Layout:
        layout = Layout()
        layout.split_column(
            Layout(name="header", size=3),
            Layout(name="stats", size=7),
            Layout(name="progress", ratio=1),
        )
        return layout

    def _generate_header(self) -> Panel:
        if self._stats["start_time"]:
            elapsed = int((datetime.now() - self._stats["start_time"]).total_seconds())
            elapsed_str = (
                f"{elapsed // 3600:02d}:{(elapsed % 3600) // 60:02d}:{elapsed % 60:02d}"
            )
        else:
            elapsed_str = "00:00:00"
        header_text = Text()
        header_text.append("🎵 tunefetch ", style="bold cyan")
        header_text.append("│ ", style="dim")
        header_text.append(f"Session: {elapsed_str}", style="yellow")
        return Panel(header_text, border_style="cyan")

    def _generate_stats_panel(self) -> Panel:
        stats_table = Table.grid(padding=(0, 2))
        stats_table.add_column(style="bold cyan", justify="right")
        stats_table.add_column(style="white")
        stats_table.add_column(style="bold cyan", justify="right")
        stats_table.add_column(style="white")
        remaining = (
            self._stats["total_tracks"]
            - self._stats["completed"]
            - self._stats["failed"]
            - self._stats["skipped"]
        )
        stats_table.add_row(
            "Downloaded:",
            f"[green]{self._stats['completed']}[/green]",
            "Failed:",
            f"[red]{self._stats['failed']}[/red]",
        )
        stats_table.add_row(
            "Not Matched:",
            f"[yellow]{self._stats['skipped']}[/yellow]",
            "Remaining:",
            f"[cyan]{remaining}[/cyan]",
        )
        stats_table.add_row(
            "Active:",
            f"[cyan]{self._stats['active_tracks']}[/cyan]",
            "Peak:",
            f"[magenta]{self._stats['peak_concurrent']}[/magenta]",
        )
        combined = Table.grid()
        combined.add_row(stats_table)
        if self._overall_task_id is not None:
            combined.add_row(self.overall_progress)
        return Panel(
            combined, title="[bold]📊 Session Statistics[/bold]", border_style="blue"
        )

    def _generate_progress_panel(self) -> Panel:
        if not self._active_tasks:
            return Panel(
                Text(
                    "Waiting for conversions to start...",
                    style="dim italic",
                    justify="center",
                ),
                title="[bold]🎧 Active Tracks[/bold]",
                border_style="green",
            )
        return Panel(
            self.progress,
            title=f"[bold]🎧 Active Tracks ({len(self._active_tasks)})[/bold]",
            border_style="green",
        )

    def _update_display(self):
        if not self.enabled or not self._layout:
            return
        self._layout["header"].update(self._generate_header())
        self._layout["stats"].update(self._generate_stats_panel())
        self._layout["progress"].update(self._generate_progress_panel())

    def _refresh_overall(self):
        if self._overall_task_id is None:
            return
        self.overall_progress.update(
            self._overall_task_id,
            completed=(
                self._stats["completed"]
                + self._stats["failed"]
                + self._stats["skipped"]
            ),
        )

    def initialize_session(self, total_tracks: int):
        self._stats["total_tracks"] = total_tracks
        self._stats["start_time"] = datetime.now()
        if self.enabled:
            self._overall_task_id = self.overall_progress.add_task(
                "Overall Progress", total=total_tracks, start=True
            )
        self._update_display()

    def add_track_task(self, description: str) -> TaskID | None:
        self._stats["active_tracks"] += 1
        self._stats["peak_concurrent"] = max(
            self._stats["peak_concurrent"], self._stats["active_tracks"]
        )
        if not self.enabled:
            return None
        task_id = self.progress.add_task(
            escape(shorten(description, DESCRIPTION_WIDTH)),
            total=None,
            status="queued",
        )
        self._active_tasks[task_id] = description
        self._update_display()
        return task_id

    def update_task_status(self, task_id: TaskID | None, status: str):
        if task_id is not None and self.enabled:
            self.progress.update(task_id, status=status)
            self._update_display()

    def remove_task(self, task_id: TaskID | None, success: bool = True):
        self._stats["active_tracks"] = max(0, self._stats["active_tracks"] - 1)
        if success:
            self._stats["completed"] += 1
        else:
            self._stats["failed"] += 1
        if task_id is not None and self.enabled:
            self.progress.remove_task(task_id)
            self._active_tasks.pop(task_id, None)
        self._refresh_overall()
        self._update_display()

    def increment_skipped(self, count: int = 1):
        self._stats["skipped"] += count
        self._refresh_overall()
        self._update_display()

    async def __aenter__(self):
        if not self.enabled:
            return self
        self._layout = self._create_layout()
        self._update_display()
        self._live = Live(
            self._layout,
            console=self.console,
            refresh_per_second=8,
            vertical_overflow="visible",
        )
        self._live.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._live:
            await asyncio.sleep(0.2)
            self._live.stop()
            self._live = None
