"""
Functions for formatting and displaying data in the console using Rich.
"""

from pathlib import Path
from typing import Any, Sequence

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from tunefetch.models.config import DownloadConfig
from tunefetch.models.stats import DownloadStats
from tunefetch.models.track import AcquisitionResult, MatchedTrack, Outcome
from tunefetch.utils.formatting import format_duration, format_size, shorten

SENSITIVE_KEYS = ("client_secret", "youtube_api_key")

OUTCOME_LABELS = {
    Outcome.NOT_FOUND: "[yellow]not found[/yellow]",
    Outcome.MATCH_FAILED: "[red]search failed[/red]",
    Outcome.CONVERSION_FAILED: "[red]conversion failed[/red]",
    Outcome.DOWNLOAD_FAILED: "[red]download failed[/red]",
}


def format_error_with_suggestions(
    error: Exception, context: dict | None = None
) -> Panel:
    """Formats an error with actionable suggestions into a Rich Panel."""
    error_type = type(error).__name__
    error_msg = str(error)

    suggestions_map = {
        "ConfigurationError": [
            "• Run `tunefetch init CLIENT_ID CLIENT_SECRET YOUTUBE_API_KEY`.",
            "• Or set CLIENT_ID, CLIENT_SECRET and YOUTUBE_API_KEY in a .env file.",
            "• Run `tunefetch validate` to check the current settings.",
        ],
        "AuthError": [
            "• Verify the Spotify client id and secret in the configuration file.",
            "• Check that the app still exists on developer.spotify.com.",
        ],
        "InvalidReferenceError": [
            "• Pass a full playlist link such as "
            "https://open.spotify.com/playlist/<id>.",
            "• Copy the link with 'Share > Copy link to playlist'.",
        ],
        "MalformedResponseError": [
            "• The Spotify API returned an unexpected answer.",
            "• The playlist may be private or no longer exist.",
            "• Please try again in a few minutes.",
        ],
        "ClientResponseError": [
            "• A network connection issue occurred.",
            "• Please try again in a few minutes.",
        ],
        "TimeoutError": [
            "• A request timed out, which may indicate network throttling.",
            "• Check your internet speed.",
            "• Try reducing the number of `--workers`.",
        ],
    }

    suggestions = suggestions_map.get(
        error_type, ["• Run the command with -vv for detailed logs."]
    )

    error_text = Text()
    error_text.append(f"{error_type}: ", style="bold red")
    error_text.append(error_msg)

    suggestion_text = Text("\n".join(suggestions))

    content = Table.grid(padding=(1, 0))
    content.add_row(error_text)
    content.add_row()
    content.add_row(Text("Suggestions", style="bold yellow"))
    content.add_row(suggestion_text)

    if context:
        content.add_row()
        content.add_row(Text(f"Context: {context}", style="dim"))

    return Panel(
        content,
        title="[bold red]An Error Occurred[/bold red]",
        border_style="red",
        expand=False,
    )


def print_config(config_path: Path, config_data: dict[str, Any]):
    """Displays the current configuration, hiding sensitive data."""
    console = Console()
    content = ""
    for key, value in config_data.items():
        if key in SENSITIVE_KEYS and value:
            value = "[hidden]"
        elif isinstance(value, dict):
            nested = ", ".join(f"{k}={v}" for k, v in value.items())
            value = f"{{{nested}}}"
        content += f"{key} = {value}\n"

    console.print(
        Panel(
            escape(content.strip()),
            title=f"Configuration ([dim]{config_path}[/dim])",
            border_style="cyan",
        )
    )


def print_validation_table(config: DownloadConfig):
    """Displays a summary of the current settings."""
    console = Console()
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="bold cyan")
    table.add_column()

    converter = config.converter
    table.add_row("Spotify Client ID:", f"[green]{escape(config.client_id)}[/green]")
    table.add_row("YouTube API Key:", "[green]✓ Present[/green]")
    table.add_row("Workers:", str(config.concurrency))
    table.add_row("Max Attempts:", str(config.max_attempts))
    table.add_row("Output Directory:", f"[dim]{escape(config.output_dir)}[/dim]")
    table.add_row("Browser:", "Headless" if config.headless else "Headed")
    table.add_row("Converter:", f"[dim]{escape(converter.url_template)}[/dim]")
    table.add_row(
        "Failure Probe:",
        f"✓ {escape(converter.failure_panel_selector)}"
        if converter.failure_panel_selector
        else "✗ Disabled",
    )
    table.add_row(
        "Timeouts:",
        f"page {converter.navigation_timeout:.0f}s • format "
        f"{converter.format_timeout:.0f}s • link {converter.link_timeout:.0f}s",
    )

    console.print(
        Panel(
            table,
            title="[bold green]✓ Validated Settings[/bold green]",
            border_style="green",
        )
    )


def print_tracks_table(matched: Sequence[MatchedTrack]):
    """Displays resolved tracks and, when searched, their matched videos."""
    console = Console()
    table = Table(box=box.SIMPLE_HEAD, title=f"[bold]{len(matched)} Track(s)[/bold]")
    table.add_column("#", style="dim", justify="right")
    table.add_column("Title", style="cyan")
    table.add_column("Artists")
    table.add_column("Video", style="magenta")

    for i, track in enumerate(matched, 1):
        if track.is_matched:
            video = track.video_url
        elif track.match_error:
            video = f"[yellow]{escape(shorten(str(track.match_error), 40))}[/yellow]"
        else:
            video = "[dim]-[/dim]"
        table.add_row(
            str(i),
            escape(track.title),
            escape(", ".join(track.artists)),
            video,
        )
    console.print(table)


def print_failures_table(results: Sequence[AcquisitionResult]):
    """Lists every track that did not end in a downloaded file."""
    failures = [r for r in results if not r.succeeded]
    if not failures:
        return

    console = Console()
    table = Table(box=box.ROUNDED, title="[bold]Tracks Not Downloaded[/bold]")
    table.add_column("Title", style="cyan")
    table.add_column("Artists")
    table.add_column("Outcome")
    table.add_column("Reason", style="dim")

    for result in failures:
        table.add_row(
            escape(result.track.title),
            escape(", ".join(result.track.artists)),
            OUTCOME_LABELS[result.outcome],
            escape(shorten(result.reason or "", 60)),
        )
    console.print(table)


def print_summary_panel(
    stats: DownloadStats,
    duration_s: float,
    results: Sequence[AcquisitionResult] = (),
):
    """Displays the final summary of the run."""
    console = Console()

    stats_table = Table(show_header=False, box=None, padding=(0, 2))
    stats_table.add_column(style="bold cyan", justify="right", width=20)
    stats_table.add_column(style="white", justify="left")

    stats_table.add_row("Resolved:", f"[cyan]{stats.tracks_resolved}[/cyan]")
    if stats.catalog_items_skipped > 0:
        stats_table.add_row(
            "○ Unusable Items:", f"[yellow]{stats.catalog_items_skipped}[/yellow]"
        )
    stats_table.add_row(
        "✓ Downloaded:", f"[bold green]{stats.tracks_downloaded}[/bold green]"
    )
    if stats.tracks_not_found > 0:
        stats_table.add_row("○ Not Found:", f"[yellow]{stats.tracks_not_found}[/yellow]")

    failure_sections = []
    if stats.tracks_match_failed > 0:
        failure_sections.append(f"[red]{stats.tracks_match_failed} (search)[/red]")
    if stats.tracks_conversion_failed > 0:
        failure_sections.append(
            f"[red]{stats.tracks_conversion_failed} (conversion)[/red]"
        )
    if stats.tracks_download_failed > 0:
        failure_sections.append(f"[red]{stats.tracks_download_failed} (download)[/red]")
    if failure_sections:
        stats_table.add_row("✗ Failed:", " + ".join(failure_sections))

    stats_table.add_row("", "")  # Spacer

    stats_table.add_row(
        "Total Size:", f"[cyan]{format_size(stats.total_size_downloaded)}[/cyan]"
    )
    stats_table.add_row("Time Elapsed:", f"[blue]{format_duration(duration_s)}[/blue]")
    if stats.conversion_retries > 0:
        stats_table.add_row("Retries:", f"[yellow]{stats.conversion_retries}[/yellow]")
    stats_table.add_row(
        "Peak Sessions:", f"[green]{stats.peak_concurrent_sessions}[/green]"
    )

    if stats.tracks_downloaded > 0 and duration_s > 0:
        tracks_per_minute = (stats.tracks_downloaded / duration_s) * 60
        stats_table.add_row(
            "Throughput:", f"[cyan]{tracks_per_minute:.1f} tracks/min[/cyan]"
        )

    if stats.tracks_failed or stats.tracks_not_found:
        title = "🎵 [bold]Download Finished With Issues[/bold]"
        border_color = "yellow"
    else:
        title = "🎵 [bold]Download Complete![/bold]"
        border_color = "green"

    console.print()
    console.print(
        Panel(
            stats_table,
            title=title,
            border_style=border_color,
            box=box.DOUBLE,
            expand=False,
            padding=(1, 2),
        )
    )
    print_failures_table(results)
    console.print()
