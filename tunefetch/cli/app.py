"""
Defines the command-line interface for the application using Typer.
"""

import asyncio
import logging
import os
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler

from tunefetch import __version__
from tunefetch.api.client import CatalogClient
from tunefetch.api.search import MatchResolver
from tunefetch.core.download_manager import DownloadManager
from tunefetch.exceptions import TuneFetchError
from tunefetch.media.downloader import close_connection_pool
from tunefetch.storage.config_manager import ConfigManager

from .formatters import (
    format_error_with_suggestions,
    print_config,
    print_summary_panel,
    print_tracks_table,
    print_validation_table,
)
from .progress_manager import ProgressManager

console = Console()

logging.basicConfig(
    level="WARNING",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            console=console,
            rich_tracebacks=True,
            show_path=False,
            show_level=False,
            markup=True,
        )
    ],
)
log = logging.getLogger("tunefetch")
log.setLevel("WARNING")

app = typer.Typer(
    name="tunefetch",
    help=(
        "Download a Spotify playlist as MP3 files via YouTube and a web converter."
        " Use 'tunefetch <command> --help' for more info."
    ),
    rich_markup_mode="rich",
    pretty_exceptions_show_locals=False,
    add_completion=False,
)


def get_config_dir() -> Path:
    if os.name == "nt":
        base_dir = Path(os.getenv("APPDATA", "~\\AppData\\Roaming"))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", "~/.config"))
    return base_dir.expanduser() / "tunefetch"


CONFIG_DIR = get_config_dir()
CONFIG_FILE = CONFIG_DIR / "config.ini"


def _fail(error: TuneFetchError) -> typer.Exit:
    console.print(format_error_with_suggestions(error))
    return typer.Exit(code=1)


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase logging verbosity (-vv for debug).",
    ),
    version: bool = typer.Option(
        False, "--version", help="Show version and exit.", is_eager=True
    ),
    show_config: bool = typer.Option(
        False, "--show-config", help="Display the current configuration."
    ),
):
    """tunefetch CLI"""
    if version:
        console.print(f"[bold]tunefetch[/bold] version [cyan]{__version__}[/cyan]")
        raise typer.Exit()

    log_level = "WARNING"
    if verbose >= 2:
        log_level = "DEBUG"
    elif verbose == 1:
        log_level = "INFO"
    log.setLevel(log_level)

    if show_config:
        try:
            config = ConfigManager(CONFIG_FILE).load_config()
        except TuneFetchError as e:
            raise _fail(e) from e
        print_config(
            CONFIG_FILE, config.model_dump(exclude={"config_path", "snapshot_path"})
        )
        raise typer.Exit()

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())


@app.command()
def init(
    client_id: str = typer.Argument(..., help="Spotify application client id."),
    client_secret: str = typer.Argument(..., help="Spotify application client secret."),
    youtube_api_key: str = typer.Argument(..., help="YouTube Data API v3 key."),
    force: bool = typer.Option(
        False, "--force", "-f", help="Overwrite existing credentials without asking."
    ),
):
    """Initialize configuration with Spotify and YouTube credentials."""
    if (
        CONFIG_FILE.exists()
        and not force
        and not typer.confirm(
            "Configuration file already exists. Overwrite the credentials?"
        )
    ):
        raise typer.Abort()

    settings = {
        "client_id": client_id.strip(),
        "client_secret": client_secret.strip(),
        "youtube_api_key": youtube_api_key.strip(),
    }
    if not all(settings.values()):
        console.print("[red]✗ All three credentials must be non-empty.[/red]")
        raise typer.Exit(code=1)

    try:
        ConfigManager(CONFIG_FILE).save_new_config(settings)
    except TuneFetchError as e:
        raise _fail(e) from e
    console.print(f"\n[bold green]✓ Configuration saved to '{CONFIG_FILE}'[/bold green]")
    console.print(
        "Ready to download! Try: [cyan]tunefetch download <PLAYLIST_URL>[/cyan]"
    )


@app.command(name="download")
def download_command(
    playlist_url: str = typer.Argument(..., help="Spotify playlist URL."),
    workers: int | None = typer.Option(
        None,
        "-w",
        "--workers",
        help="Number of simultaneous browser sessions (default 3).",
    ),
    attempts: int | None = typer.Option(
        None,
        "-a",
        "--attempts",
        help="Conversion attempts per track on timeouts (default 3).",
    ),
    output_dir: str | None = typer.Option(
        None, "-o", "--output", help="Directory the MP3 files are saved to."
    ),
    snapshot: Path | None = typer.Option(  # noqa: B008
        None, "--snapshot", help="Write the matched tracks to this JSON file."
    ),
    headless: bool | None = typer.Option(
        None,
        "--headless/--headed",
        help="Run the browser without a visible window.",
    ),
):
    """Download every track of a Spotify playlist as MP3."""
    cli_options = {
        "concurrency": workers,
        "max_attempts": attempts,
        "output_dir": output_dir,
        "snapshot_path": str(snapshot) if snapshot else None,
        "headless": headless,
    }

    async def _download_async():
        catalog = None
        matcher = None
        manager = None
        results = []
        duration = 0.0

        async with ProgressManager(
            console=console, enabled=console.is_terminal
        ) as progress_manager:
            try:
                config = ConfigManager(CONFIG_FILE).load_config(cli_options)
                catalog = CatalogClient(
                    config.client_id, config.client_secret, config.request_timeout
                )
                matcher = MatchResolver(config.youtube_api_key, config.request_timeout)
                manager = DownloadManager(
                    config, catalog, matcher, progress_manager=progress_manager
                )

                console.print("[bold cyan]🎵 Starting download session...[/bold cyan]")
                start_time = time.monotonic()
                results = await manager.execute(playlist_url)
                duration = time.monotonic() - start_time
            except TuneFetchError as e:
                raise _fail(e) from e
            finally:
                await close_connection_pool()
                if catalog:
                    await catalog.close()
                if matcher:
                    await matcher.close()

        if manager:
            print_summary_panel(manager.stats, duration, results)
            manager.save_session_stats()

    asyncio.run(_download_async())


@app.command()
def resolve(
    playlist_url: str = typer.Argument(..., help="Spotify playlist URL."),
    match: bool = typer.Option(
        True, "--match/--no-match", help="Also search a video for every track."
    ),
    snapshot: Path | None = typer.Option(  # noqa: B008
        None, "--snapshot", help="Write the tracks to this JSON file."
    ),
):
    """List the tracks of a playlist without downloading them."""
    cli_options = {"snapshot_path": str(snapshot) if snapshot else None}

    async def _resolve_async():
        catalog = None
        matcher = None
        try:
            config = ConfigManager(CONFIG_FILE).load_config(cli_options)
            catalog = CatalogClient(
                config.client_id, config.client_secret, config.request_timeout
            )
            matcher = MatchResolver(config.youtube_api_key, config.request_timeout)
            manager = DownloadManager(config, catalog, matcher)
            return await manager.resolve_only(playlist_url, match=match)
        except TuneFetchError as e:
            raise _fail(e) from e
        finally:
            if catalog:
                await catalog.close()
            if matcher:
                await matcher.close()

    print_tracks_table(asyncio.run(_resolve_async()))


@app.command()
def validate():
    """Validate the current configuration."""
    try:
        config_manager = ConfigManager(CONFIG_FILE)
        config = config_manager.load_config()
        print_validation_table(config)
    except TuneFetchError as e:
        console.print(f"[red]✗ Configuration is invalid: {e}[/red]")
        raise typer.Exit(code=1) from e
