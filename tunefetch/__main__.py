"""
Console entry point: runs the Typer app and turns its outcome into an exit code.
"""

import logging
import sys

import click
from rich.console import Console

from tunefetch.cli.app import app
from tunefetch.cli.formatters import format_error_with_suggestions
from tunefetch.exceptions import TuneFetchError


def main() -> None:
    log = logging.getLogger("tunefetch")
    console = Console(stderr=True)

    try:
        # Commands report their own failures by raising typer.Exit, which
        # non-standalone click returns as the exit code.
        result = app(standalone_mode=False)
    except click.exceptions.Abort:
        # Ctrl+C during a run or a declined confirmation.
        console.print("[yellow]⚠️  Operation cancelled.[/yellow]")
        sys.exit(1)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except TuneFetchError as e:
        console.print(format_error_with_suggestions(e))
        sys.exit(1)
    except Exception as e:
        console.print(format_error_with_suggestions(e, {"type": "Unexpected"}))
        log.debug("Full traceback:", exc_info=True)
        sys.exit(1)

    sys.exit(result if isinstance(result, int) else 0)


if __name__ == "__main__":
    main()
