"""CLI for git-annex-remote-b2.

git-annex starts this program with no arguments and talks to it over
stdin/stdout, so stdout carries protocol lines only. Logs go to stderr.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from .channel import ControlChannel
from .config import load_settings
from .constants import REMOTE_VERSION
from .errors import ChannelClosedError, ConfigError
from .remote import SpecialRemote

app = typer.Typer(
    add_completion=False,
    help="""\
git-annex external special remote storing annexed content in a
Backblaze B2 bucket. Configure with:

  git annex initremote b2 type=external externaltype=b2 encryption=none bucket=NAME [prefix=DIR]
""",
)

console = Console(stderr=True)
logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    handler = RichHandler(console=console, show_path=False, rich_tracebacks=False)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"git-annex-remote-b2 {REMOTE_VERSION}")
        raise typer.Exit()


@app.command()
def serve(
    debug_log: Optional[Path] = typer.Option(
        None, "--debug-log", help="Copy all protocol traffic to this file"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level for stderr diagnostics"
    ),
    settings_path: Optional[Path] = typer.Option(
        None, "--settings", help="Settings YAML file"
    ),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True,
        help="Show version and exit",
    ),
):
    """Speak the external special remote protocol on stdin/stdout."""
    overrides = {
        "log_level": log_level,
        "debug_log": str(debug_log) if debug_log else None,
    }
    try:
        settings = load_settings(settings_path, overrides=overrides)
    except ConfigError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1)

    _configure_logging(settings.log_level)

    debug_sink = None
    if settings.debug_log:
        try:
            debug_sink = open(settings.debug_log, "ab")
        except OSError as e:
            logger.warning("Couldn't open debug log %s: %s", settings.debug_log, e)

    channel = ControlChannel(sys.stdin.buffer, sys.stdout.buffer, debug_sink=debug_sink)
    remote = SpecialRemote(channel, settings=settings)
    try:
        remote.run()
    except (ChannelClosedError, OSError) as e:
        logger.error("Control channel failed: %s", e)
        raise typer.Exit(1)
    finally:
        if debug_sink is not None:
            debug_sink.close()


def main() -> None:
    app()


if __name__ == "__main__":
    main()
