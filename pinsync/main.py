"""Main entry point for the pinsync application.

Sets up the Typer CLI application, performs dependency injection (Composition Root),
defines CLI commands, and delegates execution to the CommandHandler.
"""

import asyncio
import logging
import sys
from typing import Any, Coroutine, Dict, List, Optional

import typer
from typing_extensions import Annotated

from pinsync import __version__

# --- Core Layer ---
from pinsync.core.command_handler import CommandHandler
from pinsync.core.context import get_context

# --- Domain Layer ---
from pinsync.domain.errors import ConfigurationError

# --- Infrastructure Layer ---
from pinsync.infrastructure.cli.display import ConsoleDisplay
from pinsync.infrastructure.config.settings import get_config, load_configuration
from pinsync.infrastructure.monitoring.logger_setup import (
    DEFAULT_LOG_FORMAT,
    resolve_level,
    setup_logging,
)

logger = logging.getLogger(__name__)

# Set by the --log-level option before dependencies are created
_log_level_override: Optional[str] = None

# --- Dependency Injection Container (Manual) ---


def create_dependencies() -> Dict[str, Any]:
    """Creates and wires up all dependencies for the application.

    This acts as the Composition Root.
    """
    dependencies: Dict[str, Any] = {}

    # 1. Load Configuration First
    load_configuration()
    log_level = resolve_level(_log_level_override or get_config("logging.level"))
    setup_logging(
        log_level=log_level,
        log_format=get_config("logging.format", DEFAULT_LOG_FORMAT),
        log_file=get_config("logging.file"),
    )
    logger.info("Configuration and logging initialized.")

    # 2. Instantiate Infrastructure Adapters
    dependencies["ui"] = ConsoleDisplay()

    # 3. Sync context (transport, rate limiter, queue, orchestrator, services)
    try:
        dependencies["context"] = get_context(ui=dependencies["ui"])
    except ConfigurationError as e:
        logger.error(f"Fatal Error during application initialization: {e}")
        dependencies["ui"].display_error(f"Application Initialization Failed: {e}")
        raise typer.Exit(code=1)

    # 4. Instantiate Command Handler
    dependencies["command_handler"] = CommandHandler(
        context=dependencies["context"],
        ui=dependencies["ui"],
    )
    logger.info("All dependencies initialized successfully.")
    return dependencies


# --- Get Wired-up Dependencies ---
# Built on first command so `--help` works without a configured token
_dependencies: Optional[Dict[str, Any]] = None


def get_dependencies() -> Dict[str, Any]:
    global _dependencies
    if _dependencies is None:
        _dependencies = create_dependencies()
    return _dependencies


def get_handler() -> CommandHandler:
    return get_dependencies()["command_handler"]


# --- Typer App Definition ---
app = typer.Typer(
    name="pinsync",
    help=f"pinsync v{__version__}: Rate-limited bookmark sync with a local snapshot cache.",
    add_completion=False,
)


# --- Helper for Running Async Commands ---
def run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    """Runs an async command handler from a sync Typer command."""
    try:
        return asyncio.run(coro)
    except RuntimeError as e:
        logger.error(f"RuntimeError running async command: {e}", exc_info=True)
        get_dependencies()["ui"].display_error(f"Async execution error: {e}")
        raise typer.Exit(code=1)


def _exit_on_failure(ok: bool) -> None:
    if not ok:
        raise typer.Exit(code=1)


def _run_batch(action: str, urls: List[str], tags: Optional[List[str]] = None) -> None:
    result = run_async(get_handler().handle_batch(action, urls, tags))
    if result is None or result["failed"]:
        raise typer.Exit(code=1)


# --- CLI Commands ---

UrlsArgument = Annotated[List[str], typer.Argument(help="URLs of the bookmarks to change.")]
TagsOption = Annotated[
    List[str],
    typer.Option("--tag", "-t", help="Tag to apply; repeat for several tags."),
]


@app.command(name="list")
def list_command(
    refresh: Annotated[bool, typer.Option("--refresh", "-r", help="Ask the server even if bookmarks are loaded.")] = False,
    tag: Annotated[Optional[str], typer.Option("--tag", "-t", help="Only show bookmarks with this tag.")] = None,
    unread: Annotated[bool, typer.Option("--unread", help="Only show unread bookmarks.")] = False,
    limit: Annotated[Optional[int], typer.Option("--limit", "-n", min=1, help="Show at most this many.")] = None,
):
    """List bookmarks, newest first."""
    _exit_on_failure(get_handler().handle_list(refresh=refresh, tag=tag, unread_only=unread, limit=limit))


@app.command()
def tags():
    """Show every tag with the number of bookmarks carrying it."""
    _exit_on_failure(get_handler().handle_tags())


@app.command()
def tag(urls: UrlsArgument, tag: TagsOption):
    """Add tags to bookmarks."""
    _run_batch("tag", urls, tag)


@app.command()
def untag(urls: UrlsArgument, tag: TagsOption):
    """Remove tags from bookmarks."""
    _run_batch("untag", urls, tag)


@app.command(name="mark-read")
def mark_read(urls: UrlsArgument):
    """Mark bookmarks as read."""
    _run_batch("mark-read", urls)


@app.command(name="mark-unread")
def mark_unread(urls: UrlsArgument):
    """Mark bookmarks as unread."""
    _run_batch("mark-unread", urls)


@app.command()
def share(urls: UrlsArgument):
    """Make bookmarks public."""
    _run_batch("share", urls)


@app.command()
def unshare(urls: UrlsArgument):
    """Make bookmarks private."""
    _run_batch("unshare", urls)


@app.command()
def delete(urls: UrlsArgument):
    """Delete bookmarks from the server."""
    _run_batch("delete", urls)


@app.command(name="clear-cache")
def clear_cache_command():
    """Clears queued work, loaded bookmarks and the local snapshot."""
    _exit_on_failure(get_handler().handle_clear_cache())


@app.callback()
def main_callback(
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", "-l", help="Logging level (debug, info, warning, error)."),
    ] = None,
):
    """Sync bookmarks with a rate-limited bookmarking service."""
    global _log_level_override
    _log_level_override = log_level
    logger.debug(f"main_callback called, log_level={log_level}")


# --- Main Execution Guard ---

def cli_entry_point():
    """Function to be called by the script entry point in pyproject.toml."""
    try:
        app()
    finally:
        if _dependencies is not None:
            _dependencies["context"].close()


if __name__ == "__main__":
    sys.exit(cli_entry_point())
