"""
Command Line Interface for the To-Do List Manager

Click group with the server entry point plus maintenance commands that
operate directly on the JSON store (backup, import, stats, cleanup).
"""

import logging
import multiprocessing
import socket
import sys
import webbrowser
from pathlib import Path
from typing import Optional

import click
import uvicorn

from .api import create_app
from .config import Settings, configure_logging
from .errors import NotFoundError, StorageError
from .importer import import_lists, validate_import_yaml
from .integrity import purge_orphaned_tasks
from .lists import ListRepository
from .storage import JsonFileStore
from .tasks import TaskRepository

logger = logging.getLogger(__name__)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class PortConflictError(Exception):
    """Requested server port is already bound."""


def check_port_available(host: str, port: int) -> bool:
    """True when ``host:port`` can be bound right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def ensure_port_available(host: str, port: int) -> None:
    """
    Raises:
        PortConflictError: ``port`` is already bound on ``host``
    """
    if not check_port_available(host, port):
        raise PortConflictError(f"Port {port} is already in use on {host}")


def launch_browser_safely(url: str) -> None:
    """
    Open ``url`` in a browser from a child process.

    A stuck or failing browser launch never blocks or stops the server.
    """
    try:
        process = multiprocessing.Process(target=webbrowser.open, args=(url,))
        process.start()
        process.join(timeout=2.0)
        if process.is_alive():
            process.terminate()
            logger.debug("Browser launch process timed out, terminated")
        else:
            logger.info(f"Browser launched for {url}")
    except Exception as e:
        logger.warning(f"Failed to launch browser for {url}: {e}")


def print_startup_banner(host: str, port: int, data_dir: Path) -> None:
    url = f"http://{host}:{port}"
    print("=" * 60)
    print("TO-DO LIST MANAGER STARTED")
    print("=" * 60)
    print(f"Front end:  {url}")
    print(f"REST API:   {url}/api")
    print(f"Health:     {url}/api/health")
    print(f"Storage:    {data_dir / 'storage.json'}")
    print("=" * 60)
    print("Press Ctrl+C to stop")


def _open_store(data_dir: Optional[Path]) -> JsonFileStore:
    settings = Settings.from_env(data_dir=data_dir)
    return JsonFileStore(
        settings.data_dir, strict_load=settings.strict_load, json_indent=settings.json_indent
    )


data_dir_option = click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory holding storage.json (default: $TODO_DATA_DIR or ./data)",
)


@click.group()
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), default=None,
              help="Logging level (default: $TODO_LOG_LEVEL or INFO)")
@click.pass_context
def main(ctx: click.Context, log_level: Optional[str]):
    """To-Do List Manager: JSON-file backed task lists with a REST API."""
    settings = Settings.from_env(log_level=log_level)
    configure_logging(settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = settings.log_level


@main.command()
@click.option("--host", default=None, help="Interface to bind (default: $TODO_HOST or 127.0.0.1)")
@click.option("--port", type=int, default=None, help="Port to listen on (default: $PORT or 3000)")
@data_dir_option
@click.option("--strict-load", is_flag=True, default=None,
              help="Refuse to start when storage and its backup are unreadable")
@click.option("--no-browser", is_flag=True, help="Do not open the front end in a browser")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int], data_dir: Optional[Path],
          strict_load: Optional[bool], no_browser: bool):
    """Run the REST API and front end."""
    settings = Settings.from_env(
        host=host,
        port=port,
        data_dir=data_dir,
        strict_load=strict_load or None,
        log_level=ctx.obj["log_level"],
    )

    try:
        ensure_port_available(settings.host, settings.port)
    except PortConflictError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    app = create_app(settings)
    print_startup_banner(settings.host, settings.port, settings.data_dir)
    if not no_browser:
        launch_browser_safely(f"http://{settings.host}:{settings.port}")

    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


@main.command()
@data_dir_option
def backup(data_dir: Optional[Path]):
    """Write a timestamped copy of storage.json."""
    store = _open_store(data_dir)
    try:
        backup_path = store.backup_now()
    except StorageError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    if backup_path is None:
        click.echo("No storage file exists yet; nothing to back up")
    else:
        click.echo(f"Backup created: {backup_path}")


@main.command(name="import")
@click.argument("yaml_file", type=click.Path(dir_okay=False, path_type=Path))
@data_dir_option
def import_command(yaml_file: Path, data_dir: Optional[Path]):
    """Import task lists and tasks from YAML_FILE."""
    try:
        data = validate_import_yaml(yaml_file)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    store = _open_store(data_dir)
    try:
        stats = import_lists(ListRepository(store), TaskRepository(store), data)
    except (ValueError, StorageError) as e:
        click.echo(f"Import failed: {e}", err=True)
        sys.exit(1)

    click.echo(
        f"Imported {stats['lists_created']} new list(s), reused {stats['lists_reused']}, "
        f"created {stats['tasks_created']} task(s)"
    )
    for error in stats["errors"]:
        click.echo(f"  warning: {error}", err=True)


@main.command()
@data_dir_option
@click.option("--list-id", default=None, help="Restrict statistics to one task list")
def stats(data_dir: Optional[Path], list_id: Optional[str]):
    """Print completion statistics."""
    store = _open_store(data_dir)
    try:
        task_stats = TaskRepository(store).stats(list_id)
    except (NotFoundError, StorageError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    scope = f"list {list_id}" if list_id else "all lists"
    click.echo(f"Statistics for {scope}:")
    click.echo(f"  Total:      {task_stats.total_tasks}")
    click.echo(f"  Completed:  {task_stats.completed_tasks}")
    click.echo(f"  Pending:    {task_stats.pending_tasks}")
    click.echo(f"  Completion: {task_stats.completion_rate}%")


@main.command()
@data_dir_option
def cleanup(data_dir: Optional[Path]):
    """Remove tasks whose list no longer exists."""
    try:
        removed = purge_orphaned_tasks(_open_store(data_dir))
    except StorageError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    click.echo(f"Removed {removed} orphaned task(s)")


if __name__ == "__main__":
    main()
