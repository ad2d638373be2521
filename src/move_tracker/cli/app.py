"""Shared Typer app object, shared option types, store and logging utilities."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.logging import RichHandler

from ..core.config_loader import load_settings
from ..io.document_store import JsonDocumentStore, get_default_data_dir

# Shared --data-dir option type used across all commands
DataDirOption = Annotated[
    Optional[Path],
    typer.Option("--data-dir", help="Data directory (default: ~/.move-tracker)"),
]

# Shared --user option type used across all commands
UserOption = Annotated[
    Optional[str],
    typer.Option("--user", "-u", help="User id whose routines and statistics to use"),
]

app = typer.Typer(
    name="move-tracker",
    help="Run stretch, workout, running and sports routines and track monthly statistics.",
    no_args_is_help=False,
    invoke_without_command=True,
)

routines_app = typer.Typer(help="List, show and import routines.", no_args_is_help=True)
app.add_typer(routines_app, name="routines")


def get_store(data_dir: Path | None) -> JsonDocumentStore:
    """Get a document store at data_dir, the configured data_dir, or the default location."""
    if data_dir is None:
        configured = load_settings().get("data_dir")
        data_dir = Path(configured) if configured else get_default_data_dir()
    return JsonDocumentStore(data_dir)


def resolve_user(user: str | None) -> str:
    """Return the explicit user id, else the configured one."""
    if user:
        return user
    return str(load_settings()["user_id"])


def configure_logging(verbose: bool = False) -> None:
    """Route library logging through Rich at the configured level."""
    level_name = "DEBUG" if verbose else str(load_settings().get("log_level", "WARNING")).upper()
    level = logging.getLevelName(level_name)
    if not isinstance(level, int):
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
