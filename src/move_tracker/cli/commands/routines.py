"""Routine commands: routines list, routines show, routines import."""

from pathlib import Path
from typing import Annotated

import typer

from ...core.errors import NotFoundError, PersistenceError, ValidationError
from ...io.routine_loader import load_routines_from_yaml
from .. import views
from ..app import DataDirOption, UserOption, get_store, resolve_user, routines_app


@routines_app.command("list")
def list_routines(
    data_dir: DataDirOption = None,
    user: UserOption = None,
) -> None:
    """
    List all routines.
    """
    store = get_store(data_dir)
    try:
        routines = store.list_routines(resolve_user(user))
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    views.print_routines(routines)


@routines_app.command("show")
def show_routine(
    routine_id: Annotated[str, typer.Argument(help="Routine ID")],
    data_dir: DataDirOption = None,
    user: UserOption = None,
) -> None:
    """
    Show one routine and its exercises.
    """
    store = get_store(data_dir)
    try:
        routine = store.get_routine(resolve_user(user), routine_id)
    except (NotFoundError, ValidationError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)
    views.print_routine_detail(routine)


@routines_app.command("import")
def import_routines(
    file: Annotated[Path, typer.Argument(help="YAML file with one or more routines")],
    data_dir: DataDirOption = None,
    user: UserOption = None,
) -> None:
    """
    Import routines from a YAML file (existing ids are replaced).
    """
    store = get_store(data_dir)
    user_id = resolve_user(user)
    try:
        routines = load_routines_from_yaml(file)
        for routine in routines:
            store.save_routine(user_id, routine)
    except (ValidationError, PersistenceError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    for routine in routines:
        views.print_info(f"  {routine.id}: {routine.name} ({routine.type})")
    views.print_success(f"Imported {len(routines)} routine(s)")
