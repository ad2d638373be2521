"""Session command: run a routine interactively, and helpers."""

from typing import Annotated, Optional

import typer

from ...core.errors import NotFoundError, ValidationError
from ...core.models import Session
from ...core.session import SessionEngine
from .. import views
from ..app import DataDirOption, UserOption, app, get_store, resolve_user


def _parse_effort(raw: str) -> int | None:
    raw = raw.strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"Effort must be a whole number, got {raw!r}") from None


def _parse_optional_number(raw: str, name: str) -> float | None:
    raw = raw.strip()
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number, got {raw!r}") from None


def _prompt_outcome(engine: SessionEngine) -> Session:
    """
    Ask for effort (required), calories and km (optional) until they validate.

    Typing x at the effort prompt exits the routine without recording it.

    Returns:
        The completed or exited session
    """
    views.console.print()
    views.console.print("[bold]Workout complete![/bold]")
    while True:
        try:
            raw_effort = views.console.input("  Effort (1-5, x to exit): ")
            if raw_effort.strip().lower() == "x":
                return engine.exit_session()
            effort = _parse_effort(raw_effort)
            calories = _parse_optional_number(
                views.console.input("  Calories (optional): "), "Calories"
            )
            km = _parse_optional_number(views.console.input("  Kilometers (optional): "), "Kilometers")
            return engine.submit_outcome(effort, calories, km)
        except ValidationError as e:
            views.print_error(str(e))


def _interactive_loop(engine: SessionEngine, session: Session) -> Session:
    """
    Drive a session from the keyboard until it leaves running/paused.

    Enter completes the current exercise, p toggles pause, x exits.
    """
    while session.state in ("running", "paused"):
        views.print_session(session)
        toggle = "resume" if session.state == "paused" else "pause"
        raw = views.console.input(
            f"[dim]\\[Enter] complete  \\[p] {toggle}  \\[x] exit[/dim] "
        ).strip().lower()

        if raw == "":
            session = engine.complete_current_exercise()
        elif raw == "p":
            session = engine.resume() if session.state == "paused" else engine.pause()
        elif raw == "x":
            if views.confirm_action("Exit without saving your progress?"):
                return engine.exit_session()
            session = engine.sync_ticks()
        else:
            views.print_error(f"Unknown command: {raw}")
            session = engine.sync_ticks()
    return session


@app.command("run")
def run_routine(
    routine_id: Annotated[str, typer.Argument(help="ID of the routine to run")],
    effort: Annotated[
        Optional[int],
        typer.Option("--effort", "-e", help="Effort 1-5, skips the effort prompt"),
    ] = None,
    calories: Annotated[
        Optional[float],
        typer.Option("--calories", "-c", help="Calories burned (optional)"),
    ] = None,
    km: Annotated[
        Optional[float],
        typer.Option("--km", "-k", help="Distance in kilometers (optional)"),
    ] = None,
    auto: Annotated[
        bool,
        typer.Option("--auto", help="Complete every exercise without prompting"),
    ] = False,
    data_dir: DataDirOption = None,
    user: UserOption = None,
) -> None:
    """
    Run a routine: step through every exercise of every series, then record statistics.
    """
    engine = SessionEngine(
        get_store(data_dir),
        resolve_user(user),
        on_persistence_error=lambda e: views.print_warning(f"Failed to save statistics: {e}"),
    )

    try:
        session = engine.start_session(routine_id)
    except (NotFoundError, ValidationError) as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    if auto:
        while session.state in ("running", "paused"):
            session = engine.complete_current_exercise()
    else:
        session = _interactive_loop(engine, session)

    if session.state == "awaiting_outcome":
        if effort is not None:
            try:
                session = engine.submit_outcome(effort, calories, km)
            except ValidationError as e:
                views.print_error(str(e))
                raise typer.Exit(1)
        else:
            session = _prompt_outcome(engine)

    if session.state == "exited":
        views.print_info("Routine exited")
        return

    if engine.last_persistence_error is None:
        views.print_success(f"Routine completed successfully! ({session.elapsed_display})")
    else:
        views.print_info(f"Routine completed ({session.elapsed_display})")
