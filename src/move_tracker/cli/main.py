"""
CLI entry point using Typer.

Provides commands for running routines and reviewing statistics:
- routines list / show / import: manage the routine catalogue
- run: step through a routine and record the completed session
- stats: monthly and yearly activity statistics
"""

from typing import Annotated

import typer

from . import views
from .app import app, configure_logging

# Importing the command modules registers their commands on app
from .commands import routines, sessions, statistics  # noqa: F401


@app.callback(invoke_without_command=True)
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging"),
    ] = False,
) -> None:
    """
    Routine runner and activity tracker. Run without a command for interactive mode.
    """
    configure_logging(verbose)
    if ctx.invoked_subcommand is not None:
        return  # A sub-command was given; let it handle things

    # ── Interactive main menu ───────────────────────────────────────────────
    views.console.print()
    views.console.print("[bold cyan]move-tracker[/bold cyan]: routines and activity statistics")
    views.console.print()

    menu = {
        "1": ("run",      "Run a routine"),
        "2": ("stats",    "Show statistics"),
        "3": ("routines", "List routines"),
        "0": ("quit",     "Quit"),
    }

    for key, (_, desc) in menu.items():
        views.console.print(f"  \\[{key}] {desc}")

    views.console.print()
    choice = views.console.input("Choose [1]: ").strip() or "1"

    if choice == "0":
        raise typer.Exit(0)

    chosen = menu.get(choice, (None, None))[0]
    if chosen is None:
        views.print_error(f"Unknown choice: {choice}")
        raise typer.Exit(1)

    if chosen == "run":
        ctx.invoke(routines.list_routines)
        routine_id = views.console.input("Routine ID: ").strip()
        if not routine_id:
            views.print_info("Cancelled.")
            return
        ctx.invoke(sessions.run_routine, routine_id=routine_id)
    elif chosen == "stats":
        ctx.invoke(statistics.stats)
    else:
        ctx.invoke(routines.list_routines)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
