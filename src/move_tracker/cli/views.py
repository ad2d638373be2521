"""
CLI view formatters using Rich for pretty console output.

Handles the live session panel, routine tables and statistics tables.
"""

import calendar

from rich.console import Console, Group
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from rich.text import Text

from ..core.config import ACTIVITY_TYPES
from ..core.models import Routine, Session, StatTotals
from ..core.stats import average_effort

console = Console()

TYPE_STYLES: dict[str, str] = {
    "stretch": "blue",
    "workout": "red",
    "running": "green",
    "sports": "magenta",
}

STATE_LABELS: dict[str, str] = {
    "running": "[green]running[/green]",
    "paused": "[yellow]paused[/yellow]",
    "awaiting_outcome": "[cyan]finished - awaiting stats[/cyan]",
    "completed": "[bold green]completed[/bold green]",
    "exited": "[dim]exited[/dim]",
}


def _type_cell(activity_type: str) -> str:
    style = TYPE_STYLES.get(activity_type, "white")
    return f"[{style}]{activity_type}[/{style}]"


def format_routine_table(routines: list[Routine]) -> Table:
    """
    Create a Rich table listing routines.

    Args:
        routines: Routines to display

    Returns:
        Rich Table object
    """
    table = Table(title="Routines")

    table.add_column("ID", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Type")
    table.add_column("Series", justify="right")
    table.add_column("Exercises", justify="right")

    for routine in routines:
        table.add_row(
            routine.id,
            routine.name,
            _type_cell(routine.type),
            str(routine.series_count),
            str(routine.exercise_count),
        )

    return table


def print_routines(routines: list[Routine]) -> None:
    """Print the routine list, or a hint when there is none."""
    if not routines:
        console.print("[yellow]No routines yet. Import some with 'routines import'.[/yellow]")
        return
    console.print(format_routine_table(routines))


def print_routine_detail(routine: Routine) -> None:
    """Print one routine with its exercise list."""
    console.print(
        f"[bold]{routine.name}[/bold]  {_type_cell(routine.type)}"
        f"  [dim]{routine.series_count} series[/dim]"
    )
    table = Table(show_header=True, header_style="dim")
    table.add_column("#", justify="right", style="dim", width=3)
    table.add_column("Exercise", style="bold")
    table.add_column("Repetitions")
    table.add_column("Image", style="dim")
    for i, exercise in enumerate(routine.exercises, 1):
        table.add_row(
            str(i),
            exercise.name,
            exercise.repetitions_label or "-",
            exercise.image_ref or "",
        )
    console.print(table)


def render_session(session: Session) -> Panel:
    """
    Build the live session panel.

    Shows elapsed time, state, position (exercise i of n, series s of S),
    a progress bar and the current exercise.
    """
    routine = session.routine
    exercise = session.current_exercise

    header = Text.from_markup(
        f"[bold]{session.elapsed_display}[/bold]   {STATE_LABELS[session.state]}"
    )
    position = Table.grid(expand=True)
    position.add_column()
    position.add_column(justify="right")
    position.add_row(
        f"Exercise {session.current_exercise_index + 1} of {routine.exercise_count}",
        f"Series {session.current_series} of {routine.series_count}",
    )
    bar = ProgressBar(total=1.0, completed=session.progress)

    body = [header, position, bar, Text()]
    body.append(Text(exercise.name, style="bold"))
    if exercise.repetitions_label:
        body.append(Text(exercise.repetitions_label))
    if exercise.image_ref:
        body.append(Text(exercise.image_ref, style="dim"))

    return Panel(Group(*body), title=routine.name, subtitle=routine.type)


def print_session(session: Session) -> None:
    console.print(render_session(session))


def format_stats_table(month: StatTotals, year: StatTotals, month_label: str, year_label: str) -> Table:
    """
    Create a side-by-side month / year statistics table.

    Args:
        month: Totals for the selected month
        year: Totals for the selected year
        month_label: Column header for the month (e.g. "Mar 2026")
        year_label: Column header for the year

    Returns:
        Rich Table object
    """
    table = Table(title="Activity Statistics")

    table.add_column("", style="bold")
    table.add_column(month_label, justify="right")
    table.add_column(year_label, justify="right")

    for activity_type in ACTIVITY_TYPES:
        table.add_row(
            _type_cell(activity_type),
            str(month.count_for(activity_type)),
            str(year.count_for(activity_type)),
        )
    table.add_section()
    table.add_row("Avg effort", f"{average_effort(month.effort_samples)}/5", f"{average_effort(year.effort_samples)}/5")
    table.add_row("Calories", f"{month.calories_total:.0f}", f"{year.calories_total:.0f}")
    table.add_row("Distance", f"{month.distance_km_total:.1f} km", f"{year.distance_km_total:.1f} km")

    return table


def print_stats(month: StatTotals, year: StatTotals, year_number: int, month_number: int) -> None:
    """Print month and year statistics."""
    month_label = f"{calendar.month_abbr[month_number]} {year_number}"
    console.print(format_stats_table(month, year, month_label, str(year_number)))


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[green]{message}[/green]")


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[red]Error: {message}[/red]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[yellow]Warning: {message}[/yellow]")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[blue]{message}[/blue]")


def confirm_action(message: str) -> bool:
    """
    Prompt user for confirmation.

    Args:
        message: Confirmation message

    Returns:
        True if confirmed, False otherwise
    """
    response = console.input(f"{message} [y/N]: ")
    return response.lower() in ("y", "yes")
