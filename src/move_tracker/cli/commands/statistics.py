"""Statistics command: monthly and yearly activity rollups."""

from typing import Annotated, Optional

import typer

from ...core.errors import ValidationError
from ...core.stats import StatisticsAggregator
from .. import views
from ..app import DataDirOption, UserOption, app, get_store, resolve_user


@app.command("stats")
def stats(
    year: Annotated[
        Optional[int],
        typer.Option("--year", "-y", help="Year (default: current year)"),
    ] = None,
    month: Annotated[
        Optional[int],
        typer.Option("--month", "-m", help="Month 1-12 (default: current month)"),
    ] = None,
    data_dir: DataDirOption = None,
    user: UserOption = None,
) -> None:
    """
    Show activity counts, average effort, calories and distance for a month and its year.
    """
    aggregator = StatisticsAggregator(get_store(data_dir), resolve_user(user))
    now = aggregator.clock.now()
    year = year if year is not None else now.year
    month = month if month is not None else now.month

    try:
        month_stats = aggregator.get_month_stats(year, month)
        year_stats = aggregator.get_year_stats(year)
    except ValidationError as e:
        views.print_error(str(e))
        raise typer.Exit(1)

    views.print_stats(month_stats, year_stats, year, month)
