"""Rich progress display for measurement campaigns."""

from contextlib import contextmanager

from typing import TYPE_CHECKING

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)


if TYPE_CHECKING:
    from collections.abc import Iterator


NO_MEASUREMENT = "-"


def campaign_columns(*, show_time_remaining: bool = True) -> list[ProgressColumn]:
    """Spinner, network description, bar, M of N, last finality time and timing.

    The remaining-time estimate is optional: finality waits vary too much
    between transactions for it to mean much on short campaigns.
    """
    columns: list[ProgressColumn] = [
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TextColumn("•"),
        TextColumn("last {task.fields[last_finality]}"),
        TextColumn("•"),
        TimeElapsedColumn(),
    ]
    if show_time_remaining:
        columns += [TextColumn("•"), TimeRemainingColumn()]
    return columns


def create_campaign_progress(
    console: Console | None = None,
    *,
    show_time_remaining: bool = True,
    enabled: bool = True,
    expand: bool = False,
) -> Progress:
    """Create the campaign progress bar.

    Args:
        console: Rich console instance (optional)
        show_time_remaining: Whether to show the remaining-time estimate
        enabled: When False the bar renders to a quiet console
        expand: Whether to expand the progress bar to full width
    """
    if not enabled:
        console = Console(quiet=True)
    return Progress(
        *campaign_columns(show_time_remaining=show_time_remaining),
        console=console,
        expand=expand,
    )


@contextmanager
def track_progress(
    description: str,
    total: int,
    console: Console | None = None,
    *,
    show_time_remaining: bool = True,
    enabled: bool = True,
) -> Iterator[tuple[Progress, TaskID]]:
    """Context manager for tracking one network's measurements.

    The task carries a ``last_finality`` field that callers update with the
    formatted finality time of the latest measurement.

    Yields:
        Tuple of (Progress instance, TaskID) for updating progress

    Example:
        ```python
        from src.helpers.progress import track_progress

        with track_progress("sepolia finality", total=10) as (progress, task):
            for _ in range(10):
                measurement = await run_one_measurement()
                progress.update(task, advance=1, last_finality="12.41s")
        ```
    """
    progress = create_campaign_progress(
        console, show_time_remaining=show_time_remaining, enabled=enabled
    )
    with progress:
        task_id = progress.add_task(description, total=total, last_finality=NO_MEASUREMENT)
        yield progress, task_id


__all__ = [
    "NO_MEASUREMENT",
    "TaskID",
    "campaign_columns",
    "create_campaign_progress",
    "track_progress",
]
