"""Nanosecond-resolution timing and timing statistics."""

import asyncio
import math
import statistics
import time

from datetime import UTC, datetime

from typing import TYPE_CHECKING, Any, Protocol

from pydantic import BaseModel, Field


if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable


NS_PER_MS = 1_000_000
NS_PER_SECOND = 1_000_000_000
MEV_IMPACT_DELTA = 10


class ScoreSource(Protocol):
    """Anything exposing a current 0-100 MEV score."""

    def get_current_score(self) -> int: ...


class TimedResult(BaseModel):
    """Result of a timed coroutine."""

    result: Any = None
    elapsed_ms: float
    elapsed_ns: int


class MevTimedResult(TimedResult):
    """Timed result annotated with the MEV score movement during the call."""

    mev_score_start: int = 0
    mev_score_end: int = 0
    mev_delta: int = 0
    mev_impact: bool = False


class TimingStats(BaseModel):
    """Summary statistics over a set of durations in milliseconds."""

    iterations: int
    times: list[float] = Field(default_factory=list)
    min: float = 0.0
    max: float = 0.0
    median: float = 0.0
    mean: float = 0.0
    p90: float = 0.0
    p95: float = 0.0
    p99: float = 0.0


class Lap(BaseModel):
    elapsed_ms: float
    formatted: str
    timestamp: datetime


def now() -> int:
    """Monotonic counter in nanoseconds."""
    return time.perf_counter_ns()


def elapsed_ms(start: int, end: int | None = None) -> float:
    """Milliseconds between two :func:`now` readings (``end`` defaults to now)."""
    return ((now() if end is None else end) - start) / NS_PER_MS


def elapsed_seconds(start: int, end: int | None = None) -> float:
    return ((now() if end is None else end) - start) / NS_PER_SECOND


async def monotonic(fn: Callable[[], Awaitable[Any]]) -> TimedResult:
    """Await ``fn()`` and report how long it took.

    Example:
        ```python
        timed = await monotonic(lambda: client.get_block_number())
        print(timed.result, format_timing(timed.elapsed_ms))
        ```
    """
    start = now()
    result = await fn()
    elapsed = now() - start
    return TimedResult(result=result, elapsed_ms=elapsed / NS_PER_MS, elapsed_ns=elapsed)


async def mev_aware(
    fn: Callable[[], Awaitable[Any]], monitor: ScoreSource | None = None
) -> MevTimedResult:
    """Time ``fn()`` and sample the MEV score before and after it.

    ``mev_impact`` is set when the score moved by more than 10 points while
    the operation was in flight. Without a monitor both samples are 0.
    """
    start = now()
    score_start = monitor.get_current_score() if monitor else 0
    result = await fn()
    elapsed = now() - start
    score_end = monitor.get_current_score() if monitor else 0
    delta = score_end - score_start
    return MevTimedResult(
        result=result,
        elapsed_ms=elapsed / NS_PER_MS,
        elapsed_ns=elapsed,
        mev_score_start=score_start,
        mev_score_end=score_end,
        mev_delta=delta,
        mev_impact=abs(delta) > MEV_IMPACT_DELTA,
    )


def percentile(values: list[float], p: float) -> float:
    """Nearest-rank percentile of ``values`` (0 for an empty list).

    Example:
        >>> percentile([1.0, 2.0, 3.0, 4.0], 50)
        2.0
    """
    if not values:
        return 0.0
    ordered = sorted(values)
    rank = math.ceil(p / 100 * len(ordered)) - 1
    return ordered[min(max(rank, 0), len(ordered) - 1)]


def summarize(times: list[float]) -> TimingStats:
    """Summarize durations (ms). An empty list yields an all-zero summary."""
    ordered = sorted(times)
    if not ordered:
        return TimingStats(iterations=0)
    return TimingStats(
        iterations=len(ordered),
        times=ordered,
        min=ordered[0],
        max=ordered[-1],
        median=statistics.median(ordered),
        mean=statistics.fmean(ordered),
        p90=percentile(ordered, 90),
        p95=percentile(ordered, 95),
        p99=percentile(ordered, 99),
    )


async def benchmark(
    fn: Callable[[], Awaitable[Any]], iterations: int = 1
) -> TimingStats:
    """Run ``fn`` sequentially ``iterations`` times and summarize the timings."""
    if iterations < 1:
        msg = f"iterations must be at least 1, got {iterations}"
        raise ValueError(msg)

    times = [(await monotonic(fn)).elapsed_ms for _ in range(iterations)]
    return summarize(times)


def format_timing(ms: float) -> str:
    """Human readable duration.

    Example:
        >>> format_timing(12.345)
        '12.35ms'
        >>> format_timing(1234.5)
        '1.23s'
        >>> format_timing(123450)
        '2m 3.45s'
    """
    if ms < 1000:
        return f"{ms:.2f}ms"
    if ms < 60_000:
        return f"{ms / 1000:.2f}s"
    minutes = int(ms // 60_000)
    return f"{minutes}m {(ms % 60_000) / 1000:.2f}s"


async def sleep(ms: float) -> None:
    """Cooperative sleep for ``ms`` milliseconds."""
    await asyncio.sleep(max(ms, 0) / 1000)


class Stopwatch:
    """Continuous timer started on construction."""

    def __init__(self) -> None:
        self._start = now()

    def elapsed(self) -> float:
        return elapsed_ms(self._start)

    def elapsed_formatted(self) -> str:
        return format_timing(self.elapsed())

    def lap(self) -> Lap:
        current = self.elapsed()
        return Lap(
            elapsed_ms=current, formatted=format_timing(current), timestamp=datetime.now(UTC)
        )

    def reset(self) -> None:
        self._start = now()


class RateLimiter:
    """Spaces successive ``acquire()`` calls at least 1/ops seconds apart."""

    def __init__(self, operations_per_second: float) -> None:
        if operations_per_second <= 0:
            msg = f"operations_per_second must be positive, got {operations_per_second}"
            raise ValueError(msg)
        self.interval_ms = 1000 / operations_per_second
        self._last: int | None = None

    async def acquire(self) -> None:
        if self._last is not None:
            waited = elapsed_ms(self._last)
            if waited < self.interval_ms:
                await sleep(self.interval_ms - waited)
        self._last = now()


__all__ = [
    "Lap",
    "MevTimedResult",
    "RateLimiter",
    "ScoreSource",
    "Stopwatch",
    "TimedResult",
    "TimingStats",
    "benchmark",
    "elapsed_ms",
    "elapsed_seconds",
    "format_timing",
    "mev_aware",
    "monotonic",
    "now",
    "percentile",
    "sleep",
    "summarize",
]
