"""Tests for the periodic task runner."""

import pytest

import asyncio

from src.helpers.periodic import MonitorState, PeriodicTask


class TestPeriodicTask:
    """Tests for PeriodicTask."""

    def test_rejects_non_positive_interval(self) -> None:
        async def tick() -> None:
            return None

        with pytest.raises(ValueError, match="interval must be positive"):
            PeriodicTask("bad", tick, 0)

    @pytest.mark.asyncio
    async def test_runs_ticks_until_stopped(self) -> None:
        ticks = 0

        async def tick() -> None:
            nonlocal ticks
            ticks += 1

        task = PeriodicTask("counter", tick, 0.01)
        assert task.state is MonitorState.IDLE

        assert task.start() is True
        await asyncio.sleep(0.06)
        await task.stop()

        assert ticks >= 2
        assert task.state is MonitorState.STOPPED
        stopped_at = ticks
        await asyncio.sleep(0.03)
        assert ticks == stopped_at

    @pytest.mark.asyncio
    async def test_failing_tick_does_not_stop_loop(self) -> None:
        ticks = 0

        async def tick() -> None:
            nonlocal ticks
            ticks += 1
            msg = "rpc unavailable"
            raise ConnectionError(msg)

        task = PeriodicTask("flaky", tick, 0.01)
        task.start()
        await asyncio.sleep(0.06)

        assert task.running
        assert ticks >= 2
        await task.stop()

    @pytest.mark.asyncio
    async def test_start_twice_is_rejected(self) -> None:
        async def tick() -> None:
            return None

        task = PeriodicTask("once", tick, 1.0)
        assert task.start() is True
        assert task.start() is False
        await task.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self) -> None:
        async def tick() -> None:
            return None

        task = PeriodicTask("idempotent", tick, 1.0)
        await task.stop()
        task.start()
        await task.stop()
        await task.stop()

        assert task.state is MonitorState.STOPPED
        assert not task.running
