# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the interval task scheduler."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from lessonsync.infrastructure.background import TaskScheduler


@pytest.mark.unit
class TestTaskRegistration:
    """Tests for adding, removing and rescheduling tasks."""

    def test_add_before_start(self) -> None:
        scheduler = TaskScheduler()

        task = scheduler.add_interval_task("Content Update Check", AsyncMock(), seconds=300)

        assert task.is_active is True
        assert scheduler.list_tasks() == [task]
        assert scheduler.get_task(task.id) is task
        assert scheduler.is_running is False

    @pytest.mark.parametrize("seconds", [0, -5])
    def test_rejects_non_positive_interval(self, seconds: float) -> None:
        with pytest.raises(ValueError, match="positive"):
            TaskScheduler().add_interval_task("bad", AsyncMock(), seconds=seconds)

    def test_stop_task(self) -> None:
        scheduler = TaskScheduler()
        task = scheduler.add_interval_task("check", AsyncMock(), seconds=60)

        assert task.stop() is True
        assert task.stop() is False
        assert task.is_active is False
        assert task.enabled is False

    def test_reschedule_task(self) -> None:
        scheduler = TaskScheduler()
        task = scheduler.add_interval_task("check", AsyncMock(), seconds=60)

        assert task.reschedule(120) is True
        assert task.interval == 120

    def test_reschedule_removed_task(self) -> None:
        scheduler = TaskScheduler()
        task = scheduler.add_interval_task("check", AsyncMock(), seconds=60)
        task.stop()

        assert task.reschedule(120) is False


@pytest.mark.unit
class TestTaskExecution:
    """Tests for task runs and failure accounting."""

    @pytest.mark.asyncio
    async def test_run_passes_arguments(self) -> None:
        func = AsyncMock()
        scheduler = TaskScheduler()
        task = scheduler.add_interval_task("check", func, seconds=60, args=(1,), kwargs={"force": True})

        await scheduler._execute_task(task.id)

        func.assert_awaited_once_with(1, force=True)
        assert task.run_count == 1
        assert task.last_run is not None

    @pytest.mark.asyncio
    async def test_failing_run_is_counted(self) -> None:
        scheduler = TaskScheduler()
        task = scheduler.add_interval_task("check", AsyncMock(side_effect=RuntimeError("boom")), seconds=60)

        await scheduler._execute_task(task.id)
        await scheduler._execute_task(task.id)

        assert task.run_count == 2
        assert task.error_count == 2
        stats = scheduler.get_stats()
        assert stats["total_runs"] == 2
        assert stats["total_errors"] == 2

    @pytest.mark.asyncio
    async def test_stopped_task_does_not_run(self) -> None:
        func = AsyncMock()
        scheduler = TaskScheduler()
        task = scheduler.add_interval_task("check", func, seconds=60)
        task.stop()

        await scheduler._execute_task(task.id)

        func.assert_not_awaited()


@pytest.mark.unit
class TestSchedulerLifecycle:
    """Tests for start and stop on the running loop."""

    @pytest.mark.asyncio
    async def test_start_immediately_runs_on_loop(self) -> None:
        ran = asyncio.Event()

        async def tick() -> None:
            ran.set()

        scheduler = TaskScheduler()
        await scheduler.start()
        try:
            task = scheduler.add_interval_task("tick", tick, seconds=3600, start_immediately=True)
            await asyncio.wait_for(ran.wait(), timeout=5)
        finally:
            await scheduler.stop()

        assert task.run_count == 1
        assert scheduler.is_running is False

    @pytest.mark.asyncio
    async def test_tasks_survive_restart(self) -> None:
        scheduler = TaskScheduler()
        task = scheduler.add_interval_task("check", AsyncMock(), seconds=60)

        await scheduler.start()
        await scheduler.start()
        assert scheduler.is_running is True
        assert task.reschedule(30) is True
        await scheduler.stop()
        await scheduler.stop()

        assert scheduler.get_task(task.id) is task
        assert scheduler.get_stats()["task_count"] == 1
