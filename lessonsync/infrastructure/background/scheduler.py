# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scheduler for periodic content tasks.

Uses APScheduler's AsyncIOScheduler so periodic coroutines run on the same
event loop as the rest of the engine. Every task is represented by a
ScheduledTask handle that can be stopped or rescheduled.

Example:
    from lessonsync.infrastructure.background.scheduler import TaskScheduler

    scheduler = TaskScheduler()
    await scheduler.start()

    task = scheduler.add_interval_task(
        name="Content Update Check",
        func=access_layer.check_for_content_updates,
        seconds=300,
    )

    task.reschedule(seconds=600)
    task.stop()

    await scheduler.stop()
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable
from uuid import uuid4

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

TaskFunc = Callable[..., Awaitable[Any]]


@dataclass
class ScheduledTask:
    """A periodic task registered with a TaskScheduler.

    Attributes:
        id: Unique task identifier.
        name: Human-readable task name.
        func: Coroutine function called on every tick.
        interval: Seconds between runs.
        args: Positional arguments for func.
        kwargs: Keyword arguments for func.
        enabled: Whether the task is enabled.
        last_run: Last run timestamp.
        run_count: Total number of runs.
        error_count: Number of failed runs.
    """

    name: str
    func: TaskFunc
    interval: float
    args: tuple = field(default_factory=tuple)
    kwargs: dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid4()))
    enabled: bool = True
    last_run: datetime | None = None
    run_count: int = 0
    error_count: int = 0
    scheduler: "TaskScheduler | None" = field(default=None, repr=False, compare=False)

    @property
    def is_active(self) -> bool:
        """Check whether the task is still registered with its scheduler."""
        return self.scheduler is not None and self.scheduler.get_task(self.id) is self

    def stop(self) -> bool:
        """Remove the task from its scheduler.

        Returns:
            True if the task was registered and is now removed.
        """
        if self.scheduler is None:
            return False
        return self.scheduler.remove_task(self.id)

    def reschedule(self, seconds: float) -> bool:
        """Change the interval of the task.

        Args:
            seconds: New interval in seconds.

        Returns:
            True if the task was registered and is now rescheduled.
        """
        if self.scheduler is None:
            return False
        return self.scheduler.reschedule_task(self.id, seconds)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "interval": self.interval,
            "enabled": self.enabled,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "run_count": self.run_count,
            "error_count": self.error_count,
        }


class TaskScheduler:
    """Interval scheduler for coroutine tasks.

    Tasks may be added before start(); they are handed to APScheduler when
    the scheduler starts. A failing run is counted and logged, it never
    stops the task.

    Attributes:
        _scheduler: APScheduler instance, None while stopped.
        _tasks: Registered tasks by id.
        _running: Whether scheduler is running.
    """

    def __init__(self) -> None:
        """Initialize the scheduler."""
        self._scheduler: AsyncIOScheduler | None = None
        self._tasks: dict[str, ScheduledTask] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        """Check if scheduler is running."""
        return self._running

    def add_interval_task(
        self,
        name: str,
        func: TaskFunc,
        seconds: float,
        args: tuple = (),
        kwargs: dict[str, Any] | None = None,
        start_immediately: bool = False,
    ) -> ScheduledTask:
        """Add an interval-scheduled task.

        Args:
            name: Task name.
            func: Coroutine function to call.
            seconds: Interval seconds.
            args: Positional arguments for func.
            kwargs: Keyword arguments for func.
            start_immediately: Run once as soon as the scheduler runs.

        Returns:
            Created ScheduledTask.

        Raises:
            ValueError: If the interval is not positive.
        """
        if seconds <= 0:
            raise ValueError(f"Interval must be positive, got {seconds}")

        task = ScheduledTask(
            name=name,
            func=func,
            interval=seconds,
            args=args,
            kwargs=kwargs or {},
            scheduler=self,
        )
        self._tasks[task.id] = task

        if self._scheduler is not None:
            self._add_job(task, start_immediately)

        logger.info("Added interval task: %s (every %ss)", name, seconds)
        return task

    def _add_job(self, task: ScheduledTask, start_immediately: bool = False) -> None:
        next_run = datetime.now(timezone.utc) if start_immediately else None
        job_kwargs: dict[str, Any] = {}
        if next_run is not None:
            job_kwargs["next_run_time"] = next_run

        self._scheduler.add_job(
            self._execute_task,
            trigger=IntervalTrigger(seconds=task.interval),
            args=[task.id],
            id=task.id,
            name=task.name,
            replace_existing=True,
            **job_kwargs,
        )

    async def _execute_task(self, task_id: str) -> None:
        """Execute a scheduled task.

        Args:
            task_id: ID of the task to execute.
        """
        task = self._tasks.get(task_id)
        if not task or not task.enabled:
            return

        logger.debug("Executing scheduled task: %s", task.name)

        try:
            await task.func(*task.args, **task.kwargs)
        except Exception as e:
            task.error_count += 1
            logger.error("Scheduled task %s failed: %s", task.name, str(e))
        finally:
            task.last_run = datetime.now(timezone.utc)
            task.run_count += 1

    def remove_task(self, task_id: str) -> bool:
        """Remove a scheduled task.

        Args:
            task_id: Task ID to remove.

        Returns:
            True if removed.
        """
        task = self._tasks.pop(task_id, None)
        if task is None:
            return False

        task.enabled = False
        if self._scheduler is not None:
            try:
                self._scheduler.remove_job(task_id)
            except JobLookupError:
                logger.debug("Job %s already gone from scheduler", task_id)

        logger.info("Removed scheduled task: %s", task.name)
        return True

    def reschedule_task(self, task_id: str, seconds: float) -> bool:
        """Change the interval of a scheduled task.

        Args:
            task_id: Task ID to reschedule.
            seconds: New interval in seconds.

        Returns:
            True if rescheduled.

        Raises:
            ValueError: If the interval is not positive.
        """
        if seconds <= 0:
            raise ValueError(f"Interval must be positive, got {seconds}")

        task = self._tasks.get(task_id)
        if task is None:
            return False

        task.interval = seconds
        if self._scheduler is not None:
            self._scheduler.reschedule_job(task_id, trigger=IntervalTrigger(seconds=seconds))

        logger.info("Rescheduled task %s (every %ss)", task.name, seconds)
        return True

    def get_task(self, task_id: str) -> ScheduledTask | None:
        """Get a scheduled task by ID."""
        return self._tasks.get(task_id)

    def list_tasks(self) -> list[ScheduledTask]:
        """List all scheduled tasks."""
        return list(self._tasks.values())

    async def start(self) -> None:
        """Start the scheduler on the running event loop."""
        if self._running:
            return

        self._scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
        for task in self._tasks.values():
            self._add_job(task)
        self._scheduler.start()
        self._running = True

        logger.info("Task scheduler started with %d task(s)", len(self._tasks))

    async def stop(self) -> None:
        """Stop the scheduler. Registered tasks are kept for a later start()."""
        if not self._running:
            return

        if self._scheduler is not None:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("Task scheduler stopped")

    def get_stats(self) -> dict[str, Any]:
        """Get scheduler statistics.

        Returns:
            Statistics dictionary.
        """
        return {
            "is_running": self._running,
            "task_count": len(self._tasks),
            "enabled_count": sum(1 for t in self._tasks.values() if t.enabled),
            "total_runs": sum(t.run_count for t in self._tasks.values()),
            "total_errors": sum(t.error_count for t in self._tasks.values()),
            "tasks": [t.to_dict() for t in self._tasks.values()],
        }
