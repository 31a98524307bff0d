# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background scheduling for periodic content work."""

from lessonsync.infrastructure.background.scheduler import ScheduledTask, TaskScheduler

__all__ = ["ScheduledTask", "TaskScheduler"]
