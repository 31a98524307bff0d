# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Infrastructure layer for lessonsync.

This package contains external service integrations:
- cache: Process-local content cache
- database: Lesson and key-value stores (in-memory and SQLAlchemy)
- background: Periodic task scheduling
"""
