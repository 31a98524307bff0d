# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for lessonsync.

Domains:
    content: Lesson catalog caching, versioning, merging and sync.
"""
