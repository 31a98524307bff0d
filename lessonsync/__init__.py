# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""lessonsync - offline-first lesson catalog synchronization and caching.

Keeps a local, queryable copy of a remotely sourced lesson catalog, detects
catalog changes with a deterministic fingerprint, applies deltas to the
local store and serves reads through a TTL/LRU cache.
"""

__version__ = "0.1.0"
