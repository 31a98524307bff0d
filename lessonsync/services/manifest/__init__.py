# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Remote lesson manifest access.

Provides:
- ManifestClient: Async httpx client for the preferred and fallback manifests
- ManifestError, ManifestFetchError, ManifestFormatError: Error hierarchy
"""

from lessonsync.services.manifest.client import ManifestClient
from lessonsync.services.manifest.exceptions import (
    ManifestError,
    ManifestFetchError,
    ManifestFormatError,
)

__all__ = [
    "ManifestClient",
    "ManifestError",
    "ManifestFetchError",
    "ManifestFormatError",
]
