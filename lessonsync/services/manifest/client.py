# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Async HTTP client for remote lesson manifests.

A manifest is a JSON array of lesson records published at a fixed path.
Two manifests exist: a preferred, curated one and a fallback one. Records
are validated one by one; invalid records are skipped, a body that is not
an array is an error.

Example:
    client = ManifestClient(settings.manifest)

    try:
        lessons = await client.fetch_preferred()
    except ManifestFetchError:
        lessons = await client.fetch_fallback()

    await client.close()
"""

import logging
from typing import TYPE_CHECKING, Any

import httpx

from lessonsync.domains.content.validation import validate_lessons
from lessonsync.services.manifest.exceptions import (
    ManifestError,
    ManifestFetchError,
    ManifestFormatError,
)

if TYPE_CHECKING:
    from lessonsync.core.config.settings import ManifestSettings
    from lessonsync.domains.content.models import Lesson

logger = logging.getLogger(__name__)


class ManifestClient:
    """Async client for the preferred and fallback lesson manifests.

    Attributes:
        preferred_path: Path of the preferred manifest.
        fallback_path: Path of the fallback manifest.
    """

    def __init__(
        self,
        settings: "ManifestSettings",
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """Initialize the manifest client.

        Args:
            settings: Manifest settings (base URL, paths, timeout).
            client: Optional preconfigured HTTP client; not closed by close().
            transport: Optional transport for a client created here.
        """
        self.preferred_path = settings.preferred_path
        self.fallback_path = settings.fallback_path
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def close(self) -> None:
        """Close the HTTP client if it was created here."""
        if self._owns_client:
            await self._client.aclose()

    async def fetch_json_array(self, url: str) -> list[Any]:
        """Fetch a URL and decode its body as a JSON array.

        Args:
            url: Absolute URL or path relative to the base URL.

        Returns:
            The decoded array.

        Raises:
            ManifestFetchError: If the host is unreachable or answers non-2xx.
            ManifestFormatError: If the body is not a JSON array.
        """
        try:
            response = await self._client.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Manifest request failed: %s -> %d", url, e.response.status_code
            )
            raise ManifestFetchError(
                f"Manifest request failed: {e.response.reason_phrase}",
                url=url,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.warning("Manifest host unreachable: %s (%s)", url, e)
            raise ManifestFetchError(
                f"Failed to fetch manifest: {e}",
                url=url,
                details={"error_type": type(e).__name__},
            ) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ManifestFormatError(
                "Manifest body is not valid JSON", details={"url": url}
            ) from e

        if not isinstance(data, list):
            raise ManifestFormatError(
                "Manifest body is not an array",
                details={"url": url, "type": type(data).__name__},
            )
        return data

    async def fetch_lessons(self, path: str) -> list["Lesson"]:
        """Fetch a manifest and keep its valid lesson records.

        Args:
            path: Manifest path or URL.

        Returns:
            Valid lessons in manifest order.

        Raises:
            ManifestFetchError: If the manifest cannot be retrieved.
            ManifestFormatError: If the manifest is not an array.
        """
        data = await self.fetch_json_array(path)
        lessons = validate_lessons(data)
        logger.info("Loaded %d lessons from %s", len(lessons), path)
        return lessons

    async def fetch_preferred(self) -> list["Lesson"]:
        """Fetch the preferred manifest."""
        return await self.fetch_lessons(self.preferred_path)

    async def fetch_fallback(self) -> list["Lesson"]:
        """Fetch the fallback manifest."""
        return await self.fetch_lessons(self.fallback_path)

    async def fetch_all_sources(self) -> tuple[list["Lesson"], list["Lesson"], int]:
        """Fetch both manifests, tolerating failure of either.

        Returns:
            Tuple of (preferred lessons, fallback lessons, failed source count).
            A failed source contributes an empty list.
        """
        results: list[list["Lesson"]] = []
        failures = 0
        for path in (self.preferred_path, self.fallback_path):
            try:
                results.append(await self.fetch_lessons(path))
            except ManifestError as e:
                logger.warning("Failed to load manifest %s: %s", path, e)
                results.append([])
                failures += 1
        return results[0], results[1], failures
