# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Custom exceptions for the manifest service.

This module defines the exception hierarchy for remote manifest access:
- ManifestError: Base exception for all manifest-related errors
- ManifestFetchError: The manifest could not be retrieved (network, non-2xx)
- ManifestFormatError: The manifest was retrieved but is not a JSON array
"""


class ManifestError(Exception):
    """Base exception for all manifest-related errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional error context.
    """

    def __init__(self, message: str, details: dict | None = None):
        """Initialize manifest error.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional error context.
        """
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation with details if available."""
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class ManifestFetchError(ManifestError):
    """The manifest host was unreachable or answered with an error status.

    These failures are transient and safe to retry.

    Attributes:
        url: The requested URL.
        status_code: HTTP status code, None for transport failures.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        """Initialize manifest fetch error.

        Args:
            message: Human-readable error description.
            url: The requested URL.
            status_code: HTTP status code, None for transport failures.
            details: Optional dictionary with additional error context.
        """
        self.url = url
        self.status_code = status_code
        super().__init__(message, details)

    def __str__(self) -> str:
        """Return string representation with status code."""
        base = f"{self.message}"
        if self.status_code:
            base = f"[{self.status_code}] {base}"
        if self.url:
            base = f"{base} ({self.url})"
        if self.details:
            base = f"{base} - Details: {self.details}"
        return base


class ManifestFormatError(ManifestError):
    """The manifest body is not valid JSON or not a JSON array.

    Retrying does not help; the published file itself is wrong.
    """

    pass
