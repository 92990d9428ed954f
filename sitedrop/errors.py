"""Exceptions raised by sitedrop handlers.

Each error carries the HTTP status and the plain-text body it is answered
with. The app registers a single handler that turns them into responses.
"""

from __future__ import annotations


class SitedropError(Exception):
    """Base exception for sitedrop."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message)


class ConfigurationError(SitedropError):
    """No deploy key configured, or the config file is missing."""

    status_code = 500


class AuthError(SitedropError):
    """Supplied deploy key does not match."""

    status_code = 401


class BadRequestError(SitedropError):
    """Malformed request header."""

    status_code = 400


class InsufficientStorageError(SitedropError):
    """Not enough free disc space for the announced upload."""

    status_code = 507


class ExtractionError(SitedropError):
    """Upload could not be buffered or extracted."""

    status_code = 500


class ConcurrencyRejection(SitedropError):
    """Key generation is already running."""

    status_code = 401


class KeyAlreadyExistsError(ConcurrencyRejection):
    """A deploy key exists in the environment or the config file."""
