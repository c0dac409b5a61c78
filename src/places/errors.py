"""Errors raised by the Places API client."""

from __future__ import annotations

from typing import Optional


class PlacesApiError(RuntimeError):
    """Base class for Places API failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class QuotaExceededError(PlacesApiError):
    """HTTP 429 or a quota rejection. Never retried."""


class TransientApiError(PlacesApiError):
    """5xx or transport failure that persisted through every retry."""


class CircuitOpenError(PlacesApiError):
    """Call refused locally because the quota circuit breaker is open."""


class MalformedResponseError(PlacesApiError):
    """Response body is not the documented shape."""
