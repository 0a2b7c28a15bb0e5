from typing import Optional


class DashboardError(Exception):
    """Base class for dashboard service errors."""


class FetchError(DashboardError):
    """Upstream metrics fetch failed (network, non-2xx or unusable body)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class TransientFetchError(FetchError):
    """Transport failure or 5xx response; the fetch may succeed if retried."""
