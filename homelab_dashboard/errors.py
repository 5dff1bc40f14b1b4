"""Error types raised by the registry and the metrics sampler."""
from __future__ import annotations


class DashboardError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(DashboardError):
    """Caller-supplied application data is missing or malformed."""


class NotFound(DashboardError):
    """No application exists with the requested id."""

    def __init__(self, app_id: str) -> None:
        super().__init__(f"application {app_id!r} not found")
        self.app_id = app_id


class StorageError(DashboardError):
    """The underlying sqlite operation failed."""


class MeasurementError(DashboardError):
    """A host resource source was unavailable during a sampling cycle."""
