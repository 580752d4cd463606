"""Central error types used across the package."""

from __future__ import annotations


class RideTrackerError(RuntimeError):
    """Base error for ride tracking failures."""


class PersistenceError(RideTrackerError):
    """Raised by repositories when a ride cannot be stored or removed."""


class RideNotFoundError(PersistenceError):
    """Raised when a repository is asked about a ride id it does not hold."""


__all__ = [
    "RideTrackerError",
    "PersistenceError",
    "RideNotFoundError",
]
