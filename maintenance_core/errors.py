# maintenance_core/errors.py
"""Errors raised by the maintenance engine.

Callers branch on the class: ``NoData`` means a computation had no valid
samples, which is not the same thing as a zero result.
"""


class MaintenanceError(Exception):
    def __init__(self, detail: str = ""):
        super().__init__(detail)
        self.detail = detail


class InvalidArgument(MaintenanceError, ValueError):
    """Bad input, rejected before any storage call."""


class NotFound(MaintenanceError, LookupError):
    pass


class Conflict(MaintenanceError):
    """A concurrent write won the race; the caller may retry."""


class NoData(MaintenanceError):
    pass


class Unavailable(MaintenanceError):
    """Storage timed out or failed underneath us."""
