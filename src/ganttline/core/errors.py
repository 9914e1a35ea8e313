# src/ganttline/core/errors.py

"""
Named errors raised by the timeline core.

Nothing here is fatal: every error means "the operation did not take effect"
and carries a message the presentation layer can show as-is.
"""

from __future__ import annotations


class GanttlineError(Exception):
    """Base class for all ganttline errors."""


class ValidationError(GanttlineError, ValueError):
    """Bad field values (e.g. end before start). Raised before any remote call."""


class InvalidLinkError(GanttlineError):
    """Self-loop, duplicate edge, unknown endpoint or unknown link id."""


class StoreError(GanttlineError):
    """Transport-level failure talking to the task store."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class MutationFailedError(GanttlineError):
    """A remote write failed; local state was rolled back or left unchanged."""

    def __init__(self, message: str, *, task_id: str | None = None) -> None:
        super().__init__(message)
        self.task_id = task_id


class DeletionError(MutationFailedError):
    """Remote task deletion failed; the task is still present locally."""
