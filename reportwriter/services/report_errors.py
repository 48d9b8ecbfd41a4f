"""Exception taxonomy for report configuration and paging."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from reportwriter.services.report_paging import ResultWindow


class ReportError(Exception):
    """Base class for report failures."""


class ReportConfigurationError(ReportError, ValueError):
    """Raised when a report definition is invalid. Fatal at setup time."""


class OverrunExhaustedError(ReportError, RuntimeError):
    """Raised when the requested page keeps overrunning the live result set."""

    def __init__(self, attempts: int, window: ResultWindow | None = None):
        self.attempts = attempts
        self.window = window
        super().__init__(
            f"Unrecoverable page overrun after {attempts} query attempts; "
            "the result set is changing while it is being paged"
        )
