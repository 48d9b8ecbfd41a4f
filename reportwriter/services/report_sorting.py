"""Sort-state resolution for report requests."""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass

from reportwriter.services.report_columns import ColumnSpec, sortable_column
from reportwriter.services.report_errors import ReportConfigurationError


class SortDirection(enum.Enum):
    asc = "ASC"
    desc = "DESC"

    @property
    def token(self) -> str:
        return self.name

    def flipped(self) -> SortDirection:
        return SortDirection.desc if self is SortDirection.asc else SortDirection.asc


_DIRECTION_TOKENS = {direction.name: direction for direction in SortDirection}


@dataclass(frozen=True)
class SortState:
    active_key: str
    direction: SortDirection = SortDirection.asc

    def toggled_direction_for(self, key: str) -> SortDirection:
        """Direction a header link for ``key`` should request."""
        if key == self.active_key:
            return self.direction.flipped()
        return SortDirection.asc


def parse_direction(raw: object) -> SortDirection:
    if not isinstance(raw, str):
        return SortDirection.asc
    return _DIRECTION_TOKENS.get(raw.strip().lower(), SortDirection.asc)


def validate_default_sort(columns: Sequence[ColumnSpec], default_key: str | None) -> str:
    if not default_key:
        raise ReportConfigurationError("default_sort is required")
    if not any(column.key == default_key for column in columns):
        raise ReportConfigurationError(f"default_sort {default_key!r} is not a report column")
    if sortable_column(columns, default_key) is None:
        raise ReportConfigurationError(f"default_sort {default_key!r} is not a sortable column")
    return default_key


def resolve_sort(
    requested_key: object,
    requested_direction: object,
    columns: Sequence[ColumnSpec],
    default_key: str,
) -> SortState:
    """Resolve the request's sort key and direction.

    Unknown, empty or non-sortable keys fall back to ``default_key``; any
    direction other than asc/desc (case-insensitive) is ascending.
    """
    validate_default_sort(columns, default_key)
    key = requested_key.strip() if isinstance(requested_key, str) else None
    column = sortable_column(columns, key)
    return SortState(
        active_key=column.key if column else default_key,
        direction=parse_direction(requested_direction),
    )
