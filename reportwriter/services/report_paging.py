"""Page-state resolution and result-window arithmetic."""

from __future__ import annotations

import math
import re
from dataclasses import dataclass

from reportwriter.services.report_errors import ReportConfigurationError

_PAGE_INDEX_RE = re.compile(r"^[+-]?[0-9]+$")
# Largest row offset sent in a LIMIT clause; fits a signed 32-bit integer.
MAX_ROW_OFFSET = 2**31 - 1


@dataclass(frozen=True)
class PageState:
    requested_index: int
    page_size: int
    window_size: int

    @property
    def offset(self) -> int:
        return (self.requested_index - 1) * self.page_size

    def with_index(self, index: int) -> PageState:
        return PageState(
            requested_index=max(index, 1),
            page_size=self.page_size,
            window_size=self.window_size,
        )


@dataclass(frozen=True)
class ResultWindow:
    total_count: int
    page_count: int
    current_index: int
    is_valid: bool

    @property
    def has_rows(self) -> bool:
        return self.total_count > 0


def validate_page_config(page_size: object, window_size: object) -> tuple[int, int]:
    for label, value in (("page_size", page_size), ("window_size", window_size)):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ReportConfigurationError(f"{label} must be a positive integer, got {value!r}")
    return page_size, window_size  # type: ignore[return-value]


def parse_page_index(raw: object) -> int:
    """Parse a raw page parameter; anything unusable is page 1."""
    if isinstance(raw, bool):
        return 1
    if isinstance(raw, int):
        return max(raw, 1)
    if not isinstance(raw, str):
        return 1
    text = raw.strip()
    if not _PAGE_INDEX_RE.match(text):
        return 1
    # Too long for int() to be worth it, and past any usable offset anyway.
    if len(text.lstrip("+-").lstrip("0")) > 18:
        return 1 if text.startswith("-") else MAX_ROW_OFFSET
    return max(int(text), 1)


def max_page_index(page_size: int) -> int:
    return MAX_ROW_OFFSET // page_size + 1


def resolve_page(requested_index_raw: object, page_size: int, window_size: int) -> PageState:
    """Build the request's PageState.

    Indexes below 1 become 1. Indexes whose offset would exceed
    ``MAX_ROW_OFFSET`` are capped there; the real upper bound depends on the
    live row count and is handled by overrun recovery.
    """
    validate_page_config(page_size, window_size)
    return PageState(
        requested_index=min(parse_page_index(requested_index_raw), max_page_index(page_size)),
        page_size=page_size,
        window_size=window_size,
    )


def compute_page_count(total_count: int, page_size: int) -> int:
    if total_count <= 0:
        return 0
    return math.ceil(total_count / page_size)


def build_result_window(total_count: int, page_state: PageState) -> ResultWindow:
    total = max(int(total_count), 0)
    page_count = compute_page_count(total, page_state.page_size)
    index = page_state.requested_index
    is_valid = total == 0 or 1 <= index <= max(page_count, 1)
    return ResultWindow(
        total_count=total,
        page_count=page_count,
        current_index=index,
        is_valid=is_valid,
    )
