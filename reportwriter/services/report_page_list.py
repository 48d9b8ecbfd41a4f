"""Presentation structures for the paging table and sortable headers.

Everything here is plain data for the templating layer: link targets and
encoded query strings, never markup.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from urllib.parse import urlencode

from reportwriter.schemas.report import PageLink, PageList, SortHeader
from reportwriter.services.report_columns import ColumnSpec
from reportwriter.services.report_paging import ResultWindow
from reportwriter.services.report_sorting import SortState


@dataclass(frozen=True)
class PagingLabels:
    first: str = "First"
    prev: str = "Previous"
    next: str = "Next"
    last: str = "Last"


DEFAULT_LABELS = PagingLabels()


def link_query(
    params: Mapping[str, str] | None,
    overrides: Mapping[str, object] | None = None,
) -> str:
    """Encode ``params`` with ``overrides`` applied, keeping parameter order."""
    merged: dict[str, str] = {key: str(value) for key, value in (params or {}).items()}
    for key, value in (overrides or {}).items():
        merged[key] = str(value)
    return urlencode(merged)


def page_window_bounds(current_index: int, page_count: int, window_size: int) -> tuple[int, int]:
    """First and last page number of the numbered window, both inclusive."""
    current = min(max(current_index, 1), page_count)
    start = max(1, current - (window_size - 1) // 2)
    end = min(page_count, start + window_size - 1)
    start = max(1, end - window_size + 1)
    return start, end


def render_page_list(
    window: ResultWindow,
    window_size: int,
    *,
    params: Mapping[str, str] | None = None,
    page_param: str = "page",
    labels: PagingLabels = DEFAULT_LABELS,
) -> PageList:
    if window.page_count < 1:
        return PageList()

    page_count = window.page_count
    current = min(max(window.current_index, 1), page_count)

    def _link(label: str, target: int, kind: str, is_current: bool = False) -> PageLink:
        return PageLink(
            label=label,
            target_index=target,
            kind=kind,
            is_current=is_current,
            query=link_query(params, {page_param: target}),
        )

    has_prev = current > 1
    has_next = current < page_count
    links: list[PageLink] = []
    if has_prev:
        links.append(_link(labels.first, 1, "first"))
        links.append(_link(labels.prev, current - 1, "prev"))
    start, end = page_window_bounds(current, page_count, window_size)
    for index in range(start, end + 1):
        links.append(_link(str(index), index, "page", is_current=index == current))
    if has_next:
        links.append(_link(labels.next, current + 1, "next"))
        links.append(_link(labels.last, page_count, "last"))

    return PageList(
        page_links=links,
        has_prev=has_prev,
        has_next=has_next,
        first_index=1,
        last_index=page_count,
        prev_index=current - 1 if has_prev else None,
        next_index=current + 1 if has_next else None,
    )


def render_sort_headers(
    columns: Sequence[ColumnSpec],
    sort_state: SortState,
    *,
    params: Mapping[str, str] | None = None,
    sort_param: str = "sort",
    direction_param: str = "dir",
) -> list[SortHeader]:
    headers: list[SortHeader] = []
    for column in columns:
        is_active = column.key == sort_state.active_key
        next_direction = None
        query = None
        if column.sortable:
            next_direction = sort_state.toggled_direction_for(column.key).token
            query = link_query(params, {sort_param: column.key, direction_param: next_direction})
        headers.append(
            SortHeader(
                key=column.key,
                label=column.label,
                field_name=column.field_name,
                sortable=column.sortable,
                is_active=is_active,
                direction=sort_state.direction.token if is_active else None,
                next_direction=next_direction,
                query=query,
            )
        )
    return headers
