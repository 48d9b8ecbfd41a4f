"""SQL clause planning for paged, sorted reports.

Produces the ``ORDER BY`` and ``LIMIT offset, count`` fragments for a
resolved sort/page state. No database access happens here.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from reportwriter.services.report_columns import ColumnSpec
from reportwriter.services.report_errors import ReportConfigurationError
from reportwriter.services.report_paging import PageState
from reportwriter.services.report_sorting import SortState


@dataclass(frozen=True)
class QueryPlan:
    order_by_clause: str
    limit_clause: str
    projected_fields: tuple[str, ...]

    def select_sql(self, sql_fragment: str, *, calc_found_rows: bool = False) -> str:
        """Full data query; ``sql_fragment`` starts at the FROM clause."""
        head = "SELECT SQL_CALC_FOUND_ROWS" if calc_found_rows else "SELECT"
        fields = ", ".join(self.projected_fields)
        return f"{head} {fields} {sql_fragment.strip()} {self.order_by_clause} {self.limit_clause}"


def count_sql(sql_fragment: str) -> str:
    # Wrapped so fragments carrying GROUP BY / HAVING still count result rows.
    return f"SELECT COUNT(*) FROM (SELECT 1 {sql_fragment.strip()}) AS report_rows"


def plan_query(
    sort_state: SortState,
    page_state: PageState,
    columns: Sequence[ColumnSpec],
) -> QueryPlan:
    order_column = next((column for column in columns if column.key == sort_state.active_key), None)
    if order_column is None:
        raise ReportConfigurationError(f"Sort key {sort_state.active_key!r} is not a report column")
    return QueryPlan(
        order_by_clause=f"ORDER BY {order_column.order_fragment} {sort_state.direction.value}",
        limit_clause=f"LIMIT {page_state.offset}, {page_state.page_size}",
        projected_fields=tuple(column.query_fragment for column in columns),
    )
