"""SQL data access for report pages."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.orm import Session

from reportwriter.services.report_query import QueryPlan, count_sql

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResult:
    total_count: int
    rows: list[dict[str, Any]] = field(default_factory=list)


class ReportFetcher(Protocol):
    def __call__(self, plan: QueryPlan) -> FetchResult: ...


def _convert_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


class SqlReportFetcher:
    """Runs a report's data and count queries on a SQLAlchemy session.

    ``count_query`` issues a separate COUNT over the fragment after each data
    query. ``found_rows`` uses MySQL's SQL_CALC_FOUND_ROWS / FOUND_ROWS()
    pair so the total comes from the same statement as the rows.
    """

    def __init__(
        self,
        db: Session,
        sql_fragment: str,
        *,
        bind_params: Mapping[str, Any] | None = None,
        count_strategy: str = "count_query",
    ):
        self.db = db
        self.sql_fragment = sql_fragment
        self.bind_params = dict(bind_params or {})
        self.count_strategy = count_strategy

    def __call__(self, plan: QueryPlan) -> FetchResult:
        calc_found_rows = self.count_strategy == "found_rows"
        statement = plan.select_sql(self.sql_fragment, calc_found_rows=calc_found_rows)
        logger.debug("Report data query: %s", statement)
        result = self.db.execute(text(statement), self.bind_params)
        rows = [
            {key: _convert_value(value) for key, value in row.items()}
            for row in result.mappings().all()
        ]

        if calc_found_rows:
            total = self.db.execute(text("SELECT FOUND_ROWS()")).scalar()
        else:
            total = self.db.execute(text(count_sql(self.sql_fragment)), self.bind_params).scalar()
        return FetchResult(total_count=int(total or 0), rows=rows)
