"""Per-request report assembly.

Resolves sort and page state from the request parameters, runs the data
queries under overrun recovery, and packages rows, headers and the paging
table as a :class:`ReportPage`.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from reportwriter import metrics
from reportwriter.schemas.report import ReportPage
from reportwriter.services.report_errors import OverrunExhaustedError
from reportwriter.services.report_fetch import ReportFetcher
from reportwriter.services.report_overrun import (
    MAX_QUERY_ATTEMPTS,
    Reconciliation,
    run_with_overrun_recovery,
)
from reportwriter.services.report_page_list import render_page_list, render_sort_headers
from reportwriter.services.report_paging import PageState, resolve_page
from reportwriter.services.report_query import plan_query
from reportwriter.services.report_registry import ReportDefinition
from reportwriter.services.report_sorting import SortState, resolve_sort

logger = logging.getLogger(__name__)


class ReportWriter:
    def __init__(self, definition: ReportDefinition):
        self.definition = definition

    def resolve_state(self, params: Mapping[str, Any]) -> tuple[SortState, PageState]:
        definition = self.definition
        sort_state = resolve_sort(
            params.get(definition.sort_param),
            params.get(definition.direction_param),
            definition.columns,
            definition.default_sort,
        )
        page_state = resolve_page(
            params.get(definition.page_param),
            definition.page_size,
            definition.window_size,
        )
        return sort_state, page_state

    def run(self, params: Mapping[str, Any], fetcher: ReportFetcher) -> ReportPage:
        definition = self.definition
        sort_state, page_state = self.resolve_state(params)

        def _execute(page: PageState):
            fetched = fetcher(plan_query(sort_state, page, definition.columns))
            return fetched.total_count, fetched.rows

        def _on_retry(outcome: Reconciliation) -> None:
            metrics.observe_overrun_retry(definition.report_key)

        try:
            recovered = run_with_overrun_recovery(page_state, _execute, on_retry=_on_retry)
        except OverrunExhaustedError:
            metrics.observe_report(definition.report_key, "overrun_exhausted", MAX_QUERY_ATTEMPTS)
            raise

        window = recovered.window
        current_page = window.current_index if window.page_count else 1
        link_params = {key: str(value) for key, value in params.items()}
        link_params.update(
            {
                definition.sort_param: sort_state.active_key,
                definition.direction_param: sort_state.direction.token,
                definition.page_param: str(current_page),
            }
        )

        page = ReportPage(
            report_key=definition.report_key,
            title=definition.title,
            headers=render_sort_headers(
                definition.columns,
                sort_state,
                params=link_params,
                sort_param=definition.sort_param,
                direction_param=definition.direction_param,
            ),
            fields=definition.fields,
            rows=list(recovered.rows),
            paging=render_page_list(
                window,
                definition.window_size,
                params=link_params,
                page_param=definition.page_param,
                labels=definition.labels,
            ),
            total_count=window.total_count,
            page_count=window.page_count,
            current_page=current_page,
            page_size=definition.page_size,
            sort_key=sort_state.active_key,
            sort_direction=sort_state.direction.token,
            attempts=recovered.attempts,
        )
        metrics.observe_report(definition.report_key, "ok", recovered.attempts)
        logger.debug(
            "Report %s page %s/%s (%s rows, %s attempts)",
            definition.report_key,
            current_page,
            window.page_count,
            window.total_count,
            recovered.attempts,
        )
        return page
