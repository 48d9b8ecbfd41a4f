"""Overrun detection and bounded recovery.

A page index is only trusted once it has been checked against a freshly
observed row count. When the index overruns the result set, the page is
clamped to the last valid page and the data query is re-issued. The result
set may keep shrinking between attempts, so the loop stops after
``MAX_QUERY_ATTEMPTS`` and raises :class:`OverrunExhaustedError`.

States: planning -> querying -> valid | overrun -> (planning) -> exhausted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

from reportwriter.services.report_errors import OverrunExhaustedError
from reportwriter.services.report_paging import PageState, ResultWindow, build_result_window

logger = logging.getLogger(__name__)

MAX_QUERY_ATTEMPTS = 3

QueryExecutor = Callable[[PageState], tuple[int, Sequence[Any]]]


@dataclass(frozen=True)
class Reconciliation:
    window: ResultWindow
    retry_page: PageState | None = None

    @property
    def needs_retry(self) -> bool:
        return self.retry_page is not None


@dataclass(frozen=True)
class RecoveredPage:
    window: ResultWindow
    page_state: PageState
    rows: Sequence[Any]
    attempts: int


def corrected_index(window: ResultWindow) -> int:
    if window.page_count >= 1:
        return min(window.current_index, window.page_count)
    return 1


def reconcile(observed_total_count: int, page_state: PageState) -> Reconciliation:
    window = build_result_window(observed_total_count, page_state)
    if window.is_valid:
        return Reconciliation(window=window)
    return Reconciliation(
        window=window,
        retry_page=page_state.with_index(corrected_index(window)),
    )


def run_with_overrun_recovery(
    page_state: PageState,
    execute: QueryExecutor,
    *,
    max_attempts: int = MAX_QUERY_ATTEMPTS,
    on_retry: Callable[[Reconciliation], None] | None = None,
) -> RecoveredPage:
    """Run ``execute`` until its observed count validates the page.

    Args:
        page_state: Page requested by the client
        execute: Runs the data query for a page, returns (total_count, rows)
        max_attempts: Total query attempts allowed, including the first
        on_retry: Called with the failed reconciliation before each re-query

    Returns:
        RecoveredPage with the valid window and its rows

    Raises:
        OverrunExhaustedError: The page was still invalid after max_attempts
    """
    current = page_state
    outcome: Reconciliation | None = None
    for attempt in range(1, max_attempts + 1):
        total_count, rows = execute(current)
        outcome = reconcile(total_count, current)
        if not outcome.needs_retry:
            return RecoveredPage(
                window=outcome.window,
                page_state=current,
                rows=rows,
                attempts=attempt,
            )
        if attempt == max_attempts:
            break
        logger.warning(
            "Page %s overruns %s pages (%s rows); retrying at page %s",
            current.requested_index,
            outcome.window.page_count,
            outcome.window.total_count,
            outcome.retry_page.requested_index,
        )
        if on_retry is not None:
            on_retry(outcome)
        current = outcome.retry_page

    logger.error(
        "Page overrun not recovered after %s attempts (last total %s)",
        max_attempts,
        outcome.window.total_count if outcome else None,
    )
    raise OverrunExhaustedError(max_attempts, outcome.window if outcome else None)
