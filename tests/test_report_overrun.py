import logging

import pytest

from reportwriter.services.report_errors import OverrunExhaustedError
from reportwriter.services.report_overrun import (
    MAX_QUERY_ATTEMPTS,
    reconcile,
    run_with_overrun_recovery,
)
from reportwriter.services.report_paging import PageState


def _page(index: int, page_size: int = 10) -> PageState:
    return PageState(requested_index=index, page_size=page_size, window_size=5)


class _Executor:
    """Answers each attempt with the next scripted total."""

    def __init__(self, *totals: int):
        self.totals = list(totals)
        self.requested: list[int] = []

    def __call__(self, page_state: PageState):
        total = self.totals[min(len(self.requested), len(self.totals) - 1)]
        self.requested.append(page_state.requested_index)
        remaining = max(total - page_state.offset, 0)
        return total, ["row"] * min(remaining, page_state.page_size)


def test_reconcile_valid_page_needs_no_retry():
    outcome = reconcile(25, _page(3))

    assert outcome.needs_retry is False
    assert outcome.window.is_valid is True
    assert outcome.window.page_count == 3


def test_reconcile_overrun_clamps_to_last_page():
    outcome = reconcile(25, _page(9))

    assert outcome.window.is_valid is False
    assert outcome.retry_page == _page(3)


def test_reconcile_empty_result_is_valid():
    outcome = reconcile(0, _page(5))

    assert outcome.needs_retry is False
    assert outcome.window.is_valid is True
    assert outcome.window.page_count == 0


def test_last_page_holds_remaining_rows():
    executor = _Executor(25)

    recovered = run_with_overrun_recovery(_page(3), executor)

    assert recovered.window.is_valid is True
    assert recovered.attempts == 1
    assert len(recovered.rows) == 5


def test_overrun_recovers_after_one_retry():
    executor = _Executor(25)

    recovered = run_with_overrun_recovery(_page(9), executor)

    assert executor.requested == [9, 3]
    assert recovered.attempts == 2
    assert recovered.page_state.requested_index == 3
    assert recovered.window.current_index == 3
    assert recovered.window.is_valid is True
    assert len(recovered.rows) == 5


def test_empty_result_returns_immediately_without_retry():
    executor = _Executor(0)

    recovered = run_with_overrun_recovery(_page(5), executor)

    assert executor.requested == [5]
    assert recovered.rows == []
    assert recovered.window.is_valid is True


def test_result_shrinking_between_attempts_recovers_on_third_attempt():
    executor = _Executor(25, 15)

    recovered = run_with_overrun_recovery(_page(9), executor)

    assert executor.requested == [9, 3, 2]
    assert recovered.attempts == 3
    assert recovered.window.current_index == 2


def test_three_successive_overruns_raise_exhaustion(caplog):
    executor = _Executor(25, 15, 5)

    with caplog.at_level(logging.WARNING, logger="reportwriter.services.report_overrun"):
        with pytest.raises(OverrunExhaustedError) as exc:
            run_with_overrun_recovery(_page(9), executor)

    assert executor.requested == [9, 3, 2]
    assert len(executor.requested) == MAX_QUERY_ATTEMPTS
    assert exc.value.attempts == MAX_QUERY_ATTEMPTS
    assert exc.value.window.total_count == 5
    assert any(record.levelno == logging.ERROR for record in caplog.records)


def test_on_retry_is_called_once_per_corrective_requery():
    seen = []
    executor = _Executor(25, 15, 5)

    with pytest.raises(OverrunExhaustedError):
        run_with_overrun_recovery(_page(9), executor, on_retry=seen.append)

    assert len(seen) == MAX_QUERY_ATTEMPTS - 1
    assert [outcome.retry_page.requested_index for outcome in seen] == [3, 2]
