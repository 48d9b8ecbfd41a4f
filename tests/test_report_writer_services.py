from unittest.mock import MagicMock

import pytest
from sqlalchemy import delete

from reportwriter.services.report_errors import OverrunExhaustedError
from reportwriter.services.report_fetch import SqlReportFetcher
from reportwriter.services.report_paging import MAX_ROW_OFFSET
from reportwriter.services.report_registry import build_report_definition
from reportwriter.services.report_writer import ReportWriter
from tests.people_data import PEOPLE_COLUMNS, PEOPLE_COUNT, people
from tests.mocks import ScriptedFetcher


def _run(definition, db_session, **params):
    fetcher = SqlReportFetcher(db_session, definition.sql_fragment)
    return ReportWriter(definition).run(params, fetcher)


def test_first_page_sorted_by_default_column(db_session, people_report):
    page = _run(people_report, db_session)

    assert page.total_count == PEOPLE_COUNT
    assert page.page_count == 3
    assert page.current_page == 1
    assert page.sort_key == "name"
    assert page.sort_direction == "asc"
    assert page.fields == ["name", "age", "city", "joined"]
    assert [row["name"] for row in page.rows] == [f"Person {i:02d}" for i in range(10)]
    assert page.attempts == 1


def test_last_page_holds_remaining_rows(db_session, people_report):
    page = _run(people_report, db_session, page="3")

    assert len(page.rows) == 5
    assert page.paging.has_next is False
    assert page.paging.last_index == 3


def test_descending_sort_by_numeric_column(db_session, people_report):
    page = _run(people_report, db_session, sort="age", dir="DESC")

    assert page.sort_key == "age"
    assert page.sort_direction == "desc"
    assert page.rows[0]["age"] == 20 + PEOPLE_COUNT - 1


def test_formatted_column_orders_by_raw_timestamp(db_session, people_report):
    page = _run(people_report, db_session, sort="joined", dir="desc")

    assert page.rows[0]["name"] == f"Person {PEOPLE_COUNT - 1:02d}"
    assert page.rows[0]["joined"].count("/") == 2


def test_unsortable_column_request_falls_back_to_default(db_session, people_report):
    page = _run(people_report, db_session, sort="city", dir="desc")

    assert page.sort_key == "name"
    assert page.rows[0]["name"] == f"Person {PEOPLE_COUNT - 1:02d}"


def test_garbage_parameters_are_normalized(db_session, people_report):
    page = _run(people_report, db_session, page="lots", sort="'; DROP TABLE people", dir="up")

    assert page.current_page == 1
    assert page.sort_key == "name"
    assert page.sort_direction == "asc"


def test_page_past_the_end_is_clamped_to_last_page(db_session, people_report):
    page = _run(people_report, db_session, page="9")

    assert page.current_page == 3
    assert page.attempts == 2
    assert len(page.rows) == 5


def test_empty_result_set_renders_without_retry(db_session, people_report):
    db_session.execute(delete(people))

    page = _run(people_report, db_session, page="5")

    assert page.total_count == 0
    assert page.page_count == 0
    assert page.rows == []
    assert page.attempts == 1
    assert page.paging.page_links == []


def test_links_preserve_sort_and_extra_parameters(db_session, people_report):
    page = _run(people_report, db_session, page="2", sort="age", dir="desc", city="any")

    next_link = next(link for link in page.paging.page_links if link.kind == "next")
    assert next_link.query == "page=3&sort=age&dir=desc&city=any"

    age_header = next(header for header in page.headers if header.key == "age")
    assert age_header.is_active is True
    assert age_header.query == "page=2&sort=age&dir=asc&city=any"


def test_writer_replans_with_corrected_page(people_report):
    fetcher = ScriptedFetcher(25)

    page = ReportWriter(people_report).run({"page": "9"}, fetcher)

    assert [plan.limit_clause for plan in fetcher.plans] == ["LIMIT 80, 10", "LIMIT 20, 10"]
    assert page.current_page == 3
    assert len(page.rows) == 5


def test_writer_raises_when_result_set_keeps_shrinking(people_report):
    fetcher = ScriptedFetcher(25, 15, 5)

    with pytest.raises(OverrunExhaustedError):
        ReportWriter(people_report).run({"page": "9"}, fetcher)

    assert fetcher.calls == 3


def test_found_rows_strategy_reads_total_from_same_statement(people_report):
    db = MagicMock()
    data_result = MagicMock()
    data_result.mappings.return_value.all.return_value = [{"name": "Person 00", "age": 20}]
    found_rows_result = MagicMock()
    found_rows_result.scalar.return_value = 1
    db.execute.side_effect = [data_result, found_rows_result]

    fetcher = SqlReportFetcher(db, people_report.sql_fragment, count_strategy="found_rows")
    page = ReportWriter(people_report).run({}, fetcher)

    statements = [str(call.args[0]) for call in db.execute.call_args_list]
    assert statements[0].startswith("SELECT SQL_CALC_FOUND_ROWS name, age, p.city")
    assert statements[0].endswith("ORDER BY name ASC LIMIT 0, 10")
    assert statements[1] == "SELECT FOUND_ROWS()"
    assert page.total_count == 1
    assert page.rows == [{"name": "Person 00", "age": 20}]


def test_huge_page_number_recovers_to_last_page(db_session, people_report):
    page = _run(people_report, db_session, page="9" * 30)

    assert page.current_page == 3
    assert page.attempts == 2
    assert len(page.rows) == 5


def test_huge_page_number_plans_a_bounded_offset(people_report):
    fetcher = ScriptedFetcher(25)

    ReportWriter(people_report).run({"page": "9" * 30}, fetcher)

    first_offset = int(fetcher.plans[0].limit_clause.removeprefix("LIMIT ").split(",")[0])
    assert first_offset <= MAX_ROW_OFFSET
    assert fetcher.plans[1].limit_clause == "LIMIT 20, 10"


@pytest.mark.parametrize("page_param", ["params", "overrides"])
def test_parameter_names_may_shadow_helper_arguments(page_param):
    definition = build_report_definition(
        report_key="people_custom_params",
        sql_fragment="FROM people AS p",
        columns=["name", "age"],
        default_sort="name",
        page_size=10,
        page_param=page_param,
    )

    page = ReportWriter(definition).run({page_param: "2"}, ScriptedFetcher(25))

    assert page.current_page == 2
    next_link = next(link for link in page.paging.page_links if link.kind == "next")
    assert next_link.query == f"{page_param}=3&sort=name&dir=asc"


def _city_filters(params):
    return {"city": params.get("city") or "Austin"}


def test_filtered_report_binds_request_parameters(db_session):
    definition = build_report_definition(
        report_key="people_by_city",
        sql_fragment="FROM people AS p WHERE p.city = :city",
        columns=PEOPLE_COLUMNS,
        default_sort="name",
        page_size=2,
        filters=_city_filters,
    )
    params = {"city": "Boston", "page": "2"}
    fetcher = SqlReportFetcher(
        db_session,
        definition.sql_fragment,
        bind_params=definition.bind_params(params),
    )

    page = ReportWriter(definition).run(params, fetcher)

    assert page.total_count == PEOPLE_COUNT // 5
    assert page.page_count == 3
    assert {row["city"] for row in page.rows} == {"Boston"}
    assert [row["name"] for row in page.rows] == ["Person 11", "Person 16"]
    assert all("city=Boston" in link.query for link in page.paging.page_links)


def test_filter_defaults_apply_without_request_parameters(db_session):
    definition = build_report_definition(
        report_key="people_by_city",
        sql_fragment="FROM people AS p WHERE p.city = :city",
        columns=PEOPLE_COLUMNS,
        default_sort="name",
        filters=_city_filters,
    )

    assert definition.bind_params({}) == {"city": "Austin"}
    assert build_report_definition(
        report_key="unfiltered",
        sql_fragment="FROM people AS p",
        columns=["name"],
        default_sort="name",
    ).bind_params({"city": "Boston"}) == {}
