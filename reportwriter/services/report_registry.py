from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from fastapi import HTTPException

from reportwriter.config import COUNT_STRATEGIES, settings
from reportwriter.services.report_columns import ColumnDefinition, ColumnSpec, build_column_specs
from reportwriter.services.report_errors import ReportConfigurationError
from reportwriter.services.report_page_list import DEFAULT_LABELS, PagingLabels
from reportwriter.services.report_paging import validate_page_config
from reportwriter.services.report_sorting import validate_default_sort

BindParamsHook = Callable[[Mapping[str, Any]], Mapping[str, Any]]

DEFAULT_ASC_INDICATOR = "&#9650;"
DEFAULT_DESC_INDICATOR = "&#9660;"


@dataclass(frozen=True)
class ReportDefinition:
    report_key: str
    title: str
    sql_fragment: str
    columns: tuple[ColumnSpec, ...]
    default_sort: str
    page_size: int
    window_size: int
    page_param: str = "page"
    sort_param: str = "sort"
    direction_param: str = "dir"
    count_strategy: str = "count_query"
    labels: PagingLabels = field(default=DEFAULT_LABELS)
    html_header: str = ""
    html_footer: str | None = None
    css: str | None = None
    asc_indicator: str = DEFAULT_ASC_INDICATOR
    desc_indicator: str = DEFAULT_DESC_INDICATOR
    filters: BindParamsHook | None = None

    def bind_params(self, params: Mapping[str, Any]) -> dict[str, Any]:
        """Bind parameters for the SQL fragment, derived from the request."""
        if self.filters is None:
            return {}
        return dict(self.filters(params))

    @property
    def fields(self) -> list[str]:
        return [column.field_name for column in self.columns]


def build_report_definition(
    *,
    report_key: str,
    sql_fragment: str,
    columns: Iterable[ColumnDefinition],
    default_sort: str,
    title: str | None = None,
    page_size: int | None = None,
    window_size: int | None = None,
    sortable_default: bool = True,
    page_param: str | None = None,
    sort_param: str | None = None,
    direction_param: str | None = None,
    count_strategy: str | None = None,
    labels: PagingLabels | None = None,
    html_header: str = "",
    html_footer: str | None = None,
    css: str | None = None,
    asc_indicator: str | None = None,
    desc_indicator: str | None = None,
    filters: BindParamsHook | None = None,
) -> ReportDefinition:
    """Validate report options and normalize them into a ReportDefinition.

    Unset paging options fall back to the process settings.

    ``filters`` maps the request parameters to bind parameters for the named
    placeholders (``:name``) in ``sql_fragment``. The HTML options are trusted
    markup supplied with the report and are rendered unescaped.

    Raises:
        ReportConfigurationError: Any option is missing or inconsistent
    """
    if not isinstance(report_key, str) or not report_key.strip():
        raise ReportConfigurationError("report_key is required")
    if not isinstance(sql_fragment, str) or not sql_fragment.strip():
        raise ReportConfigurationError("sql_fragment is required")
    if not sql_fragment.lstrip().upper().startswith("FROM"):
        raise ReportConfigurationError("sql_fragment must start at the FROM clause")

    column_specs = build_column_specs(columns, sortable_default=sortable_default)
    validate_default_sort(column_specs, default_sort)

    resolved_page_size, resolved_window_size = validate_page_config(
        settings.results_per_page if page_size is None else page_size,
        settings.pages_in_list if window_size is None else window_size,
    )

    param_names = (
        page_param or settings.page_variable,
        sort_param or settings.sort_variable,
        direction_param or settings.direction_variable,
    )
    if len(set(param_names)) != len(param_names):
        raise ReportConfigurationError("page, sort and direction parameters must be distinct")

    strategy = (count_strategy or settings.count_strategy).strip().lower()
    if strategy not in COUNT_STRATEGIES:
        raise ReportConfigurationError(f"Unknown count_strategy: {strategy}")
    if filters is not None and not callable(filters):
        raise ReportConfigurationError("filters must be a callable")

    key = report_key.strip()
    return ReportDefinition(
        report_key=key,
        title=title or key.replace("_", " ").title(),
        sql_fragment=sql_fragment.strip(),
        columns=column_specs,
        default_sort=default_sort,
        page_size=resolved_page_size,
        window_size=resolved_window_size,
        page_param=param_names[0],
        sort_param=param_names[1],
        direction_param=param_names[2],
        count_strategy=strategy,
        labels=labels or DEFAULT_LABELS,
        html_header=html_header or "",
        html_footer=html_footer,
        css=css,
        asc_indicator=asc_indicator or DEFAULT_ASC_INDICATOR,
        desc_indicator=desc_indicator or DEFAULT_DESC_INDICATOR,
        filters=filters,
    )


class ReportRegistry:
    _reports: dict[str, ReportDefinition] = {}

    @classmethod
    def register(cls, *, replace: bool = False, **options) -> ReportDefinition:
        definition = build_report_definition(**options)
        if definition.report_key in cls._reports and not replace:
            raise ReportConfigurationError(f"Duplicate report key: {definition.report_key}")
        cls._reports[definition.report_key] = definition
        return definition

    @classmethod
    def get(cls, report_key: str) -> ReportDefinition:
        definition = cls._reports.get(report_key)
        if not definition:
            raise HTTPException(status_code=404, detail="Unregistered report")
        return definition

    @classmethod
    def exists(cls, report_key: str) -> bool:
        return report_key in cls._reports

    @classmethod
    def keys(cls) -> list[str]:
        return sorted(cls._reports)

    @classmethod
    def all(cls) -> list[ReportDefinition]:
        return sorted(cls._reports.values(), key=lambda definition: definition.report_key)

    @classmethod
    def unregister(cls, report_key: str) -> None:
        cls._reports.pop(report_key, None)
