from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

PageLinkKind = Literal["first", "prev", "page", "next", "last"]


class PageLink(BaseModel):
    label: str
    target_index: int = Field(ge=1)
    kind: PageLinkKind = "page"
    is_current: bool = False
    query: str


class PageList(BaseModel):
    page_links: list[PageLink] = Field(default_factory=list)
    has_prev: bool = False
    has_next: bool = False
    first_index: int | None = None
    last_index: int | None = None
    prev_index: int | None = None
    next_index: int | None = None


class SortHeader(BaseModel):
    key: str
    label: str
    field_name: str
    sortable: bool
    is_active: bool = False
    direction: Literal["asc", "desc"] | None = None
    next_direction: Literal["asc", "desc"] | None = None
    query: str | None = None


class ReportPage(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    report_key: str
    title: str
    headers: list[SortHeader]
    fields: list[str]
    rows: list[dict[str, Any]]
    paging: PageList
    total_count: int
    page_count: int
    current_page: int
    page_size: int
    sort_key: str
    sort_direction: Literal["asc", "desc"]
    attempts: int = 1


class ReportSummary(BaseModel):
    report_key: str
    title: str


class ReportListResponse(BaseModel):
    reports: list[ReportSummary]
