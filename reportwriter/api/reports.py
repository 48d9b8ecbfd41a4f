from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from reportwriter.db import get_db
from reportwriter.schemas.report import ReportListResponse, ReportPage, ReportSummary
from reportwriter.services.report_fetch import SqlReportFetcher
from reportwriter.services.report_registry import ReportRegistry
from reportwriter.services.report_writer import ReportWriter

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("", response_model=ReportListResponse)
def list_reports():
    return ReportListResponse(
        reports=[
            ReportSummary(report_key=definition.report_key, title=definition.title)
            for definition in ReportRegistry.all()
        ]
    )


@router.get("/{report_key}", response_model=ReportPage)
def get_report_page(
    report_key: str,
    request: Request,
    db: Session = Depends(get_db),
):
    definition = ReportRegistry.get(report_key)
    params = dict(request.query_params)
    fetcher = SqlReportFetcher(
        db,
        definition.sql_fragment,
        bind_params=definition.bind_params(params),
        count_strategy=definition.count_strategy,
    )
    return ReportWriter(definition).run(params, fetcher)
