"""HTML report routes."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from reportwriter import __version__
from reportwriter.config import TEMPLATE_DIR
from reportwriter.db import get_db
from reportwriter.services.report_fetch import SqlReportFetcher
from reportwriter.services.report_registry import ReportRegistry
from reportwriter.services.report_writer import ReportWriter

templates = Jinja2Templates(directory=str(TEMPLATE_DIR))
router = APIRouter(prefix="/reports", tags=["web-reports"])


@router.get("/{report_key}", response_class=HTMLResponse)
def report_page(report_key: str, request: Request, db: Session = Depends(get_db)) -> HTMLResponse:
    """Render one page of a registered report."""
    definition = ReportRegistry.get(report_key)
    params = dict(request.query_params)
    fetcher = SqlReportFetcher(
        db,
        definition.sql_fragment,
        bind_params=definition.bind_params(params),
        count_strategy=definition.count_strategy,
    )
    page = ReportWriter(definition).run(params, fetcher)
    return templates.TemplateResponse(
        request,
        "reports/table.html",
        {
            "report": page,
            "definition": definition,
            "page_title": page.title,
            "version": __version__,
        },
    )
