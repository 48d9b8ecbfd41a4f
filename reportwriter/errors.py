from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from reportwriter.config import TEMPLATE_DIR
from reportwriter.services.report_errors import OverrunExhaustedError

logger = logging.getLogger(__name__)
templates = Jinja2Templates(directory=str(TEMPLATE_DIR))

_FRIENDLY_DEFAULT_BAD_REQUEST = (
    "Some required information is missing or invalid. Please check the link and try again."
)
_OVERRUN_MESSAGE = (
    "The report data changed while this page was being read. Please reload the report."
)


def _error_payload(code: str, message: str, details: object, request_id: str | None):
    return {"code": code, "message": message, "details": details, "request_id": request_id}


def _is_html_request(request: Request) -> bool:
    accept = (request.headers.get("accept") or "").lower()
    if request.url.path.startswith("/api/"):
        return False
    if "application/json" in accept and "text/html" not in accept:
        return False
    return True


def _request_id(request: Request) -> str:
    rid = getattr(request.state, "request_id", None)
    return str(rid) if rid else "unknown"


def _template_response(request: Request, status_code: int, message: str):
    return templates.TemplateResponse(
        request,
        f"errors/{status_code}.html",
        {
            "message": message,
            "request_id": _request_id(request),
        },
        status_code=status_code,
    )


def register_error_handlers(app) -> None:
    async def _handle_http_exception(request: Request, status_code: int, detail: object):
        if _is_html_request(request):
            if status_code == 400:
                message = detail if isinstance(detail, str) and detail.strip() else (
                    _FRIENDLY_DEFAULT_BAD_REQUEST
                )
                return _template_response(request, status_code=400, message=message)
            if status_code == 404:
                message = detail if isinstance(detail, str) and detail.strip() else "Page not found"
                return _template_response(request, status_code=404, message=message)

        code = f"http_{status_code}"
        message = "Request failed"
        details = None
        if isinstance(detail, dict):
            code = detail.get("code", code)
            message = detail.get("message", message)
            details = detail.get("details")
        elif isinstance(detail, str):
            message = detail
        else:
            details = detail
        return JSONResponse(
            status_code=status_code,
            content=_error_payload(code, message, details, _request_id(request)),
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        return await _handle_http_exception(request, exc.status_code, exc.detail)

    @app.exception_handler(StarletteHTTPException)
    async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException):
        detail = exc.detail if getattr(exc, "detail", None) is not None else "Request failed"
        return await _handle_http_exception(request, exc.status_code, detail)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        if _is_html_request(request):
            return _template_response(
                request,
                status_code=400,
                message=_FRIENDLY_DEFAULT_BAD_REQUEST,
            )
        errors = [
            {key: value for key, value in error.items() if key in {"type", "loc", "msg"}}
            for error in exc.errors()
        ]
        return JSONResponse(
            status_code=422,
            content=_error_payload(
                "validation_error", "Validation error", errors, _request_id(request)
            ),
        )

    @app.exception_handler(OverrunExhaustedError)
    async def overrun_exhausted_handler(request: Request, exc: OverrunExhaustedError):
        logger.error(
            "Report overrun exhausted on %s after %s attempts",
            request.url.path,
            exc.attempts,
            extra={"request_id": _request_id(request)},
        )
        if _is_html_request(request):
            return _template_response(request, status_code=503, message=_OVERRUN_MESSAGE)
        details = {"attempts": exc.attempts}
        if exc.window is not None:
            details["total_count"] = exc.window.total_count
            details["page_count"] = exc.window.page_count
        return JSONResponse(
            status_code=503,
            content=_error_payload(
                "report_overrun_exhausted", _OVERRUN_MESSAGE, details, _request_id(request)
            ),
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logger.exception(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            extra={"request_id": _request_id(request)},
        )
        if _is_html_request(request):
            return _template_response(
                request,
                status_code=500,
                message="Oops! Something went wrong on our end. Please try again later.",
            )
        return JSONResponse(
            status_code=500,
            content=_error_payload(
                "internal_error", "Internal server error", None, _request_id(request)
            ),
        )
