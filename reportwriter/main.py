import importlib
import logging
import uuid

from fastapi import APIRouter, FastAPI, Request
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from reportwriter import __version__
from reportwriter.api.reports import router as reports_api_router
from reportwriter.config import settings
from reportwriter.errors import register_error_handlers
from reportwriter.logging import configure_logging
from reportwriter.web import router as web_router

configure_logging()
logger = logging.getLogger(__name__)

for _module_name in settings.report_module_names():
    importlib.import_module(_module_name)
    logger.info("Loaded report definitions from %s", _module_name)

app = FastAPI(title="reportwriter", version=__version__)
register_error_handlers(app)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    request.state.request_id = request_id
    response = await call_next(request)
    response.headers["x-request-id"] = request_id
    return response


@app.get("/health")
def health_check():
    return {"status": "ok", "version": __version__}


@app.get("/metrics")
def metrics():
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


api_router = APIRouter(prefix="/api")
api_router.include_router(reports_api_router)
app.include_router(api_router)
app.include_router(web_router)
