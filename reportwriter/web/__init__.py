"""Web routes rendering reports as HTML."""

from fastapi import APIRouter

from reportwriter.web.reports import router as reports_router

router = APIRouter(tags=["web"])
router.include_router(reports_router)

__all__ = ["router"]
