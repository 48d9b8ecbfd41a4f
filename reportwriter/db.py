from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from reportwriter.config import settings


def get_engine():
    return create_engine(
        settings.database_url,
        pool_pre_ping=True,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_timeout=settings.db_pool_timeout,
        pool_recycle=settings.db_pool_recycle,
    )


SessionLocal = sessionmaker(bind=get_engine(), autoflush=False, autocommit=False)


def get_db():
    """Request-scoped database session dependency for FastAPI.

    Report routes only read, so the session is closed without a commit.

    Example:
        @router.get("/reports/{report_key}")
        def show(report_key: str, db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
