import os

import pytest
from sqlalchemy import create_engine, insert
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from reportwriter.services.report_registry import ReportRegistry
from tests.people_data import PEOPLE_COLUMNS, metadata, people, people_rows


@pytest.fixture(scope="session")
def engine():
    database_url = os.getenv("TEST_DATABASE_URL")
    if database_url:
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    metadata.create_all(engine)
    with engine.begin() as connection:
        connection.execute(insert(people), people_rows())
    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def people_report():
    """Registers the ``people`` report for the duration of a test."""
    definition = ReportRegistry.register(
        report_key="people",
        title="People",
        sql_fragment="FROM people AS p",
        columns=PEOPLE_COLUMNS,
        default_sort="name",
        page_size=10,
        window_size=3,
        replace=True,
    )
    try:
        yield definition
    finally:
        ReportRegistry.unregister("people")
