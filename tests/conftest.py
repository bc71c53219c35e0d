import os

os.environ.setdefault("DB_BACKEND", "sqlite")
os.environ.setdefault("STATS_PARALLEL_QUERIES", "true")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from core.context import AuthContext, RequestContext, TenantContext
from core.db import DB
from core.models import Base


def make_context(tenant_id: str) -> RequestContext:
    return RequestContext(
        auth=AuthContext(tenant_id=tenant_id, actor="test"),
        tenant=TenantContext.from_values(tenant_id, source="test"),
    )


@pytest.fixture
def server_db(tmp_path):
    db_path = tmp_path / "homestash.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    previous_engine = DB.engine
    previous_session = DB.SessionLocal
    DB.engine = engine
    DB.SessionLocal = SessionLocal
    try:
        yield engine
    finally:
        DB.engine = previous_engine
        DB.SessionLocal = previous_session
        engine.dispose()


@pytest.fixture
def db_session(server_db):
    session = DB.SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def alice():
    return make_context("tenant-alice")


@pytest.fixture
def bob():
    return make_context("tenant-bob")
