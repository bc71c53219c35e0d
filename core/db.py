"""
Database initialization, migration helpers and tenant-scoped sessions.
"""

from __future__ import annotations

import os
from contextlib import contextmanager
from typing import Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

import core.config as config

TENANT_INFO_KEY = "tenant_id"


class DB:
    """Database state holder (avoids global scoping issues)."""

    engine = None
    SessionLocal = None


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    # Restrict/cascade FKs are off by default in sqlite
    module = type(dbapi_connection).__module__
    if not module.startswith("sqlite3") and "pysqlite" not in module:
        return
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@event.listens_for(Session, "after_begin")
def _stamp_tenant_on_transaction(session, transaction, connection) -> None:
    tenant_id = session.info.get(TENANT_INFO_KEY)
    if tenant_id is None or connection.dialect.name != "postgresql":
        return
    if config.ENABLE_RLS:
        connection.execute(
            text("SELECT set_config('app.tenant_id', :tenant_id, true)"),
            {"tenant_id": tenant_id},
        )
    if config.DB_STATEMENT_TIMEOUT_MS > 0:
        connection.execute(text(f"SET LOCAL statement_timeout = {int(config.DB_STATEMENT_TIMEOUT_MS)}"))


def _require_session_factory():
    if DB.SessionLocal is None:
        raise RuntimeError("Database not initialized - SessionLocal is None")
    return DB.SessionLocal


@contextmanager
def tenant_session(tenant_id: str) -> Iterator[Session]:
    """Open a session whose transactions are scoped to one tenant."""
    db = _require_session_factory()()
    db.info[TENANT_INFO_KEY] = tenant_id
    try:
        yield db
    except BaseException:
        db.rollback()
        raise
    finally:
        db.close()


def _get_alembic_config():
    try:
        from alembic.config import Config
    except ImportError as exc:
        raise RuntimeError("Alembic is required for migrations") from exc

    base_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    alembic_cfg = Config(os.path.join(base_dir, "alembic.ini"))
    alembic_cfg.set_main_option("script_location", os.path.join(base_dir, "alembic"))
    alembic_cfg.set_main_option("sqlalchemy.url", config.DATABASE_URL)
    return alembic_cfg


def _get_schema_revisions(engine) -> tuple[Optional[str], Optional[str]]:
    from alembic.runtime.migration import MigrationContext
    from alembic.script import ScriptDirectory

    alembic_cfg = _get_alembic_config()
    script = ScriptDirectory.from_config(alembic_cfg)
    head_revision = script.get_current_head()
    with engine.connect() as conn:
        context = MigrationContext.configure(conn)
        current_revision = context.get_current_revision()
    return current_revision, head_revision


def _ensure_schema_up_to_date(engine) -> None:
    from alembic import command

    current_rev, head_rev = _get_schema_revisions(engine)
    if current_rev == head_rev:
        return

    if config.AUTO_MIGRATE_ON_STARTUP:
        alembic_cfg = _get_alembic_config()
        command.upgrade(alembic_cfg, "head")
        new_current, _ = _get_schema_revisions(engine)
        if new_current != head_rev:
            raise RuntimeError("Database migration did not reach expected revision")
    else:
        raise RuntimeError(
            f"Database schema out of date (current={current_rev}, expected={head_rev}). "
            "Run 'alembic upgrade head' or set AUTO_MIGRATE_ON_STARTUP=true for dev."
        )


def init_db() -> None:
    """Initialize database connection and verify the schema revision."""
    config.validate_and_prepare_config()

    config.logger.info("Connecting to database...")
    engine_kwargs = {"pool_pre_ping": True}
    if config.DB_BACKEND == "sqlite":
        engine_kwargs["connect_args"] = {"check_same_thread": False}
    DB.engine = create_engine(config.DATABASE_URL, **engine_kwargs)
    DB.SessionLocal = sessionmaker(bind=DB.engine)

    _ensure_schema_up_to_date(DB.engine)

    config.logger.info("Database initialized")
