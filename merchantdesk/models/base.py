"""
Database engine, sessions and schema bootstrap
"""
import logging
import os
from contextlib import contextmanager

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from merchantdesk.config import get_settings

logger = logging.getLogger(__name__)


def resolve_database_url(url: str) -> str:
    """Make relative SQLite paths absolute so the working directory doesn't matter."""
    prefix = "sqlite:///"
    if url.startswith(prefix) and not url.startswith("sqlite:////"):
        return prefix + os.path.abspath(url[len(prefix):])
    return url


def build_engine(url: str):
    url = resolve_database_url(url)
    if url.startswith("sqlite"):
        # Request handlers, the auth middleware and scheduler jobs each open
        # their own session, possibly from different threads.
        return create_engine(
            url,
            connect_args={"check_same_thread": False, "timeout": 30},
            poolclass=NullPool,
        )
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=5, pool_recycle=300)


engine = build_engine(get_settings().database_url)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """FastAPI dependency: one session per request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope():
    """Session for code outside a request (middleware, jobs, scripts)."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def _add_missing_columns() -> list[str]:
    """ALTER TABLE for model columns an existing table lacks; create_all only adds tables."""
    inspector = inspect(engine)
    added = []
    with engine.begin() as conn:
        for table_name, table in Base.metadata.tables.items():
            if not inspector.has_table(table_name):
                continue
            existing = {c["name"] for c in inspector.get_columns(table_name)}
            for column in table.columns:
                if column.name in existing:
                    continue
                col_type = column.type.compile(dialect=engine.dialect)
                conn.execute(text(f"ALTER TABLE {table_name} ADD COLUMN {column.name} {col_type}"))
                added.append(f"{table_name}.{column.name}")
    for name in added:
        logger.info(f"Added missing column {name}")
    return added


def init_db():
    """Create tables (users, sessions, accounts, email mappings) and add new columns."""
    import merchantdesk.models  # noqa: F401
    Base.metadata.create_all(bind=engine)
    _add_missing_columns()
