"""
Database session management (SQLAlchemy)
"""
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase

from offshore.config import get_settings


class Base(DeclarativeBase):
    """
    SQLAlchemy declarative base for all ORM models
    """
    pass


# Singleton engine
_engine = None


def build_engine(url: str) -> Engine:
    """Create an engine; SQLite connections may be used from worker threads."""
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    return create_engine(url, pool_pre_ping=True, connect_args=connect_args)


def get_engine():
    """Get or create SQLAlchemy engine (singleton)"""
    global _engine
    if _engine is None:
        settings = get_settings()
        _engine = build_engine(settings.get_sqlalchemy_url())
    return _engine


def check_db_connection(engine: Engine | None = None) -> None:
    """
    Health check: the database answers a trivial query

    Raises:
        sqlalchemy.exc.OperationalError: if the database is unreachable
    """
    engine = engine or get_engine()
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
