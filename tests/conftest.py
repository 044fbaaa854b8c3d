"""
Pytest fixtures for testing
"""
from concurrent.futures import Executor, Future

import pytest
from sqlalchemy.orm import sessionmaker, Session

from offshore.application.dispatch import OwnerLoop
from offshore.infrastructure.db import models  # noqa: F401  registers tables
from offshore.infrastructure.db.session import Base, build_engine


class ImmediateExecutor(Executor):
    """Runs submitted work inline; the returned future is already done."""

    def __init__(self):
        self.submitted = 0

    def submit(self, fn, /, *args, **kwargs):
        self.submitted += 1
        future = Future()
        try:
            result = fn(*args, **kwargs)
        except BaseException as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)
        return future


@pytest.fixture
def db_engine(tmp_path):
    """File-backed SQLite engine: every session gets its own connection."""
    engine = build_engine(f"sqlite:///{tmp_path / 'offshore-test.db'}")
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return sessionmaker(bind=db_engine, autoflush=False, autocommit=False)


@pytest.fixture
def db_session(session_factory) -> Session:
    """Create database session for tests"""
    session = session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def owner_loop():
    """Owner loop driven by the test itself through ``drain()``"""
    return OwnerLoop("test-owner")


@pytest.fixture
def immediate_executor():
    return ImmediateExecutor()
