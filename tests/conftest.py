import uuid

import pytest
from starlette.testclient import TestClient

from hancock.database import make_engine, make_session_factory
from hancock.main import create_app
from hancock.models import Base
from tests.fixtures.keys import FIXED_NOW


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh in-memory SQLite DB per test."""
    engine = make_engine(
        f"sqlite:///file:testdb_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    )
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return make_session_factory(db_engine)


@pytest.fixture(scope="function")
def app(session_factory):
    """Create an app backed by the per-test DB, with the clock frozen at FIXED_NOW."""
    return create_app(session_factory=session_factory, clock=lambda: FIXED_NOW)


@pytest.fixture(scope="function")
def client(app):
    """HTTP test client."""
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture(scope="function")
def db_session(session_factory):
    """Raw DB session for direct inspection/insertion."""
    db = session_factory()
    yield db
    db.close()
