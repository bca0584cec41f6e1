"""
Shared pytest fixtures for chatrelay tests.
"""

import pytest

from helpers import FakeScheduler


@pytest.fixture
def tmp_db(tmp_path):
    """Fresh DuckDB database for each test."""
    from chatrelay.database.manager import DatabaseManager

    db = DatabaseManager(db_path=tmp_path / "test.duckdb")
    yield db
    db.close()


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def hub():
    from chatrelay.sse.hub import BroadcastHub

    return BroadcastHub()


@pytest.fixture
def app(tmp_db, scheduler):
    """Flask app with an isolated DB and a hand-driven scheduler."""
    from app import create_app

    flask_app = create_app(db_manager=tmp_db, scheduler=scheduler, broadcast_on_create=True)
    flask_app.config["TESTING"] = True
    yield flask_app
    flask_app.stream_supervisor.shutdown()


@pytest.fixture
def client(app):
    """Flask test client with isolated DB."""
    with app.test_client() as c:
        yield c
