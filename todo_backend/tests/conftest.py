import os

import pytest
from fastapi.testclient import TestClient

# Ensure we default to memory backend for tests to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from src.todolog.main import create_app  # noqa: E402
from src.todolog.repositories import create_store  # noqa: E402
from src.todolog.settings import Settings  # noqa: E402


@pytest.fixture
def settings():
    return Settings(persistence_backend="memory", activity_page_size=50, activity_max_page_size=500)


@pytest.fixture
def store(settings):
    s = create_store(settings)
    yield s
    s.close()


@pytest.fixture(params=["memory", "sqlite"])
def any_store(request, tmp_path):
    """A fresh store for each backend; sqlite lives in a temp directory."""
    s = create_store(
        Settings(persistence_backend=request.param, sqlite_db_path=str(tmp_path / "todos.db"))
    )
    yield s
    s.close()


@pytest.fixture
def client(store, settings):
    return TestClient(create_app(store=store, settings=settings))
