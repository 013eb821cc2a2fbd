"""
Общие фикстуры для тестов.
"""

import pytest
from fastapi.testclient import TestClient

from shortener.config import Settings
from shortener.main import create_app
from shortener.store import InMemoryStore, SqlStore


@pytest.fixture
def settings() -> Settings:
    return Settings(secret_key="test-secret", bcrypt_rounds=4)


@pytest.fixture
def memory_store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def sql_store(tmp_path) -> SqlStore:
    return SqlStore.from_url(f"sqlite:///{tmp_path}/links.db")


@pytest.fixture(params=["memory", "sql"])
def store(request, tmp_path):
    """Каждый тест с этой фикстурой гоняется на обоих хранилищах."""
    if request.param == "memory":
        return InMemoryStore()
    return SqlStore.from_url(f"sqlite:///{tmp_path}/links.db")


@pytest.fixture
def app(settings, memory_store):
    return create_app(settings=settings, store=memory_store)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_client(app):
    """Фабрика клиентов с отдельными cookie."""
    def _make():
        return TestClient(app)
    return _make


def register(client, email="user@example.com", password="purple-monkey-dinosaur"):
    return client.post(
        "/register",
        data={"email": email, "password": password},
        follow_redirects=False,
    )
