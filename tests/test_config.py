import pytest
from pydantic import ValidationError

from shortener.config import Settings, load_settings
from shortener.store import InMemoryStore, SqlStore, build_store


def test_load_settings_from_env(monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "abc")
    monkeypatch.setenv("ID_LENGTH", "8")
    monkeypatch.setenv("STORAGE", "SQL")
    settings = load_settings()
    assert settings.secret_key == "abc"
    assert settings.id_length == 8
    assert settings.storage == "sql"


def test_missing_secret_key_is_generated(monkeypatch):
    monkeypatch.delenv("SECRET_KEY", raising=False)
    settings = load_settings()
    assert settings.secret_key
    assert load_settings().secret_key != settings.secret_key


def test_unknown_storage_rejected():
    with pytest.raises(ValidationError):
        Settings(storage="redis")


def test_build_store(tmp_path):
    assert isinstance(build_store(Settings()), InMemoryStore)
    sql = build_store(Settings(storage="sql", database_url=f"sqlite:///{tmp_path}/data/links.db"))
    assert isinstance(sql, SqlStore)
    assert (tmp_path / "data" / "links.db").exists()
