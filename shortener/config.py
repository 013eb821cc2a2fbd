"""
Настройки приложения.

Значения берутся из переменных окружения, для всего остального
используются значения по умолчанию.
"""

import logging
import os
import secrets
from functools import lru_cache
from typing import Optional

from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)


class Settings(BaseModel):
    """Конфигурация сервиса сокращения ссылок."""

    secret_key: Optional[str] = Field(default=None, description="Ключ подписи сессионной cookie")
    session_cookie: str = Field(default="session", description="Имя сессионной cookie")
    session_max_age: int = Field(default=24 * 60 * 60, ge=60, description="Время жизни сессии в секундах")
    storage: str = Field(default="memory", description="Тип хранилища: memory или sql")
    database_url: str = Field(default="sqlite:///./data/links.db", description="URL базы данных для sql")
    id_length: int = Field(default=6, ge=1, le=64, description="Длина короткого кода")
    max_id_attempts: int = Field(default=10, ge=1, description="Попыток сгенерировать свободный код")
    bcrypt_rounds: int = Field(default=10, ge=4, le=31, description="Стоимость bcrypt")
    log_level: str = Field(default="INFO", description="Уровень логирования")

    @field_validator("storage")
    @classmethod
    def validate_storage(cls, v: str) -> str:
        v = v.lower()
        if v not in ("memory", "sql"):
            raise ValueError("storage must be 'memory' or 'sql'")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        v = v.upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return v


def load_settings() -> Settings:
    """Собирает настройки из переменных окружения."""
    values = {}
    env_map = {
        "SECRET_KEY": "secret_key",
        "SESSION_COOKIE": "session_cookie",
        "SESSION_MAX_AGE": "session_max_age",
        "STORAGE": "storage",
        "DATABASE_URL": "database_url",
        "ID_LENGTH": "id_length",
        "MAX_ID_ATTEMPTS": "max_id_attempts",
        "BCRYPT_ROUNDS": "bcrypt_rounds",
        "LOG_LEVEL": "log_level",
    }
    for env_name, field_name in env_map.items():
        if os.getenv(env_name):
            values[field_name] = os.getenv(env_name)

    settings = Settings(**values)
    if not settings.secret_key:
        logger.warning("SECRET_KEY не задан, сессии не переживут перезапуск")
        settings.secret_key = secrets.token_hex(32)
    return settings


@lru_cache
def get_settings() -> Settings:
    return load_settings()


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Настраивает корневой логгер."""
    if settings is None:
        settings = get_settings()

    log_level = getattr(logging, settings.log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(
        logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    )
    root_logger.addHandler(console_handler)
