"""
Регистрация и проверка учетных данных.

Пароли хранятся только в виде bcrypt-хеша.
"""

import logging
from functools import lru_cache
from typing import Optional

import bcrypt

from shortener.errors import Conflict, ValidationFailed
from shortener.models import User
from shortener.store import Store
from shortener.utils import generate_id

logger = logging.getLogger(__name__)


@lru_cache
def _dummy_hash(rounds: int) -> str:
    # Хеш для сравнения, когда email не найден. Стоимость та же, что у настоящих
    # хешей, поэтому время ответа не выдает причину отказа
    return bcrypt.hashpw(b"not-a-real-password", bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def hash_password(password: str, rounds: int = 10) -> str:
    """Хеширует пароль через bcrypt."""
    if not password:
        raise ValueError("Password cannot be empty")
    salt = bcrypt.gensalt(rounds=rounds)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    if not password or not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Битый хеш в хранилище
        return False


def find_by_email(store: Store, email: str) -> Optional[User]:
    """Находит пользователя по email (с учетом регистра)."""
    for user in store.list_users():
        if user.email == email:
            return user
    return None


def authenticate(store: Store, email: str, password: str, rounds: int = 10) -> Optional[User]:
    """Возвращает пользователя, если email и пароль совпали, иначе None."""
    user = find_by_email(store, email)
    if user is None:
        verify_password(password or "x", _dummy_hash(rounds))
        logger.info("Failed login attempt")
        return None
    if not verify_password(password, user.password_hash):
        logger.info("Failed login attempt for user %s", user.id)
        return None
    return user


def register(
    store: Store,
    email: str,
    password: str,
    id_length: int = 6,
    rounds: int = 10,
    max_attempts: int = 10,
) -> User:
    """
    Создает пользователя.
    Пустой email или пароль дают `ValidationFailed`, занятый email дает `Conflict`.
    """
    if not email or not password:
        raise ValidationFailed(
            "Укажите и email, и пароль."
        )
    if find_by_email(store, email):
        raise Conflict(
            "Этот email уже зарегистрирован. Используйте другой адрес или войдите."
        )

    password_hash = hash_password(password, rounds=rounds)
    for _ in range(max_attempts):
        user_id = generate_id(id_length)
        if store.get_user(user_id) is None:
            break
    else:
        raise Conflict("Не удалось подобрать свободный id пользователя.")

    user = User(id=user_id, email=email, password_hash=password_hash)
    store.add_user(user)
    logger.info("Registered user %s", user.id)
    return user
