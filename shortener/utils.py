import random
import string

ALPHABET = string.ascii_letters + string.digits


def generate_id(length: int = 6) -> str:
    """Генерирует случайный код из латинских букв и цифр.

    Уникальность не проверяется, это забота вызывающего кода.
    """
    if length < 1:
        raise ValueError("length must be positive")
    return ''.join(random.choice(ALPHABET) for _ in range(length))
