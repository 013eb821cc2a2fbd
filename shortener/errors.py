from fastapi import status


class ShortenerError(Exception):
    """Базовая ошибка доменного слоя."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Некорректный запрос."

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(ShortenerError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Войдите в систему, чтобы просматривать свои ссылки."


class Forbidden(ShortenerError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Нет доступа к запрошенной ссылке."


class NotFound(ShortenerError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Ссылка не найдена."


class ValidationFailed(ShortenerError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Укажите email и пароль."


class Conflict(ShortenerError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Такая запись уже существует."
