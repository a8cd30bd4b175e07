"""
Единые ошибки и коды ошибок.

Назначение:
- предсказуемые коды для HTTP/WS/фоновых задач
- единый стиль исключений по проекту
- соответствие код -> HTTP статус живёт здесь, а не в роутерах
"""

from __future__ import annotations

from dataclasses import dataclass


class ErrCode:
    # Общие
    UNKNOWN = "unknown"
    INVALID_REQUEST = "invalid_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"

    # Встречи
    INVALID_STATE_TRANSITION = "invalid_state_transition"
    SCHEDULING_CONFLICT = "scheduling_conflict"
    COOLDOWN_ACTIVE = "cooldown_active"
    SELF_MEETING_NOT_ALLOWED = "self_meeting_not_allowed"

    # Провайдеры
    MAIL_DELIVERY_FAILURE = "mail_delivery_failure"


HTTP_STATUS_BY_CODE: dict[str, int] = {
    ErrCode.INVALID_REQUEST: 400,
    ErrCode.INVALID_STATE_TRANSITION: 400,
    ErrCode.SCHEDULING_CONFLICT: 400,
    ErrCode.COOLDOWN_ACTIVE: 400,
    ErrCode.SELF_MEETING_NOT_ALLOWED: 400,
    ErrCode.UNAUTHORIZED: 401,
    ErrCode.FORBIDDEN: 403,
    ErrCode.NOT_FOUND: 404,
}


@dataclass
class AppError(Exception):
    """
    Базовая ошибка приложения.
    - code: стабильный код ошибки
    - message: безопасное сообщение (уходит клиенту)
    - details: доп. данные (без секретов/PII)
    """

    code: str
    message: str
    details: dict | None = None

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code}: {self.message}"

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CODE.get(self.code, 500)


class InvalidRequestError(AppError):
    def __init__(self, message: str = "Некорректный запрос", details: dict | None = None) -> None:
        super().__init__(ErrCode.INVALID_REQUEST, message, details)


class UnauthorizedError(AppError):
    def __init__(self, message: str = "Не авторизован", details: dict | None = None) -> None:
        super().__init__(ErrCode.UNAUTHORIZED, message, details)


class ForbiddenError(AppError):
    def __init__(self, message: str = "Доступ запрещён", details: dict | None = None) -> None:
        super().__init__(ErrCode.FORBIDDEN, message, details)


class NotFoundError(AppError):
    def __init__(self, message: str = "Не найдено", details: dict | None = None) -> None:
        super().__init__(ErrCode.NOT_FOUND, message, details)


class InvalidStateTransitionError(AppError):
    def __init__(
        self, message: str = "Переход статуса недопустим", details: dict | None = None
    ) -> None:
        super().__init__(ErrCode.INVALID_STATE_TRANSITION, message, details)


class SchedulingConflictError(AppError):
    def __init__(
        self, message: str = "Это время у владельца поста уже занято", details: dict | None = None
    ) -> None:
        super().__init__(ErrCode.SCHEDULING_CONFLICT, message, details)


class CooldownActiveError(AppError):
    def __init__(
        self,
        message: str = "После принятой встречи нужно подождать 2 часа перед новым запросом",
        details: dict | None = None,
    ) -> None:
        super().__init__(ErrCode.COOLDOWN_ACTIVE, message, details)


class SelfMeetingNotAllowedError(AppError):
    def __init__(
        self, message: str = "Нельзя назначить встречу самому себе", details: dict | None = None
    ) -> None:
        super().__init__(ErrCode.SELF_MEETING_NOT_ALLOWED, message, details)


class MailDeliveryError(AppError):
    """
    Транзиентная ошибка почтового транспорта.
    Наружу (пользователю) не отдаётся: только лог и повтор на следующем скане.
    """

    def __init__(self, message: str = "Ошибка отправки письма", details: dict | None = None) -> None:
        super().__init__(ErrCode.MAIL_DELIVERY_FAILURE, message, details)
