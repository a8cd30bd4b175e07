"""
FastAPI Depends.

Сюда выносим:
- проверку авторизации (Bearer JWT / dev-заголовок) + audit-логи
- доступ к реестру realtime-соединений
"""

from __future__ import annotations

from fastapi import Header, Request, status

from venture_connect.common.config import get_settings
from venture_connect.common.errors import UnauthorizedError
from venture_connect.common.logging import get_project_logger
from venture_connect.common.security import AuthContext, require_auth
from venture_connect.realtime.registry import ConnectionRegistry
from venture_connect.storage.db import db_session
from venture_connect.storage.repositories import UserRepository

log = get_project_logger()


def _request_meta(request: Request | None) -> tuple[str, str, str | None]:
    if request is None:
        return "unknown", "UNKNOWN", None
    endpoint = request.url.path
    method = request.method
    client_ip = request.client.host if request.client else None
    return endpoint, method, client_ip


def _audit_allow(*, request: Request | None, ctx: AuthContext, reason: str) -> None:
    endpoint, method, client_ip = _request_meta(request)
    log.info(
        "security_audit_allow",
        extra={
            "payload": {
                "endpoint": endpoint,
                "method": method,
                "subject": ctx.user_id,
                "auth_type": ctx.auth_type,
                "reason": reason,
                "client_ip": client_ip,
            }
        },
    )


def _audit_deny(
    *,
    request: Request | None,
    status_code: int,
    reason: str,
    error_code: str,
    auth_type: str | None = None,
    subject: str | None = None,
) -> None:
    endpoint, method, client_ip = _request_meta(request)
    log.warning(
        "security_audit_deny",
        extra={
            "payload": {
                "endpoint": endpoint,
                "method": method,
                "status_code": status_code,
                "reason": reason,
                "error_code": error_code,
                "auth_type": auth_type or "unknown",
                "subject": subject or "unknown",
                "client_ip": client_ip,
            }
        },
    )


def _user_exists(user_id: str) -> bool:
    with db_session() as s:
        return UserRepository(s).exists(user_id)


def auth_dep(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> AuthContext:
    """
    Проверка авторизации для HTTP.
    Ошибки уходят как UnauthorizedError -> общий обработчик в main.py.
    """
    dev_user_id = request.headers.get(get_settings().dev_user_header)
    try:
        ctx = require_auth(authorization=authorization, dev_user_id=dev_user_id)
    except UnauthorizedError as e:
        _audit_deny(
            request=request,
            status_code=status.HTTP_401_UNAUTHORIZED,
            reason=e.message,
            error_code=e.code,
        )
        raise

    if not _user_exists(ctx.user_id):
        err = UnauthorizedError("Пользователь не найден")
        _audit_deny(
            request=request,
            status_code=status.HTTP_401_UNAUTHORIZED,
            reason="user_not_found",
            error_code=err.code,
            auth_type=ctx.auth_type,
            subject=ctx.user_id,
        )
        raise err

    _audit_allow(request=request, ctx=ctx, reason="auth_ok")
    return ctx


def get_registry(request: Request) -> ConnectionRegistry:
    return request.app.state.connections
