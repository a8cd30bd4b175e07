"""
Realtime-релей сообщений.

Алгоритм отправки:
- сообщение сохраняется в БД всегда (БД = надёжный журнал)
- затем событие message:new уходит во все живые соединения получателя
- нет соединений -> получатель заберёт сообщение из истории, это не ошибка
- у push нет подтверждения и ретраев
"""

from __future__ import annotations

import asyncio

from venture_connect.common.errors import UnauthorizedError
from venture_connect.common.logging import get_project_logger
from venture_connect.common.metrics import record_message_delivery
from venture_connect.common.security import extract_bearer, require_auth
from venture_connect.contracts.http_api import MessageOut
from venture_connect.contracts.ws_events import message_new_event
from venture_connect.realtime.registry import ConnectionRegistry, EventSink
from venture_connect.services.messaging_service import send_message
from venture_connect.storage.db import db_session
from venture_connect.storage.repositories import UserRepository

log = get_project_logger()


def _persist_message(sender_id: str, recipient_id: str, content: str | None) -> MessageOut:
    with db_session() as s:
        message = send_message(
            s, sender_id=sender_id, recipient_id=recipient_id, content=content
        )
        return MessageOut.model_validate(message)


async def relay_message(
    registry: ConnectionRegistry,
    *,
    sender_id: str,
    recipient_id: str,
    content: str | None,
) -> MessageOut:
    payload = await asyncio.to_thread(_persist_message, sender_id, recipient_id, content)

    delivered = await registry.emit_to_user(
        recipient_id, message_new_event(payload.model_dump(mode="json"))
    )
    record_message_delivery(delivered=delivered)
    log.info(
        "message_relayed",
        extra={
            "payload": {
                "message_id": payload.id,
                "recipient_id": recipient_id,
                "delivered": delivered,
            }
        },
    )
    return payload


def _user_exists(user_id: str) -> bool:
    with db_session() as s:
        return UserRepository(s).exists(user_id)


async def authenticate_connection(
    registry: ConnectionRegistry,
    *,
    connection_id: str,
    token: str | None,
    sink: EventSink,
) -> str:
    """
    Токен -> user_id, регистрация соединения в реестре.
    Ошибка -> UnauthorizedError; соединение при этом не закрываем (решает вызывающий).
    """
    ctx = require_auth(authorization=token, dev_user_id=extract_bearer(token))
    if not await asyncio.to_thread(_user_exists, ctx.user_id):
        raise UnauthorizedError("Токен валиден, но пользователь не найден")

    registry.add(ctx.user_id, connection_id, sink)
    log.info(
        "realtime_auth_ok",
        extra={"payload": {"user_id": ctx.user_id, "connection_id": connection_id}},
    )
    return ctx.user_id


def disconnect_connection(registry: ConnectionRegistry, connection_id: str) -> str | None:
    """
    Убирает соединение из реестра. Неавторизованное соединение -> no-op.
    """
    user_id = registry.remove(connection_id)
    if user_id is not None:
        log.info(
            "realtime_disconnected",
            extra={"payload": {"user_id": user_id, "connection_id": connection_id}},
        )
    return user_id
