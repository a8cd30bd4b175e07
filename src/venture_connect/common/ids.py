"""
Генерация идентификаторов.

Назначение:
- id пользователей / постов / встреч / сообщений / уведомлений
- id realtime-соединений
"""

from __future__ import annotations

import secrets
from datetime import UTC, datetime


def new_entity_id(prefix: str) -> str:
    """
    Идентификатор сущности.
    Формат: <prefix>_<UTCYYYYMMDDHHMMSS>_<rand>
    """
    ts = datetime.now(UTC).strftime("%Y%m%d%H%M%S")
    rnd = secrets.token_hex(6)
    return f"{prefix}_{ts}_{rnd}"


def new_meeting_id() -> str:
    return new_entity_id("mtg")


def new_message_id() -> str:
    return new_entity_id("msg")


def new_notification_id() -> str:
    return new_entity_id("ntf")


def new_connection_id(prefix: str = "conn") -> str:
    """Id WebSocket-соединения (живёт только в памяти процесса)."""
    return f"{prefix}_{secrets.token_hex(8)}"
