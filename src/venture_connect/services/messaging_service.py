"""
Сервисный слой: сообщения чата.

Назначение:
- валидация и сохранение сообщения (сохраняем всегда, доставка отдельно)
- история переписки пары пользователей с курсором before
- сводка диалогов пользователя
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from venture_connect.common.config import get_settings
from venture_connect.common.errors import InvalidRequestError, NotFoundError
from venture_connect.common.ids import new_message_id
from venture_connect.common.logging import get_project_logger
from venture_connect.common.time import as_utc, utc_now
from venture_connect.storage.models import Message, participant_pair
from venture_connect.storage.repositories import MessageRepository, UserRepository

log = get_project_logger()


@dataclass
class Conversation:
    counterpart_id: str
    counterpart_name: str
    last_message: Message


def parse_before(raw: str | None) -> datetime | None:
    """
    ISO-строка курсора -> aware UTC. Нечитаемое значение игнорируется (None).
    """
    if not raw or not raw.strip():
        return None
    value = raw.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        return as_utc(datetime.fromisoformat(value))
    except ValueError:
        return None


def clamp_limit(raw: int | str | None) -> int:
    s = get_settings()
    try:
        limit = int(raw) if raw is not None and str(raw).strip() else s.message_history_default_limit
    except (TypeError, ValueError):
        limit = s.message_history_default_limit
    return max(1, min(limit, int(s.message_history_max_limit)))


def send_message(
    session: Session,
    *,
    sender_id: str,
    recipient_id: str,
    content: str | None,
    now: datetime | None = None,
) -> Message:
    if not recipient_id or sender_id == recipient_id:
        raise InvalidRequestError("Некорректный получатель")

    text = (content or "").strip()
    if not text:
        raise InvalidRequestError("Текст сообщения обязателен")
    max_len = int(get_settings().message_max_length)
    if len(text) > max_len:
        raise InvalidRequestError(
            f"Сообщение длиннее {max_len} символов", {"length": len(text)}
        )

    if UserRepository(session).get(recipient_id) is None:
        raise NotFoundError("Получатель не найден", {"recipient_id": recipient_id})

    low, high = participant_pair(sender_id, recipient_id)
    message = Message(
        id=new_message_id(),
        sender_id=sender_id,
        recipient_id=recipient_id,
        participant_low=low,
        participant_high=high,
        content=text,
        read=False,
        created_at=now or utc_now(),
    )
    MessageRepository(session).add(message)
    session.flush()

    log.info(
        "message_persisted",
        extra={
            "payload": {
                "message_id": message.id,
                "sender_id": sender_id,
                "recipient_id": recipient_id,
            }
        },
    )
    return message


def history(
    session: Session,
    *,
    user_id: str,
    other_id: str,
    limit: int | str | None = None,
    before: datetime | None = None,
) -> list[Message]:
    """
    Последние limit сообщений пары (до before), в хронологическом порядке.
    """
    if not other_id or other_id == user_id:
        raise InvalidRequestError("Некорректный пользователь")

    newest_first = MessageRepository(session).list_between(
        user_a=user_id, user_b=other_id, limit=clamp_limit(limit), before=before
    )
    return list(reversed(newest_first))


def conversations(session: Session, *, user_id: str) -> list[Conversation]:
    """
    По одному диалогу на собеседника, с последним сообщением; свежие сверху.
    """
    scan_limit = max(1, int(get_settings().conversations_scan_limit))
    recent = MessageRepository(session).list_recent_for_user(user_id=user_id, limit=scan_limit)

    out: dict[str, Conversation] = {}
    for m in recent:
        outgoing = m.sender_id == user_id
        other_id = m.recipient_id if outgoing else m.sender_id
        if other_id in out:
            continue
        other = m.recipient if outgoing else m.sender
        out[other_id] = Conversation(
            counterpart_id=other_id,
            counterpart_name=other.name if other is not None else "",
            last_message=m,
        )
    return list(out.values())
