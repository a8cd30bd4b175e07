"""
Уведомления пользователя (fan-out по событиям жизненного цикла).

Назначение:
- добавить запись во "входящие" пользователя
- отдать список для клиента

Запись добавляется в той же сессии/транзакции, что и переход статуса:
если уведомление не сохранилось, переход тоже откатывается.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from venture_connect.common.ids import new_notification_id
from venture_connect.common.logging import get_project_logger
from venture_connect.common.time import utc_now
from venture_connect.domain.enums import NotificationType
from venture_connect.storage.models import Notification
from venture_connect.storage.repositories import NotificationRepository

log = get_project_logger()


def append_notification(
    session: Session,
    *,
    user_id: str,
    type: NotificationType | str,
    from_user_id: str | None,
    message: str,
    meeting_id: str | None = None,
) -> Notification:
    ntype = type.value if isinstance(type, NotificationType) else str(type)
    notification = Notification(
        id=new_notification_id(),
        user_id=user_id,
        type=ntype,
        from_user_id=from_user_id,
        message=message.strip(),
        meeting_id=meeting_id,
        read=False,
        created_at=utc_now(),
    )
    NotificationRepository(session).add(notification)
    log.info(
        "notification_appended",
        extra={"payload": {"user_id": user_id, "type": ntype, "meeting_id": meeting_id}},
    )
    return notification


def list_notifications(
    session: Session, *, user_id: str, unread_only: bool = False, limit: int = 100
) -> list[Notification]:
    return NotificationRepository(session).list_for_user(
        user_id=user_id, unread_only=unread_only, limit=limit
    )
