"""
Сервисный слой: жизненный цикл встреч.

Назначение:
- запрос встречи по посту (schedule) с проверками слота и cooldown
- accept / reject (только владелец поста), cancel (любой из участников)
- списки входящих и исходящих запросов

Все функции работают в переданной сессии и не коммитят сами:
границы транзакции задаёт вызывающий (db_session()).
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from venture_connect.common.config import get_settings
from venture_connect.common.errors import (
    CooldownActiveError,
    ForbiddenError,
    InvalidRequestError,
    InvalidStateTransitionError,
    NotFoundError,
    SchedulingConflictError,
    SelfMeetingNotAllowedError,
)
from venture_connect.common.ids import new_meeting_id
from venture_connect.common.logging import get_project_logger
from venture_connect.common.metrics import record_meeting_transition
from venture_connect.common.time import meeting_start_utc, parse_hhmm, parse_iso_date, utc_now
from venture_connect.domain.enums import MeetingStatus, MeetingType, NotificationType
from venture_connect.domain.state_machine import transition
from venture_connect.services.notification_service import append_notification
from venture_connect.storage.models import Meeting
from venture_connect.storage.repositories import MeetingRepository, PostRepository

log = get_project_logger()

_SLOT_INDEX_MARKERS = ("ux_meetings_owner_active_slot", "meetings.post_owner_id")


def _is_slot_violation(err: IntegrityError) -> bool:
    text = str(getattr(err, "orig", err))
    return any(marker in text for marker in _SLOT_INDEX_MARKERS)


def _parse_meeting_type(raw: str | None) -> MeetingType:
    if raw is None or not str(raw).strip():
        return MeetingType.virtual
    try:
        return MeetingType(str(raw).strip())
    except ValueError as e:
        raise InvalidRequestError(
            "meeting_type должен быть virtual или in-person", {"meeting_type": raw}
        ) from e


def parse_status_filter(raw: str | None) -> MeetingStatus | None:
    if raw is None or not raw.strip():
        return None
    try:
        return MeetingStatus(raw.strip())
    except ValueError as e:
        raise InvalidRequestError("Неизвестный статус встречи", {"status": raw}) from e


# =============================================================================
# SCHEDULE
# =============================================================================
def schedule_meeting(
    session: Session,
    *,
    post_id: str,
    requester_id: str,
    date: str | None,
    time: str | None,
    message: str | None,
    meeting_type: str | None = None,
    now: datetime | None = None,
) -> Meeting:
    now = now or utc_now()
    settings = get_settings()

    post = PostRepository(session).get(post_id)
    if post is None:
        raise NotFoundError("Пост не найден", {"post_id": post_id})

    text = (message or "").strip()
    if not (date or "").strip() or not (time or "").strip() or not text:
        raise InvalidRequestError("Дата, время и сообщение обязательны")

    scheduled_date = parse_iso_date(date)
    if scheduled_date is None:
        raise InvalidRequestError("Дата должна быть в формате YYYY-MM-DD", {"date": date})
    scheduled_t = parse_hhmm(time)
    if scheduled_t is None:
        raise InvalidRequestError("Время должно быть в формате HH:MM", {"time": time})
    scheduled_time = scheduled_t.strftime("%H:%M")
    mtype = _parse_meeting_type(meeting_type)

    owner_id = post.author_id
    if owner_id == requester_id:
        raise SelfMeetingNotAllowedError()

    starts_at = meeting_start_utc(scheduled_date, scheduled_time)
    if starts_at is None or starts_at <= now:
        raise InvalidRequestError("Встречу можно назначить только на будущее время")

    repo = MeetingRepository(session)
    if repo.find_active_slot(
        post_owner_id=owner_id, scheduled_date=scheduled_date, scheduled_time=scheduled_time
    ):
        raise SchedulingConflictError()

    cooldown = timedelta(seconds=max(0, int(settings.meeting_cooldown_sec)))
    recent = repo.latest_accepted_between(
        user_a=requester_id, user_b=owner_id, accepted_after=now - cooldown
    )
    if recent is not None:
        raise CooldownActiveError(details={"meeting_id": recent.id})

    meeting = Meeting(
        id=new_meeting_id(),
        post_id=post.id,
        requester_id=requester_id,
        post_owner_id=owner_id,
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        meeting_type=mtype,
        meeting_link="",
        message=text,
        status=MeetingStatus.pending,
        created_at=now,
        updated_at=now,
    )
    repo.save(meeting)
    try:
        session.flush()
    except IntegrityError as e:
        # Параллельный запрос успел занять слот между проверкой и записью
        if _is_slot_violation(e):
            raise SchedulingConflictError() from e
        raise

    append_notification(
        session,
        user_id=owner_id,
        type=NotificationType.meeting_request,
        from_user_id=requester_id,
        message=f"Новый запрос на встречу по вашему посту: {post.title}",
        meeting_id=meeting.id,
    )

    record_meeting_transition(MeetingStatus.pending.value)
    log.info(
        "meeting_scheduled",
        extra={
            "payload": {
                "meeting_id": meeting.id,
                "post_id": post.id,
                "requester_id": requester_id,
                "post_owner_id": owner_id,
                "scheduled_date": scheduled_date.isoformat(),
                "scheduled_time": scheduled_time,
            }
        },
    )
    return meeting


# =============================================================================
# ACCEPT / REJECT / CANCEL
# =============================================================================
def _load(session: Session, meeting_id: str) -> Meeting:
    meeting = MeetingRepository(session).get(meeting_id)
    if meeting is None:
        raise NotFoundError("Встреча не найдена", {"meeting_id": meeting_id})
    return meeting


def _apply(meeting: Meeting, target: MeetingStatus, now: datetime) -> None:
    result = transition(meeting.status, target)
    if not result.ok:
        raise InvalidStateTransitionError(
            "Запрос на встречу уже обработан",
            {"meeting_id": meeting.id, "status": MeetingStatus(meeting.status).value},
        )
    meeting.status = result.status
    meeting.updated_at = now
    record_meeting_transition(result.status.value)


def accept_meeting(
    session: Session, *, meeting_id: str, acting_user_id: str, now: datetime | None = None
) -> Meeting:
    now = now or utc_now()
    meeting = _load(session, meeting_id)
    if meeting.post_owner_id != acting_user_id:
        raise ForbiddenError("Нет прав принять эту встречу")

    _apply(meeting, MeetingStatus.accepted, now)
    meeting.accepted_at = now

    append_notification(
        session,
        user_id=meeting.requester_id,
        type=NotificationType.meeting_accepted,
        from_user_id=acting_user_id,
        message="Ваш запрос на встречу принят",
        meeting_id=meeting.id,
    )
    log.info("meeting_accepted", extra={"payload": {"meeting_id": meeting.id}})
    return meeting


def reject_meeting(
    session: Session, *, meeting_id: str, acting_user_id: str, now: datetime | None = None
) -> Meeting:
    now = now or utc_now()
    meeting = _load(session, meeting_id)
    if meeting.post_owner_id != acting_user_id:
        raise ForbiddenError("Нет прав отклонить эту встречу")

    _apply(meeting, MeetingStatus.rejected, now)

    append_notification(
        session,
        user_id=meeting.requester_id,
        type=NotificationType.meeting_rejected,
        from_user_id=acting_user_id,
        message="Ваш запрос на встречу отклонён",
        meeting_id=meeting.id,
    )
    log.info("meeting_rejected", extra={"payload": {"meeting_id": meeting.id}})
    return meeting


def cancel_meeting(
    session: Session, *, meeting_id: str, acting_user_id: str, now: datetime | None = None
) -> Meeting:
    """
    Отмена любым из участников. accepted_at не сбрасывается.
    """
    now = now or utc_now()
    meeting = _load(session, meeting_id)
    if acting_user_id not in (meeting.requester_id, meeting.post_owner_id):
        raise ForbiddenError("Нет прав отменить эту встречу")

    _apply(meeting, MeetingStatus.cancelled, now)
    log.info(
        "meeting_cancelled",
        extra={"payload": {"meeting_id": meeting.id, "by": acting_user_id}},
    )
    return meeting


# =============================================================================
# LISTS
# =============================================================================
def list_incoming(
    session: Session, *, user_id: str, status: MeetingStatus | None = None
) -> list[Meeting]:
    """Запросы к моим постам, новые сверху."""
    return MeetingRepository(session).list_incoming(user_id=user_id, status=status)


def list_outgoing(
    session: Session, *, user_id: str, status: MeetingStatus | None = None
) -> list[Meeting]:
    """Мои запросы, ближайшие по времени встречи сверху."""
    return MeetingRepository(session).list_outgoing(user_id=user_id, status=status)
