"""
Репозитории (DAO слой).

Правила:
- Никакой бизнес-логики
- Только CRUD и запросы
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import and_, asc, desc, or_
from sqlalchemy.orm import Session, joinedload

from venture_connect.domain.enums import ACTIVE_MEETING_STATUSES, MeetingStatus

from .models import Meeting, Message, Notification, Post, User, participant_pair


# =============================================================================
# USER / POST REPOSITORIES
# =============================================================================
class UserRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: str) -> User | None:
        return self.session.get(User, user_id)

    def exists(self, user_id: str) -> bool:
        return self.get(user_id) is not None

    def save(self, user: User) -> None:
        self.session.add(user)


class PostRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, post_id: str) -> Post | None:
        return self.session.get(Post, post_id)

    def save(self, post: Post) -> None:
        self.session.add(post)


# =============================================================================
# MEETING REPOSITORY
# =============================================================================
class MeetingRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, meeting_id: str) -> Meeting | None:
        return self.session.get(Meeting, meeting_id)

    def save(self, meeting: Meeting) -> None:
        self.session.add(meeting)

    def find_active_slot(
        self, *, post_owner_id: str, scheduled_date: date, scheduled_time: str
    ) -> Meeting | None:
        return (
            self.session.query(Meeting)
            .filter(
                Meeting.post_owner_id == post_owner_id,
                Meeting.scheduled_date == scheduled_date,
                Meeting.scheduled_time == scheduled_time,
                Meeting.status.in_(ACTIVE_MEETING_STATUSES),
            )
            .first()
        )

    def latest_accepted_between(
        self, *, user_a: str, user_b: str, accepted_after: datetime
    ) -> Meeting | None:
        """
        Последняя принятая встреча между двумя пользователями (в любую сторону),
        принятая позже accepted_after.
        """
        return (
            self.session.query(Meeting)
            .filter(
                Meeting.status == MeetingStatus.accepted,
                Meeting.accepted_at.is_not(None),
                Meeting.accepted_at > accepted_after,
                or_(
                    and_(Meeting.requester_id == user_a, Meeting.post_owner_id == user_b),
                    and_(Meeting.requester_id == user_b, Meeting.post_owner_id == user_a),
                ),
            )
            .order_by(desc(Meeting.accepted_at))
            .first()
        )

    def list_incoming(self, *, user_id: str, status: MeetingStatus | None = None) -> list[Meeting]:
        query = (
            self.session.query(Meeting)
            .options(joinedload(Meeting.requester), joinedload(Meeting.post))
            .filter(Meeting.post_owner_id == user_id)
        )
        if status is not None:
            query = query.filter(Meeting.status == status)
        return query.order_by(desc(Meeting.created_at), desc(Meeting.id)).all()

    def list_outgoing(self, *, user_id: str, status: MeetingStatus | None = None) -> list[Meeting]:
        query = (
            self.session.query(Meeting)
            .options(joinedload(Meeting.post_owner), joinedload(Meeting.post))
            .filter(Meeting.requester_id == user_id)
        )
        if status is not None:
            query = query.filter(Meeting.status == status)
        return query.order_by(
            asc(Meeting.scheduled_date), asc(Meeting.scheduled_time), asc(Meeting.id)
        ).all()

    def list_reminder_candidates(self, *, date_from: date, date_to: date) -> list[Meeting]:
        return (
            self.session.query(Meeting)
            .filter(
                Meeting.status == MeetingStatus.accepted,
                Meeting.reminder5_sent_at.is_(None),
                Meeting.scheduled_date >= date_from,
                Meeting.scheduled_date <= date_to,
            )
            .order_by(asc(Meeting.scheduled_date), asc(Meeting.scheduled_time))
            .all()
        )

    def reminder_lock_query(self, meeting_id: str):
        """
        Строка встречи под FOR UPDATE SKIP LOCKED (PostgreSQL; SQLite игнорирует).
        Занятую параллельным сканом встречу пропускаем, а не ждём.
        """
        return (
            self.session.query(Meeting)
            .filter(Meeting.id == meeting_id, Meeting.reminder5_sent_at.is_(None))
            .with_for_update(skip_locked=True)
        )

    def lock_for_reminder(self, meeting_id: str) -> Meeting | None:
        return self.reminder_lock_query(meeting_id).first()


# =============================================================================
# MESSAGE REPOSITORY
# =============================================================================
class MessageRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, message_id: str) -> Message | None:
        return self.session.get(Message, message_id)

    def add(self, message: Message) -> None:
        self.session.add(message)

    def list_between(
        self,
        *,
        user_a: str,
        user_b: str,
        limit: int,
        before: datetime | None = None,
    ) -> list[Message]:
        """
        Переписка пары, от новых к старым.
        """
        low, high = participant_pair(user_a, user_b)
        query = (
            self.session.query(Message)
            .options(joinedload(Message.sender), joinedload(Message.recipient))
            .filter(Message.participant_low == low, Message.participant_high == high)
        )
        if before is not None:
            query = query.filter(Message.created_at < before)
        return query.order_by(desc(Message.created_at), desc(Message.id)).limit(limit).all()

    def list_recent_for_user(self, *, user_id: str, limit: int) -> list[Message]:
        return (
            self.session.query(Message)
            .options(joinedload(Message.sender), joinedload(Message.recipient))
            .filter(or_(Message.sender_id == user_id, Message.recipient_id == user_id))
            .order_by(desc(Message.created_at), desc(Message.id))
            .limit(limit)
            .all()
        )


# =============================================================================
# NOTIFICATION REPOSITORY
# =============================================================================
class NotificationRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, notification: Notification) -> None:
        self.session.add(notification)

    def list_for_user(
        self, *, user_id: str, unread_only: bool = False, limit: int = 100
    ) -> list[Notification]:
        query = self.session.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.read.is_(False))
        return (
            query.order_by(desc(Notification.created_at), desc(Notification.id))
            .limit(max(1, min(limit, 500)))
            .all()
        )
