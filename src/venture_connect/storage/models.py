"""
ORM-модели базы данных.

Назначение:
- Справочники пользователей и постов (внешние коллабораторы ядра)
- Встречи и их жизненный цикл
- Сообщения чата
- Уведомления пользователя (append-only inbox)
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from venture_connect.common.time import utc_now
from venture_connect.domain.enums import MeetingStatus, MeetingType

_ACTIVE_SLOT_WHERE = text("status IN ('pending', 'accepted')")


def _enum_values(enum_cls) -> list[str]:
    return [m.value for m in enum_cls]


# =============================================================================
# BASE
# =============================================================================
class Base(DeclarativeBase):
    pass


# =============================================================================
# USER / POST
# =============================================================================
class User(Base):
    """
    Пользователь (только поля, нужные ядру: отображение и email).
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    profile_picture: Mapped[str | None] = mapped_column(String(500), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    notifications: Mapped[list[Notification]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="Notification.user_id",
        order_by="Notification.created_at",
    )


class Post(Base):
    __tablename__ = "posts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    author_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    content: Mapped[str] = mapped_column(Text, default="", nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    author: Mapped[User] = relationship()


# =============================================================================
# MEETING
# =============================================================================
class Meeting(Base):
    """
    Запрос на встречу по посту.

    Один активный (pending/accepted) слот на владельца поста обеспечивается
    частичным уникальным индексом, а не только проверкой перед записью.
    """

    __tablename__ = "meetings"
    __table_args__ = (
        Index("ix_meetings_post_requester", "post_id", "requester_id"),
        Index("ix_meetings_owner_status", "post_owner_id", "status"),
        Index("ix_meetings_scheduled_date", "scheduled_date"),
        Index(
            "ux_meetings_owner_active_slot",
            "post_owner_id",
            "scheduled_date",
            "scheduled_time",
            unique=True,
            postgresql_where=_ACTIVE_SLOT_WHERE,
            sqlite_where=_ACTIVE_SLOT_WHERE,
        ),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    post_id: Mapped[str] = mapped_column(ForeignKey("posts.id"), nullable=False)
    requester_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)
    post_owner_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False)

    scheduled_date: Mapped[date] = mapped_column(Date, nullable=False)
    scheduled_time: Mapped[str] = mapped_column(String(5), nullable=False)
    meeting_type: Mapped[MeetingType] = mapped_column(
        Enum(MeetingType, name="meetingtype", values_callable=_enum_values),
        default=MeetingType.virtual,
        nullable=False,
    )
    meeting_link: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    status: Mapped[MeetingStatus] = mapped_column(
        Enum(MeetingStatus, name="meetingstatus", values_callable=_enum_values),
        default=MeetingStatus.pending,
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reminder5_sent_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    post: Mapped[Post] = relationship()
    requester: Mapped[User] = relationship(foreign_keys=[requester_id])
    post_owner: Mapped[User] = relationship(foreign_keys=[post_owner_id])


# =============================================================================
# MESSAGE
# =============================================================================
class Message(Base):
    """
    Сообщение чата.
    participant_low/high - отсортированная пара {sender, recipient}:
    одна выборка по паре отдаёт переписку в обе стороны.
    """

    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_pair_created", "participant_low", "participant_high", "created_at"),
        Index("ix_messages_sender_recipient_created", "sender_id", "recipient_id", "created_at"),
    )

    id: Mapped[str] = mapped_column(String(64), primary_key=True)

    sender_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    recipient_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    participant_low: Mapped[str] = mapped_column(String(64), nullable=False)
    participant_high: Mapped[str] = mapped_column(String(64), nullable=False)

    content: Mapped[str] = mapped_column(Text, nullable=False)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    sender: Mapped[User] = relationship(foreign_keys=[sender_id])
    recipient: Mapped[User] = relationship(foreign_keys=[recipient_id])

    @property
    def participants(self) -> frozenset[str]:
        return frozenset({self.sender_id, self.recipient_id})


def participant_pair(a: str, b: str) -> tuple[str, str]:
    """Каноническая (отсортированная) пара участников."""
    return (a, b) if a <= b else (b, a)


# =============================================================================
# NOTIFICATION
# =============================================================================
class Notification(Base):
    """
    Запись во "входящих" пользователя. Только добавление.
    """

    __tablename__ = "notifications"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)

    type: Mapped[str] = mapped_column(String(64), nullable=False)
    from_user_id: Mapped[str | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    meeting_id: Mapped[str | None] = mapped_column(ForeignKey("meetings.id"), nullable=True)
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    user: Mapped[User] = relationship(back_populates="notifications", foreign_keys=[user_id])
