"""
HTTP API контракты (Pydantic-модели).

Назначение:
- валидация входа/выхода на уровне FastAPI
- стабильные структуры для клиентов
- единый конверт ответа {success, message, data}
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from venture_connect.common.time import as_utc
from venture_connect.domain.enums import MeetingStatus, MeetingType

T = TypeVar("T")


# =============================================================================
# КОНВЕРТ
# =============================================================================
class Envelope(BaseModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T


class ErrorResponse(BaseModel):
    success: bool = False
    code: str
    message: str
    details: dict[str, Any] | None = None


# =============================================================================
# ЗАПРОСЫ
# =============================================================================
class MeetingScheduleRequest(BaseModel):
    # Поля необязательные на уровне схемы: пустые значения отдаём
    # сервису, чтобы ответ был invalid_request (400), а не 422
    date: str | None = None
    time: str | None = None
    message: str | None = None
    meeting_type: str | None = Field(default=None, alias="meetingType")

    model_config = ConfigDict(populate_by_name=True)


class MessageSendRequest(BaseModel):
    content: str | None = None


# =============================================================================
# ОТВЕТЫ
# =============================================================================
class _OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class UserBrief(_OrmModel):
    id: str
    name: str
    email: str | None = None
    profile_picture: str | None = None


class PostBrief(_OrmModel):
    id: str
    title: str
    content: str = ""


class MeetingOut(_OrmModel):
    id: str
    post: PostBrief
    requester: UserBrief
    post_owner: UserBrief

    scheduled_date: date
    scheduled_time: str
    meeting_type: MeetingType
    meeting_link: str = ""
    message: str
    status: MeetingStatus

    created_at: datetime
    updated_at: datetime
    accepted_at: datetime | None = None
    reminder5_sent_at: datetime | None = None

    @field_validator(
        "created_at", "updated_at", "accepted_at", "reminder5_sent_at", mode="before"
    )
    @classmethod
    def _utc(cls, v: Any) -> Any:
        return as_utc(v) if isinstance(v, datetime) else v


class MessageOut(_OrmModel):
    id: str
    sender: UserBrief
    recipient: UserBrief
    participants: list[str]
    content: str
    read: bool = False
    created_at: datetime

    @field_validator("participants", mode="before")
    @classmethod
    def _sorted_pair(cls, v: Any) -> Any:
        if isinstance(v, set | frozenset | tuple):
            return sorted(v)
        return v

    @field_validator("created_at", mode="before")
    @classmethod
    def _utc(cls, v: Any) -> Any:
        return as_utc(v) if isinstance(v, datetime) else v


class ConversationSummary(BaseModel):
    counterpart_id: str
    counterpart_name: str
    last_message: MessageOut


class NotificationOut(_OrmModel):
    id: str
    type: str
    from_user_id: str | None = None
    message: str
    meeting_id: str | None = None
    read: bool = False
    created_at: datetime

    @field_validator("created_at", mode="before")
    @classmethod
    def _utc(cls, v: Any) -> Any:
        return as_utc(v) if isinstance(v, datetime) else v


class ReminderScanOut(BaseModel):
    scanned: int
    sent: int
    skipped: int
    failed: int
