"""
Доменные перечисления (enum).

Используются во всей системе:
- статус встречи
- формат встречи
- типы уведомлений
"""

from __future__ import annotations

import enum


class MeetingStatus(str, enum.Enum):
    """
    Статус запроса на встречу.
    """

    pending = "pending"
    accepted = "accepted"
    rejected = "rejected"
    cancelled = "cancelled"


# Статусы, которые "держат" слот владельца поста
ACTIVE_MEETING_STATUSES = (MeetingStatus.pending, MeetingStatus.accepted)


class MeetingType(str, enum.Enum):
    """
    Формат встречи.
    """

    virtual = "virtual"
    in_person = "in-person"


class NotificationType(str, enum.Enum):
    meeting_request = "meeting_request"
    meeting_accepted = "meeting_accepted"
    meeting_rejected = "meeting_rejected"
