"""
Утилиты времени.

Назначение:
- единый источник "сейчас" (UTC, aware)
- сборка момента начала встречи из даты + "HH:MM" в часовом поясе встреч
- нормализация naive datetime из БД (SQLite отдаёт без tzinfo)
"""

from __future__ import annotations

import re
from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo

from venture_connect.common.config import get_settings

_HHMM_RE = re.compile(r"^([01]?\d|2[0-3]):([0-5]\d)$")
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def utc_now() -> datetime:
    """
    Текущее время в UTC (datetime).
    """
    return datetime.now(UTC)


def as_utc(value: datetime | None) -> datetime | None:
    """
    naive -> считаем UTC; aware -> переводим в UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def meetings_tz() -> ZoneInfo:
    return ZoneInfo(get_settings().meetings_timezone or "UTC")


def parse_hhmm(raw: str | None) -> time | None:
    """
    "9:05" / "09:05" -> time(9, 5). Всё остальное -> None.
    """
    m = _HHMM_RE.match((raw or "").strip())
    if not m:
        return None
    return time(int(m.group(1)), int(m.group(2)))


def parse_iso_date(raw: str | None) -> date | None:
    value = (raw or "").strip()
    if not _ISO_DATE_RE.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def meeting_start_utc(scheduled_date: date | None, scheduled_time: str | None) -> datetime | None:
    """
    Дата встречи + "HH:MM" (стенное время в MEETINGS_TIMEZONE) -> абсолютный момент в UTC.
    None, если время не парсится.
    """
    if scheduled_date is None:
        return None
    if isinstance(scheduled_date, datetime):
        scheduled_date = scheduled_date.date()
    t = parse_hhmm(scheduled_time)
    if t is None:
        return None
    local = datetime.combine(scheduled_date, t, tzinfo=meetings_tz())
    return local.astimezone(UTC)


def local_today(now: datetime) -> date:
    return now.astimezone(meetings_tz()).date()
