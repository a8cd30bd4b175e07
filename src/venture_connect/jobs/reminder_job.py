"""
Reminder job.

Назначение:
- раз в REMINDER_INTERVAL_SEC искать принятые встречи, которые начнутся
  в ближайшие REMINDER_LOOKAHEAD_SEC (5 минут), и слать одно письмо обоим участникам
- reminder5_sent_at - защита от повторной отправки

Правила:
- окно (0, lookahead]: уже начавшиеся и слишком далёкие пропускаем без отметки
- нет ни одного email -> пропуск без отметки
- ошибка почты -> лог, без отметки, повтор на следующем скане
- успешная отправка -> отметка, даже если адрес был только у одного участника
- статус перепроверяется по заблокированной строке перед отправкой (отменённым не напоминаем)
- строка встречи под FOR UPDATE SKIP LOCKED: два параллельных скана не шлют дважды
- ошибка по одной встрече не прерывает скан остальных
"""

from __future__ import annotations

import asyncio
import html
from dataclasses import dataclass
from datetime import datetime, timedelta

from venture_connect.common.config import get_settings
from venture_connect.common.errors import MailDeliveryError
from venture_connect.common.logging import get_jobs_logger
from venture_connect.common.metrics import record_reminder_result, record_reminder_scan
from venture_connect.common.time import local_today, meeting_start_utc, meetings_tz, utc_now
from venture_connect.delivery.base import MailProvider
from venture_connect.delivery.email.sender import SMTPEmailProvider
from venture_connect.domain.enums import MeetingStatus
from venture_connect.storage.db import db_session
from venture_connect.storage.models import Meeting
from venture_connect.storage.repositories import MeetingRepository

log = get_jobs_logger()

# исходы обработки одного кандидата
SENT = "sent"
OUTSIDE_WINDOW = "outside_window"
PARSE_FAILED = "parse_failed"
NO_RECIPIENTS = "no_recipients"
NOT_ACCEPTED = "not_accepted"
FAILED = "failed"


@dataclass
class ReminderScanResult:
    scanned: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0


def _recipients(meeting: Meeting) -> list[str]:
    emails: list[str] = []
    for user in (meeting.requester, meeting.post_owner):
        email = (user.email or "").strip() if user is not None else ""
        if email and email not in emails:
            emails.append(email)
    return emails


def _build_mail(starts_at: datetime, lookahead_min: int) -> tuple[str, str, str]:
    local = starts_at.astimezone(meetings_tz())
    friendly = local.strftime("%d.%m.%Y %H:%M")
    tz_name = str(meetings_tz())
    subject = f"Meeting Reminder (starts in ~{lookahead_min} minutes)"
    text = f"Reminder: your meeting starts at {friendly} ({tz_name})."
    body = (
        "<p>Reminder: your meeting starts at "
        f"<b>{html.escape(friendly)}</b> ({html.escape(tz_name)}).</p>"
    )
    return subject, text, body


def _process_one(
    meeting_id: str, *, now: datetime, lookahead: timedelta, mailer: MailProvider
) -> str:
    with db_session() as s:
        # строка заблокирована до commit: параллельный скан её пропустит, отмена подождёт
        meeting = MeetingRepository(s).lock_for_reminder(meeting_id)
        if meeting is None:
            return NOT_ACCEPTED

        starts_at = meeting_start_utc(meeting.scheduled_date, meeting.scheduled_time)
        if starts_at is None:
            log.warning(
                "reminder_parse_failed",
                extra={
                    "payload": {
                        "meeting_id": meeting_id,
                        "scheduled_date": str(meeting.scheduled_date),
                        "scheduled_time": meeting.scheduled_time,
                    }
                },
            )
            return PARSE_FAILED

        delta = starts_at - now
        if not (timedelta(0) < delta <= lookahead):
            return OUTSIDE_WINDOW

        recipients = _recipients(meeting)
        if not recipients:
            log.info("reminder_no_recipients", extra={"payload": {"meeting_id": meeting_id}})
            return NO_RECIPIENTS

        # статус мог смениться после выборки кандидатов
        if meeting.status != MeetingStatus.accepted:
            log.info(
                "reminder_skipped_status_changed",
                extra={
                    "payload": {
                        "meeting_id": meeting_id,
                        "status": MeetingStatus(meeting.status).value,
                    }
                },
            )
            return NOT_ACCEPTED

        subject, text_body, html_body = _build_mail(
            starts_at, max(1, int(lookahead.total_seconds() // 60))
        )
        result = mailer.send_mail(
            recipients=recipients,
            subject=subject,
            text_body=text_body,
            html_body=html_body,
            ref_id=meeting_id,
        )
        if not result.ok:
            raise MailDeliveryError(details={"meeting_id": meeting_id, "err": result.error})

        meeting.reminder5_sent_at = now
        log.info(
            "reminder_sent",
            extra={"payload": {"meeting_id": meeting_id, "recipients": len(recipients)}},
        )
        return SENT


def scan_and_notify(
    *, now: datetime | None = None, mailer: MailProvider | None = None
) -> ReminderScanResult:
    """
    Один проход скана. Каждая встреча обрабатывается в своей транзакции.
    """
    settings = get_settings()
    now = now or utc_now()
    mailer = mailer or SMTPEmailProvider()
    lookahead = timedelta(seconds=max(1, int(settings.reminder_lookahead_sec)))

    # scheduled_date без времени: берём с запасом вчера..завтра
    today = local_today(now)
    with db_session() as s:
        candidate_ids = [
            m.id
            for m in MeetingRepository(s).list_reminder_candidates(
                date_from=today - timedelta(days=1), date_to=today + timedelta(days=1)
            )
        ]

    result = ReminderScanResult(scanned=len(candidate_ids))
    for meeting_id in candidate_ids:
        try:
            outcome = _process_one(meeting_id, now=now, lookahead=lookahead, mailer=mailer)
        except MailDeliveryError as e:
            outcome = FAILED
            log.error(
                "reminder_mail_failed",
                extra={"payload": {"meeting_id": meeting_id, "err": str(e.details)[:300]}},
            )
        except Exception as e:
            outcome = FAILED
            log.error(
                "reminder_meeting_failed",
                extra={"payload": {"meeting_id": meeting_id, "err": str(e)[:300]}},
            )

        record_reminder_result(outcome)
        if outcome == SENT:
            result.sent += 1
        elif outcome == FAILED:
            result.failed += 1
        else:
            result.skipped += 1

    return result


def run(
    *, now: datetime | None = None, mailer: MailProvider | None = None, source: str = "job"
) -> ReminderScanResult | None:
    settings = get_settings()
    if not settings.reminder_enabled:
        log.info("reminder_job_skipped", extra={"payload": {"reason": "disabled"}})
        return None

    record_reminder_scan(source=source)
    result = scan_and_notify(now=now, mailer=mailer)
    if result.scanned:
        log.info(
            "reminder_job_finished",
            extra={
                "payload": {
                    "source": source,
                    "scanned": result.scanned,
                    "sent": result.sent,
                    "skipped": result.skipped,
                    "failed": result.failed,
                }
            },
        )
    return result


async def run_forever_async(*, startup_delay_sec: float, interval_sec: float) -> None:
    """
    Фоновая задача внутри API-процесса: первый скан через startup_delay_sec
    (чтобы не ждать полный период после рестарта), дальше каждые interval_sec.
    Скан синхронный (SQLAlchemy/SMTP), поэтому уходит в asyncio.to_thread.
    """
    await asyncio.sleep(max(0.0, startup_delay_sec))
    source = "startup"
    while True:
        try:
            await asyncio.to_thread(run, source=source)
        except Exception as e:
            log.error("reminder_scan_failed", extra={"payload": {"err": str(e)[:300]}})
        source = "interval"
        await asyncio.sleep(max(1.0, interval_sec))
