"""
HTTP роуты для встреч.

- POST /v1/meetings/posts/{post_id}/meeting   запрос встречи по посту
- GET  /v1/meetings/requests                  входящие (к моим постам)
- GET  /v1/meetings/scheduled                 исходящие (мои запросы)
- PUT  /v1/meetings/{meeting_id}/accept|reject|cancel
- POST /v1/meetings/reminders/run             ручной скан напоминаний (dev)

Авторизация: Depends(auth_dep)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from apps.api_gateway.deps import auth_dep
from venture_connect.common.config import get_settings
from venture_connect.common.errors import ForbiddenError
from venture_connect.common.logging import get_project_logger
from venture_connect.common.security import AuthContext
from venture_connect.contracts.http_api import (
    Envelope,
    MeetingOut,
    MeetingScheduleRequest,
    ReminderScanOut,
)
from venture_connect.jobs.reminder_job import run as run_reminders
from venture_connect.services import meeting_service
from venture_connect.storage.db import db_session

log = get_project_logger()

router = APIRouter()


@router.post(
    "/meetings/posts/{post_id}/meeting",
    response_model=Envelope[MeetingOut],
    status_code=status.HTTP_201_CREATED,
)
def schedule_meeting(
    post_id: str,
    req: MeetingScheduleRequest,
    ctx: AuthContext = Depends(auth_dep),
) -> Envelope[MeetingOut]:
    with db_session() as s:
        m = meeting_service.schedule_meeting(
            s,
            post_id=post_id,
            requester_id=ctx.user_id,
            date=req.date,
            time=req.time,
            message=req.message,
            meeting_type=req.meeting_type,
        )
        return Envelope[MeetingOut](
            message="Запрос на встречу отправлен", data=MeetingOut.model_validate(m)
        )


@router.get("/meetings/requests", response_model=Envelope[list[MeetingOut]])
def incoming_requests(
    status_filter: str | None = Query(default=None, alias="status"),
    ctx: AuthContext = Depends(auth_dep),
) -> Envelope[list[MeetingOut]]:
    st = meeting_service.parse_status_filter(status_filter)
    with db_session() as s:
        items = meeting_service.list_incoming(s, user_id=ctx.user_id, status=st)
        return Envelope[list[MeetingOut]](data=[MeetingOut.model_validate(m) for m in items])


@router.get("/meetings/scheduled", response_model=Envelope[list[MeetingOut]])
def outgoing_requests(
    status_filter: str | None = Query(default=None, alias="status"),
    ctx: AuthContext = Depends(auth_dep),
) -> Envelope[list[MeetingOut]]:
    st = meeting_service.parse_status_filter(status_filter)
    with db_session() as s:
        items = meeting_service.list_outgoing(s, user_id=ctx.user_id, status=st)
        return Envelope[list[MeetingOut]](data=[MeetingOut.model_validate(m) for m in items])


@router.put("/meetings/{meeting_id}/accept", response_model=Envelope[MeetingOut])
def accept_meeting(meeting_id: str, ctx: AuthContext = Depends(auth_dep)) -> Envelope[MeetingOut]:
    with db_session() as s:
        m = meeting_service.accept_meeting(s, meeting_id=meeting_id, acting_user_id=ctx.user_id)
        return Envelope[MeetingOut](message="Встреча принята", data=MeetingOut.model_validate(m))


@router.put("/meetings/{meeting_id}/reject", response_model=Envelope[MeetingOut])
def reject_meeting(meeting_id: str, ctx: AuthContext = Depends(auth_dep)) -> Envelope[MeetingOut]:
    with db_session() as s:
        m = meeting_service.reject_meeting(s, meeting_id=meeting_id, acting_user_id=ctx.user_id)
        return Envelope[MeetingOut](message="Встреча отклонена", data=MeetingOut.model_validate(m))


@router.put("/meetings/{meeting_id}/cancel", response_model=Envelope[MeetingOut])
def cancel_meeting(meeting_id: str, ctx: AuthContext = Depends(auth_dep)) -> Envelope[MeetingOut]:
    with db_session() as s:
        m = meeting_service.cancel_meeting(s, meeting_id=meeting_id, acting_user_id=ctx.user_id)
        return Envelope[MeetingOut](message="Встреча отменена", data=MeetingOut.model_validate(m))


@router.post("/meetings/reminders/run", response_model=Envelope[ReminderScanOut | None])
def run_reminders_now(ctx: AuthContext = Depends(auth_dep)) -> Envelope[ReminderScanOut | None]:
    if not get_settings().reminder_manual_trigger_enabled:
        raise ForbiddenError("Ручной запуск напоминаний выключен")

    log.info("reminder_manual_trigger", extra={"payload": {"by": ctx.user_id}})
    result = run_reminders(source="manual")
    if result is None:
        return Envelope[ReminderScanOut | None](message="Напоминания выключены", data=None)
    return Envelope[ReminderScanOut | None](
        data=ReminderScanOut(
            scanned=result.scanned,
            sent=result.sent,
            skipped=result.skipped,
            failed=result.failed,
        )
    )
