"""
HTTP роуты для уведомлений (только чтение).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from apps.api_gateway.deps import auth_dep
from venture_connect.common.security import AuthContext
from venture_connect.contracts.http_api import Envelope, NotificationOut
from venture_connect.services.notification_service import list_notifications
from venture_connect.storage.db import db_session

router = APIRouter()


@router.get("/notifications", response_model=Envelope[list[NotificationOut]])
def my_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=100, ge=1, le=500),
    ctx: AuthContext = Depends(auth_dep),
) -> Envelope[list[NotificationOut]]:
    with db_session() as s:
        items = list_notifications(s, user_id=ctx.user_id, unread_only=unread_only, limit=limit)
        return Envelope[list[NotificationOut]](
            data=[NotificationOut.model_validate(n) for n in items]
        )
