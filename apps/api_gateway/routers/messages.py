"""
HTTP роуты для сообщений.

- POST /v1/messages/{user_id}               отправка (сохранение + realtime push)
- GET  /v1/messages/with/{user_id}          история пары (?limit=&before=)
- GET  /v1/messages/conversations           сводка диалогов
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from apps.api_gateway.deps import auth_dep, get_registry
from venture_connect.common.security import AuthContext
from venture_connect.contracts.http_api import (
    ConversationSummary,
    Envelope,
    MessageOut,
    MessageSendRequest,
)
from venture_connect.realtime.registry import ConnectionRegistry
from venture_connect.realtime.relay import relay_message
from venture_connect.services import messaging_service
from venture_connect.storage.db import db_session

router = APIRouter()


@router.get("/messages/conversations", response_model=Envelope[list[ConversationSummary]])
def list_conversations(ctx: AuthContext = Depends(auth_dep)) -> Envelope[list[ConversationSummary]]:
    with db_session() as s:
        items = messaging_service.conversations(s, user_id=ctx.user_id)
        return Envelope[list[ConversationSummary]](
            data=[
                ConversationSummary(
                    counterpart_id=c.counterpart_id,
                    counterpart_name=c.counterpart_name,
                    last_message=MessageOut.model_validate(c.last_message),
                )
                for c in items
            ]
        )


@router.get("/messages/with/{user_id}", response_model=Envelope[list[MessageOut]])
def message_history(
    user_id: str,
    limit: str | None = Query(default=None),
    before: str | None = Query(default=None),
    ctx: AuthContext = Depends(auth_dep),
) -> Envelope[list[MessageOut]]:
    with db_session() as s:
        items = messaging_service.history(
            s,
            user_id=ctx.user_id,
            other_id=user_id,
            limit=limit,
            before=messaging_service.parse_before(before),
        )
        return Envelope[list[MessageOut]](data=[MessageOut.model_validate(m) for m in items])


@router.post(
    "/messages/{user_id}",
    response_model=Envelope[MessageOut],
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    user_id: str,
    req: MessageSendRequest,
    ctx: AuthContext = Depends(auth_dep),
    registry: ConnectionRegistry = Depends(get_registry),
) -> Envelope[MessageOut]:
    payload = await relay_message(
        registry, sender_id=ctx.user_id, recipient_id=user_id, content=req.content
    )
    return Envelope[MessageOut](data=payload)
