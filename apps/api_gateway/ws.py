"""
WebSocket обработчик realtime-сообщений.

Протокол:
- соединение принимается без авторизации
- клиент присылает JSON {"event_type":"auth","token":"Bearer ..."}
  -> {"event_type":"auth:ok","user_id":...} или {"event_type":"auth:error",...}
  (соединение при ошибке не закрываем, клиент может повторить auth)
- после auth сервер пушит {"event_type":"message:new","data":<message>}
- любые другие события от клиента -> {"event_type":"error",...}

Отправка сообщений идёт через HTTP POST /v1/messages/{user_id}, не через сокет.
"""

from __future__ import annotations

import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from venture_connect.common.errors import AppError
from venture_connect.common.ids import new_connection_id
from venture_connect.common.logging import get_project_logger
from venture_connect.contracts.ws_events import (
    EV_AUTH,
    auth_error_event,
    auth_ok_event,
    error_event,
)
from venture_connect.realtime.registry import ConnectionRegistry
from venture_connect.realtime.relay import authenticate_connection, disconnect_connection

log = get_project_logger()

ws_router = APIRouter()


def _ws_client_ip(ws: WebSocket) -> str | None:
    return ws.client.host if ws.client else None


def _audit_ws_deny(*, ws: WebSocket, reason: str, error_code: str) -> None:
    log.warning(
        "security_audit_deny",
        extra={
            "payload": {
                "endpoint": ws.url.path,
                "method": "WS",
                "status_code": status.WS_1008_POLICY_VIOLATION,
                "reason": reason,
                "error_code": error_code,
                "client_ip": _ws_client_ip(ws),
            }
        },
    )


async def _handle_auth(
    ws: WebSocket, registry: ConnectionRegistry, connection_id: str, event: dict
) -> None:
    token = event.get("token")
    try:
        user_id = await authenticate_connection(
            registry,
            connection_id=connection_id,
            token=str(token) if token else None,
            sink=ws,
        )
    except AppError as e:
        _audit_ws_deny(ws=ws, reason=e.message, error_code=e.code)
        await ws.send_json(auth_error_event(e.message))
        return
    await ws.send_json(auth_ok_event(user_id))


@ws_router.websocket("/ws")
async def websocket_endpoint(ws: WebSocket) -> None:
    registry: ConnectionRegistry = ws.app.state.connections
    connection_id = new_connection_id()
    await ws.accept()

    try:
        while True:
            raw = await ws.receive_text()
            try:
                event = json.loads(raw)
            except ValueError:
                await ws.send_json(error_event("bad_json", "Невалидный JSON"))
                continue
            if not isinstance(event, dict):
                await ws.send_json(error_event("bad_event", "Ожидается JSON-объект"))
                continue

            if event.get("event_type") == EV_AUTH:
                await _handle_auth(ws, registry, connection_id, event)
                continue

            await ws.send_json(error_event("bad_event", "Неизвестный event_type"))

    except WebSocketDisconnect:
        pass
    except Exception as e:
        log.error(
            "ws_fatal",
            extra={"payload": {"connection_id": connection_id, "err": str(e)[:200]}},
        )
    finally:
        disconnect_connection(registry, connection_id)
