"""
Контракты WebSocket-событий.

Зачем:
- единая точка, чтобы не разъезжались названия событий
- клиент и сервер обмениваются JSON {"event_type": ..., ...}
"""

from __future__ import annotations

from typing import Any

# =============================================================================
# ТИПЫ СОБЫТИЙ
# =============================================================================
EV_AUTH = "auth"
EV_AUTH_OK = "auth:ok"
EV_AUTH_ERROR = "auth:error"
EV_MESSAGE_NEW = "message:new"
EV_ERROR = "error"


# =============================================================================
# ВЫХОД (server -> client)
# =============================================================================
def auth_ok_event(user_id: str) -> dict[str, Any]:
    return {"event_type": EV_AUTH_OK, "user_id": user_id}


def auth_error_event(message: str) -> dict[str, Any]:
    return {"event_type": EV_AUTH_ERROR, "message": message}


def message_new_event(message_payload: dict[str, Any]) -> dict[str, Any]:
    return {"event_type": EV_MESSAGE_NEW, "data": message_payload}


def error_event(code: str, message: str) -> dict[str, Any]:
    return {"event_type": EV_ERROR, "code": code, "message": message}
