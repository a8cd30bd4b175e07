"""
API Gateway (FastAPI).

Функции:
- /health
- /metrics
- HTTP API для встреч, сообщений и уведомлений (/v1)
- WebSocket /v1/ws для realtime-доставки сообщений

Архитектурно:
- сообщение сохраняется в БД, затем пушится в живые соединения получателя
- реестр соединений живёт в app.state.connections (memory или redis pub/sub)
- скан напоминаний крутится фоновой задачей в этом же процессе
  (или отдельным воркером apps/worker_reminders)
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from apps.api_gateway.routers.meetings import router as meetings_router
from apps.api_gateway.routers.messages import router as messages_router
from apps.api_gateway.routers.notifications import router as notifications_router
from apps.api_gateway.ws import ws_router
from venture_connect.common.config import get_settings
from venture_connect.common.errors import AppError, ErrCode
from venture_connect.common.logging import get_project_logger, setup_logging
from venture_connect.common.metrics import setup_metrics_endpoint
from venture_connect.contracts.http_api import ErrorResponse
from venture_connect.jobs.reminder_job import run_forever_async
from venture_connect.realtime.registry import build_registry
from venture_connect.storage.db import create_all

log = get_project_logger()

_CODE_BY_HTTP_STATUS: dict[int, str] = {
    400: ErrCode.INVALID_REQUEST,
    401: ErrCode.UNAUTHORIZED,
    403: ErrCode.FORBIDDEN,
    404: ErrCode.NOT_FOUND,
}


def _parse_origins(raw: str) -> list[str]:
    origins = [o.strip() for o in (raw or "").split(",") if o.strip()]
    return origins or ["*"]


def _is_prod_env(app_env: str | None) -> bool:
    env = (app_env or "").strip().lower()
    return env in {"prod", "production"}


def _cors_params() -> tuple[list[str], bool]:
    settings = get_settings()
    allow_origins = _parse_origins(settings.cors_allowed_origins)
    allow_credentials = bool(settings.cors_allow_credentials)

    if _is_prod_env(settings.app_env) and "*" in allow_origins:
        raise RuntimeError("CORS wildcard '*' запрещён в APP_ENV=prod")

    # '*' нельзя использовать вместе с credentials=true
    if "*" in allow_origins:
        allow_credentials = False

    return allow_origins, allow_credentials


def _error_response(status_code: int, code: str, message: str, details: dict | None = None):
    body = ErrorResponse(code=code, message=message, details=details or None)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        log.info(
            "request_failed",
            extra={
                "payload": {
                    "endpoint": request.url.path,
                    "method": request.method,
                    "code": exc.code,
                }
            },
        )
        return _error_response(exc.http_status, exc.code, exc.message, exc.details)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        code = _CODE_BY_HTTP_STATUS.get(exc.status_code, ErrCode.UNKNOWN)
        message = exc.detail if isinstance(exc.detail, str) else "Ошибка запроса"
        return _error_response(exc.status_code, code, message)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _error_response(
            400,
            ErrCode.INVALID_REQUEST,
            "Некорректный запрос",
            {"errors": [str(e.get("msg")) for e in exc.errors()][:10]},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error(
            "request_unhandled_error",
            extra={
                "payload": {
                    "endpoint": request.url.path,
                    "method": request.method,
                    "err": str(exc)[:300],
                }
            },
        )
        return _error_response(500, ErrCode.UNKNOWN, "Внутренняя ошибка сервера")


def _create_app() -> FastAPI:
    app = FastAPI(title="Venture Connect", version="0.1.0")
    allow_origins, allow_credentials = _cors_params()
    settings = get_settings()

    # CORS (настраивается через ENV; в prod wildcard запрещён)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_credentials=allow_credentials,
    )

    setup_metrics_endpoint(app, service=settings.service_name)
    _install_error_handlers(app)

    app.state.connections = build_registry()
    app.state.reminder_task = None

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {"ok": True}

    @app.on_event("startup")
    async def startup() -> None:
        if settings.db_auto_create:
            create_all()

        await app.state.connections.start()

        if settings.reminder_enabled and settings.reminder_in_process:
            app.state.reminder_task = asyncio.create_task(
                run_forever_async(
                    startup_delay_sec=float(settings.reminder_startup_delay_sec),
                    interval_sec=float(settings.reminder_interval_sec),
                )
            )
            log.info(
                "reminder_scheduler_started",
                extra={"payload": {"interval_sec": settings.reminder_interval_sec}},
            )

    @app.on_event("shutdown")
    async def shutdown() -> None:
        task, app.state.reminder_task = app.state.reminder_task, None
        if task is not None:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        await app.state.connections.stop()

    app.include_router(meetings_router, prefix="/v1")
    app.include_router(messages_router, prefix="/v1")
    app.include_router(notifications_router, prefix="/v1")
    app.include_router(ws_router, prefix="/v1")

    return app


setup_logging()

app = _create_app()
