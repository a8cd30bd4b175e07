"""
Метрики Prometheus для сервиса.

Назначение:
- Экспорт /metrics
- Счётчики HTTP-запросов, переходов встреч, напоминаний и доставки сообщений
- Используется API Gateway и воркером напоминаний
"""

from __future__ import annotations

import time

from fastapi import FastAPI, Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Gauge, Histogram, generate_latest

# =============================================================================
# СЧЁТЧИКИ И МЕТРИКИ
# =============================================================================

# Общее количество HTTP-запросов
REQUESTS_TOTAL = Counter(
    "venture_requests_total",
    "Общее количество HTTP запросов",
    ["service", "route", "method", "status"],
)

HTTP_REQUEST_LATENCY_MS = Histogram(
    "venture_http_request_latency_ms",
    "Задержка HTTP запроса (мс)",
    ["service", "route", "method"],
    buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
)

MEETING_TRANSITIONS_TOTAL = Counter(
    "venture_meeting_transitions_total",
    "Переходы статусов встреч",
    ["status"],
)

REMINDERS_TOTAL = Counter(
    "venture_reminders_total",
    "Результаты обработки кандидатов на напоминание",
    ["result"],
)

REMINDER_SCANS_TOTAL = Counter(
    "venture_reminder_scans_total",
    "Количество запусков скана напоминаний",
    ["source"],
)

MESSAGES_TOTAL = Counter(
    "venture_messages_total",
    "Отправленные сообщения по результату realtime-доставки",
    ["delivery"],
)

LIVE_CONNECTIONS = Gauge(
    "venture_live_connections",
    "Количество авторизованных realtime-соединений в процессе",
)


def record_meeting_transition(status: str) -> None:
    MEETING_TRANSITIONS_TOTAL.labels(status=status).inc()


def record_reminder_result(result: str) -> None:
    REMINDERS_TOTAL.labels(result=result).inc()


def record_reminder_scan(*, source: str) -> None:
    REMINDER_SCANS_TOTAL.labels(source=source).inc()


def record_message_delivery(*, delivered: int) -> None:
    MESSAGES_TOTAL.labels(delivery="online" if delivered > 0 else "offline").inc()


def setup_metrics_endpoint(app: FastAPI, *, service: str = "api-gateway") -> None:
    """
    Регистрирует endpoint /metrics для Prometheus.
    """

    @app.middleware("http")
    async def http_metrics(request: Request, call_next):
        route_obj = request.scope.get("route")
        route = getattr(route_obj, "path", None) or request.url.path
        method = request.method
        started = time.perf_counter()

        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        REQUESTS_TOTAL.labels(
            service=service,
            route=route,
            method=method,
            status=str(response.status_code),
        ).inc()
        HTTP_REQUEST_LATENCY_MS.labels(
            service=service,
            route=route,
            method=method,
        ).observe(elapsed_ms)
        return response

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
