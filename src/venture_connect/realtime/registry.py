"""
Реестр живых realtime-соединений.

Назначение:
- user_id -> множество открытых соединений этого пользователя
- fan-out события всем соединениям пользователя (best-effort, без ретраев)

Реестр передаётся как объект (app.state.connections), а не модульный синглтон:
in-memory вариант для одного процесса, Redis pub/sub вариант для нескольких.
Состояние не персистится: после рестарта все пользователи офлайн до переподключения.
"""

from __future__ import annotations

import asyncio
import json
import threading
from typing import Any, Protocol

from venture_connect.common.config import get_settings
from venture_connect.common.logging import get_project_logger
from venture_connect.common.metrics import LIVE_CONNECTIONS

log = get_project_logger()


class EventSink(Protocol):
    """Куда пишем события (starlette WebSocket подходит как есть)."""

    async def send_json(self, data: Any) -> None: ...


class ConnectionRegistry(Protocol):
    def add(self, user_id: str, connection_id: str, sink: EventSink) -> None: ...

    def remove(self, connection_id: str) -> str | None: ...

    def connections_for(self, user_id: str) -> list[tuple[str, EventSink]]: ...

    def is_online(self, user_id: str) -> bool: ...

    async def emit_to_user(self, user_id: str, event: dict[str, Any]) -> int: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...


# =============================================================================
# IN-MEMORY
# =============================================================================
class InMemoryConnectionRegistry:
    """
    Мультимапа в памяти процесса.
    Мутации под threading.Lock: к реестру обращаются и event loop, и threadpool.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_user: dict[str, dict[str, EventSink]] = {}
        self._owner: dict[str, str] = {}

    def _total(self) -> int:
        return len(self._owner)

    def add(self, user_id: str, connection_id: str, sink: EventSink) -> None:
        with self._lock:
            # повторный auth на том же соединении под другим пользователем
            prev = self._owner.get(connection_id)
            if prev is not None and prev != user_id:
                self._discard(prev, connection_id)
            self._by_user.setdefault(user_id, {})[connection_id] = sink
            self._owner[connection_id] = user_id
            LIVE_CONNECTIONS.set(self._total())

    def _discard(self, user_id: str, connection_id: str) -> None:
        conns = self._by_user.get(user_id)
        if conns is None:
            return
        conns.pop(connection_id, None)
        if not conns:
            del self._by_user[user_id]

    def remove(self, connection_id: str) -> str | None:
        with self._lock:
            user_id = self._owner.pop(connection_id, None)
            if user_id is not None:
                self._discard(user_id, connection_id)
            LIVE_CONNECTIONS.set(self._total())
            return user_id

    def connections_for(self, user_id: str) -> list[tuple[str, EventSink]]:
        with self._lock:
            return list(self._by_user.get(str(user_id), {}).items())

    def is_online(self, user_id: str) -> bool:
        with self._lock:
            return bool(self._by_user.get(str(user_id)))

    async def emit_to_user(self, user_id: str, event: dict[str, Any]) -> int:
        """
        Шлёт событие во все соединения пользователя. Возвращает число успешных отправок.
        Офлайн-пользователь -> 0, это не ошибка.
        """
        delivered = 0
        for connection_id, sink in self.connections_for(user_id):
            try:
                await sink.send_json(event)
                delivered += 1
            except Exception as e:
                log.warning(
                    "realtime_push_failed",
                    extra={
                        "payload": {
                            "user_id": user_id,
                            "connection_id": connection_id,
                            "err": str(e)[:200],
                        }
                    },
                )
        return delivered

    async def start(self) -> None:
        return None

    async def stop(self) -> None:
        return None


# =============================================================================
# REDIS PUB/SUB
# =============================================================================
class RedisConnectionRegistry:
    """
    Для нескольких процессов gateway.
    Соединения регистрируются локально; emit публикует событие в ws:user:<id>,
    а listener каждого процесса доставляет его своим локальным соединениям.
    is_online видит только соединения текущего процесса.
    """

    channel_prefix = "ws:user:"
    reconnect_min_sec = 0.5
    reconnect_max_sec = 30.0

    def __init__(self, local: InMemoryConnectionRegistry | None = None, client=None) -> None:
        self.local = local or InMemoryConnectionRegistry()
        self._client = client
        self._listener: asyncio.Task | None = None
        self.subscribed = False
        self._backoff = self.reconnect_min_sec

    def _redis(self):
        if self._client is None:
            from venture_connect.realtime.redis import redis_client

            self._client = redis_client()
        return self._client

    def add(self, user_id: str, connection_id: str, sink: EventSink) -> None:
        self.local.add(user_id, connection_id, sink)

    def remove(self, connection_id: str) -> str | None:
        return self.local.remove(connection_id)

    def connections_for(self, user_id: str) -> list[tuple[str, EventSink]]:
        return self.local.connections_for(user_id)

    def is_online(self, user_id: str) -> bool:
        return self.local.is_online(user_id)

    async def emit_to_user(self, user_id: str, event: dict[str, Any]) -> int:
        """
        Возвращает число процессов-подписчиков, получивших публикацию.
        """
        channel = f"{self.channel_prefix}{user_id}"
        data = json.dumps(event, ensure_ascii=False, default=str)
        try:
            return int(await asyncio.to_thread(self._redis().publish, channel, data))
        except Exception as e:
            log.warning(
                "realtime_publish_failed",
                extra={"payload": {"user_id": user_id, "err": str(e)[:200]}},
            )
            return 0

    async def _listen(self) -> None:
        """
        Фоновая задача: читает ws:user:* и раздаёт события локальным соединениям.
        Реализация через asyncio.to_thread, потому что клиент redis синхронный.
        Ошибка Redis не убивает задачу: лог и переподписка с backoff.
        """
        self._backoff = self.reconnect_min_sec
        while True:
            try:
                await self._listen_once()
            except Exception as e:
                log.error(
                    "realtime_listener_failed",
                    extra={"payload": {"err": str(e)[:200], "retry_in_sec": self._backoff}},
                )
            await asyncio.sleep(self._backoff)
            self._backoff = min(self._backoff * 2, self.reconnect_max_sec)

    async def _listen_once(self) -> None:
        pubsub = self._redis().pubsub()
        try:
            await asyncio.to_thread(pubsub.psubscribe, f"{self.channel_prefix}*")
            self.subscribed = True
            self._backoff = self.reconnect_min_sec
            while True:
                msg = await asyncio.to_thread(pubsub.get_message, True, 1.0)
                if not msg:
                    await asyncio.sleep(0.01)
                    continue
                if msg.get("type") != "pmessage":
                    continue
                await self._dispatch(msg.get("channel"), msg.get("data"))
        finally:
            self.subscribed = False
            try:
                pubsub.punsubscribe()
                pubsub.close()
            except Exception as e:
                log.warning("realtime_pubsub_close_failed", extra={"payload": {"err": str(e)}})

    async def _dispatch(self, channel: str | None, data: str | None) -> int:
        if not channel or not data or not channel.startswith(self.channel_prefix):
            return 0
        user_id = channel[len(self.channel_prefix) :]
        try:
            event = json.loads(data)
        except ValueError:
            log.warning("realtime_bad_pubsub_payload", extra={"payload": {"channel": channel}})
            return 0
        return await self.local.emit_to_user(user_id, event)

    @staticmethod
    def _on_listener_done(task: asyncio.Task) -> None:
        if task.cancelled():
            return
        err = task.exception()
        log.error(
            "realtime_listener_stopped",
            extra={"payload": {"err": str(err)[:200] if err else None}},
        )

    async def start(self) -> None:
        if self._listener is None:
            self._listener = asyncio.create_task(self._listen())
            self._listener.add_done_callback(self._on_listener_done)

    async def stop(self) -> None:
        task, self._listener = self._listener, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        except Exception as e:
            log.warning("realtime_listener_stop_failed", extra={"payload": {"err": str(e)[:200]}})


def build_registry() -> ConnectionRegistry:
    backend = (get_settings().realtime_backend or "memory").strip().lower()
    if backend == "redis":
        return RedisConnectionRegistry()
    return InMemoryConnectionRegistry()
