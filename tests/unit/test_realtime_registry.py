from __future__ import annotations

import asyncio
import json

from venture_connect.realtime import registry as registry_mod
from venture_connect.realtime.registry import (
    InMemoryConnectionRegistry,
    RedisConnectionRegistry,
    build_registry,
)


class _Sink:
    def __init__(self, *, broken: bool = False) -> None:
        self.broken = broken
        self.events: list[dict] = []

    async def send_json(self, data) -> None:
        if self.broken:
            raise RuntimeError("socket closed")
        self.events.append(data)


class _FakeRedis:
    def __init__(self, subscribers: int = 1) -> None:
        self.subscribers = subscribers
        self.published: list[tuple[str, str]] = []

    def publish(self, channel: str, data: str) -> int:
        self.published.append((channel, data))
        return self.subscribers


def test_add_remove_and_presence():
    reg = InMemoryConnectionRegistry()
    reg.add("alice", "c1", _Sink())
    reg.add("alice", "c2", _Sink())

    assert reg.is_online("alice")
    assert [cid for cid, _ in reg.connections_for("alice")] == ["c1", "c2"]

    assert reg.remove("c1") == "alice"
    assert reg.is_online("alice")
    assert reg.remove("c2") == "alice"
    assert not reg.is_online("alice")
    assert reg.remove("c2") is None


def test_reauth_moves_connection_to_new_user():
    reg = InMemoryConnectionRegistry()
    sink = _Sink()
    reg.add("alice", "c1", sink)
    reg.add("bob", "c1", sink)

    assert not reg.is_online("alice")
    assert reg.connections_for("bob") == [("c1", sink)]


def test_emit_skips_broken_socket_and_counts_delivered():
    reg = InMemoryConnectionRegistry()
    ok, broken = _Sink(), _Sink(broken=True)
    reg.add("alice", "c1", broken)
    reg.add("alice", "c2", ok)

    delivered = asyncio.run(reg.emit_to_user("alice", {"event_type": "message:new"}))

    assert delivered == 1
    assert ok.events == [{"event_type": "message:new"}]


def test_emit_to_offline_user_is_noop():
    reg = InMemoryConnectionRegistry()
    assert asyncio.run(reg.emit_to_user("nobody", {"event_type": "message:new"})) == 0


def test_redis_registry_publishes_per_user_channel():
    fake = _FakeRedis(subscribers=2)
    reg = RedisConnectionRegistry(client=fake)

    delivered = asyncio.run(reg.emit_to_user("bob", {"event_type": "message:new", "n": 1}))

    assert delivered == 2
    channel, data = fake.published[0]
    assert channel == "ws:user:bob"
    assert json.loads(data) == {"event_type": "message:new", "n": 1}


def test_redis_registry_dispatches_to_local_connections():
    reg = RedisConnectionRegistry(client=_FakeRedis())
    sink = _Sink()
    reg.add("bob", "c1", sink)

    event = {"event_type": "message:new", "data": {"id": "msg_1"}}
    assert asyncio.run(reg._dispatch("ws:user:bob", json.dumps(event))) == 1
    assert sink.events == [event]

    assert asyncio.run(reg._dispatch("ws:user:bob", "{not json")) == 0
    assert asyncio.run(reg._dispatch("other:bob", json.dumps(event))) == 0
    assert len(sink.events) == 1


def test_redis_publish_failure_is_swallowed_as_offline():
    class _Down:
        def publish(self, channel, data):
            raise ConnectionError("redis down")

    reg = RedisConnectionRegistry(client=_Down())
    assert asyncio.run(reg.emit_to_user("bob", {"event_type": "message:new"})) == 0


def test_build_registry_by_backend(settings, monkeypatch):
    settings.realtime_backend = "memory"
    assert isinstance(build_registry(), InMemoryConnectionRegistry)

    settings.realtime_backend = "redis"
    monkeypatch.setattr(registry_mod, "RedisConnectionRegistry", lambda: "redis-registry")
    assert build_registry() == "redis-registry"


class _FlakyPubSub:
    def __init__(self, owner: _FlakyRedis) -> None:
        self.owner = owner
        self.closed = False

    def psubscribe(self, pattern: str) -> None:
        self.owner.subscribe_calls += 1
        if self.owner.subscribe_calls <= self.owner.failures:
            raise ConnectionError("redis down")

    def get_message(self, ignore_subscribe_messages=False, timeout=0.0):
        if self.owner.pending:
            return self.owner.pending.pop(0)
        return None

    def punsubscribe(self) -> None:
        return None

    def close(self) -> None:
        self.closed = True


class _FlakyRedis:
    def __init__(self, *, failures: int) -> None:
        self.failures = failures
        self.subscribe_calls = 0
        self.pending: list[dict] = []

    def pubsub(self) -> _FlakyPubSub:
        return _FlakyPubSub(self)


def test_redis_listener_resubscribes_after_errors(caplog):
    caplog.set_level("INFO", logger="venture-connect")
    fake = _FlakyRedis(failures=2)
    event = {"event_type": "message:new", "data": {"id": "msg_1"}}
    fake.pending.append(
        {"type": "pmessage", "channel": "ws:user:bob", "data": json.dumps(event)}
    )
    reg = RedisConnectionRegistry(client=fake)
    reg.reconnect_min_sec = 0.01
    sink = _Sink()
    reg.add("bob", "c1", sink)

    async def _main() -> None:
        await reg.start()
        for _ in range(300):
            if sink.events:
                break
            await asyncio.sleep(0.01)
        assert reg._listener is not None
        assert not reg._listener.done()
        await reg.stop()

    asyncio.run(_main())

    assert fake.subscribe_calls == 3
    assert sink.events == [event]
    failures = [r for r in caplog.records if r.getMessage() == "realtime_listener_failed"]
    assert len(failures) == 2


def test_redis_listener_crash_is_logged_and_stop_does_not_raise(caplog):
    caplog.set_level("INFO", logger="venture-connect")
    reg = RedisConnectionRegistry(client=_FakeRedis())

    async def _crash() -> None:
        raise RuntimeError("listener bug")

    reg._listen = _crash

    async def _main() -> None:
        await reg.start()
        for _ in range(100):
            if reg._listener.done():
                break
            await asyncio.sleep(0.01)
        await reg.stop()

    asyncio.run(_main())

    assert reg._listener is None
    assert "realtime_listener_stopped" in [r.getMessage() for r in caplog.records]
