from __future__ import annotations

import logging

import pytest
from starlette.requests import Request

from apps.api_gateway.deps import auth_dep
from venture_connect.common.errors import UnauthorizedError


def _make_request(*, path: str, method: str = "GET", headers: dict | None = None) -> Request:
    raw_headers = [
        (k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()
    ]
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode("utf-8"),
        "query_string": b"",
        "headers": raw_headers,
        "client": ("127.0.0.1", 12345),
        "server": ("testserver", 80),
    }
    return Request(scope)


@pytest.fixture()
def auth_settings(settings, seed):
    settings.app_env = "dev"
    settings.auth_mode = "none"
    settings.dev_user_header = "X-User-Id"
    seed.user("alice")
    return settings


def test_auth_dep_logs_allow(caplog, auth_settings) -> None:
    caplog.set_level(logging.INFO, logger="venture-connect")
    req = _make_request(path="/v1/meetings/requests", headers={"X-User-Id": "alice"})
    ctx = auth_dep(request=req, authorization=None)

    assert ctx.user_id == "alice"
    rec = next(r for r in caplog.records if r.msg == "security_audit_allow")
    assert rec.payload["endpoint"] == "/v1/meetings/requests"
    assert rec.payload["method"] == "GET"
    assert rec.payload["reason"] == "auth_ok"
    assert rec.payload["subject"] == "alice"


def test_auth_dep_logs_deny_without_identity(caplog, auth_settings) -> None:
    caplog.set_level(logging.INFO, logger="venture-connect")
    req = _make_request(path="/v1/messages/bob", method="POST")

    with pytest.raises(UnauthorizedError):
        auth_dep(request=req, authorization=None)

    rec = next(r for r in caplog.records if r.msg == "security_audit_deny")
    assert rec.payload["status_code"] == 401
    assert rec.payload["error_code"] == "unauthorized"
    assert rec.payload["client_ip"] == "127.0.0.1"


def test_auth_dep_denies_unknown_user(caplog, auth_settings) -> None:
    caplog.set_level(logging.INFO, logger="venture-connect")
    req = _make_request(path="/v1/notifications", headers={"X-User-Id": "ghost"})

    with pytest.raises(UnauthorizedError):
        auth_dep(request=req, authorization=None)

    rec = next(r for r in caplog.records if r.msg == "security_audit_deny")
    assert rec.payload["reason"] == "user_not_found"
    assert rec.payload["subject"] == "ghost"
