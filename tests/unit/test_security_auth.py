from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from venture_connect.common.errors import UnauthorizedError
from venture_connect.common.security import extract_bearer, require_auth

jwt = pytest.importorskip("jwt")


@pytest.fixture()
def auth_settings(settings):
    settings.app_env = "dev"
    settings.oidc_issuer_url = None
    settings.oidc_jwks_url = None
    settings.oidc_audience = None
    settings.oidc_algorithms = "HS256"
    settings.jwt_clock_skew_sec = 0
    settings.jwt_subject_claims = "sub,id,userId"
    return settings


def _build_hs256_token(*, secret: str, claims: dict, ttl: timedelta = timedelta(minutes=5)) -> str:
    now = datetime.now(UTC)
    payload = {
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
        **claims,
    }
    return str(jwt.encode(payload, secret, algorithm="HS256"))


def test_extract_bearer():
    assert extract_bearer(None) is None
    assert extract_bearer("") is None
    assert extract_bearer("Bearer abc") == "abc"
    assert extract_bearer("bearer   abc ") == "abc"
    assert extract_bearer("abc") == "abc"
    assert extract_bearer("Bearer ") is None
    assert extract_bearer("bearer") is None
    assert extract_bearer("Bearerabc") == "Bearerabc"


def test_auth_none_mode_uses_dev_header(auth_settings) -> None:
    auth_settings.auth_mode = "none"
    ctx = require_auth(authorization=None, dev_user_id="alice")
    assert ctx.user_id == "alice"
    assert ctx.auth_type == "none"

    with pytest.raises(UnauthorizedError):
        require_auth(authorization=None, dev_user_id=None)


def test_auth_none_mode_rejected_in_prod(auth_settings) -> None:
    auth_settings.app_env = "prod"
    auth_settings.auth_mode = "none"
    with pytest.raises(UnauthorizedError):
        require_auth(authorization=None, dev_user_id="alice")


def test_jwt_shared_secret_accepts_valid_token(auth_settings) -> None:
    auth_settings.auth_mode = "jwt"
    auth_settings.jwt_shared_secret = "s3cret"
    token = _build_hs256_token(secret="s3cret", claims={"sub": "alice"})

    ctx = require_auth(authorization=f"Bearer {token}")
    assert ctx.user_id == "alice"
    assert ctx.auth_type == "jwt"
    assert ctx.claims["sub"] == "alice"


def test_jwt_subject_falls_back_to_id_claim(auth_settings) -> None:
    auth_settings.auth_mode = "jwt"
    auth_settings.jwt_shared_secret = "s3cret"
    token = _build_hs256_token(secret="s3cret", claims={"id": "bob"})

    assert require_auth(authorization=token).user_id == "bob"


def test_jwt_without_subject_is_rejected(auth_settings) -> None:
    auth_settings.auth_mode = "jwt"
    auth_settings.jwt_shared_secret = "s3cret"
    token = _build_hs256_token(secret="s3cret", claims={"role": "investor"})

    with pytest.raises(UnauthorizedError):
        require_auth(authorization=f"Bearer {token}")


def test_jwt_wrong_secret_and_missing_token(auth_settings) -> None:
    auth_settings.auth_mode = "jwt"
    auth_settings.jwt_shared_secret = "s3cret"
    token = _build_hs256_token(secret="other", claims={"sub": "alice"})

    with pytest.raises(UnauthorizedError):
        require_auth(authorization=f"Bearer {token}")
    with pytest.raises(UnauthorizedError):
        require_auth(authorization=None)


def test_jwt_expired_token_message(auth_settings) -> None:
    auth_settings.auth_mode = "jwt"
    auth_settings.jwt_shared_secret = "s3cret"
    token = _build_hs256_token(
        secret="s3cret", claims={"sub": "alice"}, ttl=-timedelta(minutes=1)
    )

    with pytest.raises(UnauthorizedError) as exc:
        require_auth(authorization=f"Bearer {token}")
    assert "истёк" in exc.value.message


def test_jwt_audience_is_enforced_when_configured(auth_settings) -> None:
    auth_settings.auth_mode = "jwt"
    auth_settings.jwt_shared_secret = "s3cret"
    auth_settings.oidc_audience = "venture-connect"

    good = _build_hs256_token(secret="s3cret", claims={"sub": "a", "aud": "venture-connect"})
    bad = _build_hs256_token(secret="s3cret", claims={"sub": "a", "aud": "someone-else"})

    assert require_auth(authorization=f"Bearer {good}").user_id == "a"
    with pytest.raises(UnauthorizedError):
        require_auth(authorization=f"Bearer {bad}")


def test_jwt_not_configured(auth_settings) -> None:
    auth_settings.auth_mode = "jwt"
    auth_settings.jwt_shared_secret = None
    with pytest.raises(UnauthorizedError):
        require_auth(authorization="Bearer x.y.z")


def test_unknown_auth_mode(auth_settings) -> None:
    auth_settings.auth_mode = "api_key"
    with pytest.raises(UnauthorizedError):
        require_auth(authorization="Bearer x")
