"""
Утилиты безопасности и авторизации.

Поддерживаемые режимы (AUTH_MODE):
- jwt  - проверка Bearer JWT через shared secret или OIDC/JWKS
- none - без проверки токена, user id из заголовка DEV_USER_HEADER (ТОЛЬКО dev)

Выдача токенов (логин/сессии) вне этого сервиса: здесь только проверка.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any

import jwt
import requests

from .config import get_settings
from .errors import UnauthorizedError


@dataclass(frozen=True)
class AuthContext:
    user_id: str
    auth_type: str
    claims: dict[str, Any] | None = None


def _parse_csv(raw: str) -> list[str]:
    return [v.strip() for v in (raw or "").split(",") if v.strip()]


def _jwt_algorithms(raw: str) -> list[str]:
    return _parse_csv(raw) or ["HS256"]


def extract_bearer(authorization: str | None) -> str | None:
    """
    "Bearer xxx" -> "xxx". Голый токен тоже принимаем (так шлёт realtime-клиент).
    """
    if not authorization:
        return None
    value = authorization.strip()
    scheme, _, rest = value.partition(" ")
    if scheme.lower() == "bearer":
        value = rest.strip()
    return value or None


def _is_prod_env(app_env: str | None) -> bool:
    env = (app_env or "").strip().lower()
    return env in {"prod", "production"}


@lru_cache(maxsize=8)
def _get_jwks_client(jwks_url: str) -> jwt.PyJWKClient:
    return jwt.PyJWKClient(jwks_url)


@lru_cache(maxsize=8)
def _discover_jwks_url(issuer_url: str, timeout_s: int) -> str:
    discovery = issuer_url.rstrip("/") + "/.well-known/openid-configuration"
    try:
        resp = requests.get(discovery, timeout=timeout_s)
        resp.raise_for_status()
        data = resp.json()
    except Exception as e:
        raise UnauthorizedError("Не удалось получить OIDC discovery", {"err": str(e)}) from e

    jwks = data.get("jwks_uri")
    if not jwks:
        raise UnauthorizedError("OIDC discovery не содержит jwks_uri")
    return str(jwks)


def verify_jwt(token: str) -> dict[str, Any]:
    s = get_settings()
    audience = s.oidc_audience
    issuer = s.oidc_issuer_url

    kwargs: dict[str, Any] = {
        "algorithms": _jwt_algorithms(s.oidc_algorithms),
        "options": {"verify_aud": bool(audience)},
        "leeway": int(s.jwt_clock_skew_sec or 0),
    }
    if audience:
        kwargs["audience"] = audience
    if issuer:
        kwargs["issuer"] = issuer

    secret = (s.jwt_shared_secret or "").strip()
    if secret:
        try:
            return jwt.decode(token, secret, **kwargs)
        except jwt.ExpiredSignatureError as e:
            raise UnauthorizedError("Токен истёк, войдите заново") from e
        except jwt.PyJWTError as e:
            raise UnauthorizedError("JWT не прошёл проверку", {"err": str(e)}) from e

    jwks_url = (s.oidc_jwks_url or "").strip()
    if not jwks_url:
        if not issuer:
            raise UnauthorizedError(
                "JWT не настроен: укажи JWT_SHARED_SECRET, OIDC_JWKS_URL или OIDC_ISSUER_URL"
            )
        jwks_url = _discover_jwks_url(issuer, int(s.oidc_discovery_timeout_sec or 5))

    try:
        key = _get_jwks_client(jwks_url).get_signing_key_from_jwt(token).key
        return jwt.decode(token, key=key, **kwargs)
    except jwt.ExpiredSignatureError as e:
        raise UnauthorizedError("Токен истёк, войдите заново") from e
    except jwt.PyJWTError as e:
        raise UnauthorizedError("JWT не прошёл проверку", {"err": str(e)}) from e


def _subject_from_claims(claims: dict[str, Any]) -> str | None:
    for key in _parse_csv(get_settings().jwt_subject_claims):
        value = claims.get(key)
        if value:
            return str(value)
    return None


def authenticate_token(token: str | None) -> AuthContext:
    """
    Токен -> AuthContext. Используется и HTTP-зависимостью, и realtime-каналом.
    """
    raw = extract_bearer(token)
    if not raw:
        raise UnauthorizedError("Нет токена, доступ запрещён")
    claims = verify_jwt(raw)
    user_id = _subject_from_claims(claims)
    if not user_id:
        raise UnauthorizedError("В токене нет идентификатора пользователя")
    return AuthContext(user_id=user_id, auth_type="jwt", claims=claims)


def require_auth(*, authorization: str | None, dev_user_id: str | None = None) -> AuthContext:
    """
    Универсальная проверка авторизации:
    - AUTH_MODE=none: user id из заголовка (dev), в prod запрещено
    - AUTH_MODE=jwt: Bearer JWT
    """
    settings = get_settings()
    mode = (settings.auth_mode or "jwt").lower().strip()

    if mode == "none":
        if _is_prod_env(settings.app_env):
            raise UnauthorizedError("AUTH_MODE=none запрещён в APP_ENV=prod")
        if not dev_user_id:
            raise UnauthorizedError(f"AUTH_MODE=none: нужен заголовок {settings.dev_user_header}")
        return AuthContext(user_id=dev_user_id, auth_type="none")

    if mode != "jwt":
        raise UnauthorizedError("Неизвестный режим авторизации")

    return authenticate_token(authorization)
