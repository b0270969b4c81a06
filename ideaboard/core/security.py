from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from secrets import token_hex, token_urlsafe
from typing import Any

import jwt

from ideaboard.core.config import BackendSettings
from ideaboard.core.errors import ApiException

PASSWORD_SCHEME = "pbkdf2_sha256"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def random_jti(length: int = 32) -> str:
    return token_urlsafe(length)


def create_signed_token(
    *,
    settings: BackendSettings,
    token_type: str,
    claims: dict[str, Any],
    ttl_seconds: int,
) -> tuple[str, datetime]:
    issued_at = utc_now()
    expires_at = issued_at + timedelta(seconds=ttl_seconds)
    payload = {
        **claims,
        "type": token_type,
        "iat": int(issued_at.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    token = jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)
    return token, expires_at


def decode_signed_token(
    *,
    settings: BackendSettings,
    token: str,
    expected_type: str,
) -> dict[str, Any]:
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            leeway=settings.JWT_LEEWAY_SECONDS,
        )
    except jwt.ExpiredSignatureError as exc:
        raise ApiException(
            status_code=401,
            error_code="TOKEN_EXPIRED",
            message="Authentication token expired",
        ) from exc
    except jwt.PyJWTError as exc:
        raise ApiException(
            status_code=401,
            error_code="TOKEN_INVALID",
            message="Authentication token invalid",
        ) from exc

    if payload.get("type") != expected_type:
        raise ApiException(
            status_code=401,
            error_code="TOKEN_TYPE_INVALID",
            message="Token type is invalid",
        )
    return payload


def hash_password(password: str, *, iterations: int) -> str:
    salt = token_hex(16)
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("ascii"), iterations
    )
    return f"{PASSWORD_SCHEME}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        scheme, raw_iterations, salt, expected = password_hash.split("$", 3)
        iterations = int(raw_iterations)
    except ValueError:
        return False
    if scheme != PASSWORD_SCHEME:
        return False
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), salt.encode("ascii"), iterations
    )
    return hmac.compare_digest(digest.hex(), expected)
