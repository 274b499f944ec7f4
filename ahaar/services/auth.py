from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import bcrypt
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from jose import jwt

from ahaar.core.config import (
    ACCESS_TOKEN_EXPIRE_MINUTES,
    API_PREFIX,
    CLIENT_URL,
    EMAIL_TOKEN_MAX_AGE_SECONDS,
    EMAIL_TOKEN_SECRET,
    JWT_ACCESS_SECRET,
    JWT_ALGORITHM,
    JWT_REFRESH_SECRET,
    REFRESH_COOKIE_DOMAIN,
    REFRESH_COOKIE_HTTPONLY,
    REFRESH_COOKIE_NAME,
    REFRESH_COOKIE_SAMESITE,
    REFRESH_COOKIE_SECURE,
    REFRESH_TOKEN_EXPIRE_DAYS,
)
from ahaar.services.access_control import Principal

EMAIL_TOKEN_SALT = "email-verification"


class EmailTokenExpired(Exception):
    pass


class EmailTokenInvalid(Exception):
    pass


# =========================
# PASSWORD (bcrypt directly, no passlib)
# =========================
def _normalize_password_for_bcrypt(password: str) -> bytes:
    """bcrypt only looks at the first 72 bytes."""
    pw = (password or "").encode("utf-8")
    return pw[:72]


def hash_password(password: str) -> str:
    hashed = bcrypt.hashpw(_normalize_password_for_bcrypt(password), bcrypt.gensalt())
    return hashed.decode("utf-8")


def verify_password(plain_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(
            _normalize_password_for_bcrypt(plain_password),
            (password_hash or "").encode("utf-8"),
        )
    except ValueError:
        return False


# =========================
# JWT HELPERS
# =========================
def _encode(claims: Dict[str, Any], secret: str, lifetime: timedelta) -> str:
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        **claims,
        "sub": str(claims["user_id"]),
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def _decode(token: str, secret: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except Exception as e:
        raise ValueError("Invalid or expired token") from e


def create_access_token(principal: Principal) -> str:
    return _encode(principal.claims(), JWT_ACCESS_SECRET, timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(principal: Principal) -> str:
    return _encode(principal.claims(), JWT_REFRESH_SECRET, timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS))


def decode_access_token(token: str) -> Dict[str, Any]:
    """Payload of a valid access token, ValueError otherwise."""
    return _decode(token, JWT_ACCESS_SECRET)


def decode_refresh_token(token: str) -> Dict[str, Any]:
    return _decode(token, JWT_REFRESH_SECRET)


def refresh_cookie_options() -> dict[str, Any]:
    return {
        "key": REFRESH_COOKIE_NAME,
        "max_age": REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        "httponly": REFRESH_COOKIE_HTTPONLY,
        "secure": REFRESH_COOKIE_SECURE,
        "samesite": REFRESH_COOKIE_SAMESITE,
        "domain": REFRESH_COOKIE_DOMAIN,
        "path": "/",
    }


# =========================
# EMAIL VERIFICATION
# =========================
def _email_serializer() -> URLSafeTimedSerializer:
    if not EMAIL_TOKEN_SECRET:
        raise RuntimeError("EMAIL_TOKEN_SECRET is not configured.")
    return URLSafeTimedSerializer(EMAIL_TOKEN_SECRET, salt=EMAIL_TOKEN_SALT)


def create_email_token(user_id: str) -> str:
    return _email_serializer().dumps({"user_id": user_id})


def read_email_token(token: str, max_age: int = EMAIL_TOKEN_MAX_AGE_SECONDS) -> str:
    try:
        payload = _email_serializer().loads(token, max_age=max_age)
    except SignatureExpired as exc:
        raise EmailTokenExpired() from exc
    except BadSignature as exc:
        raise EmailTokenInvalid() from exc
    user_id = payload.get("user_id") if isinstance(payload, dict) else None
    if not user_id:
        raise EmailTokenInvalid()
    return user_id


def verification_link(token: str) -> str:
    return f"{CLIENT_URL}{API_PREFIX}/users/verify/{token}"
