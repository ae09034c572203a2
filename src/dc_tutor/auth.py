"""Mocked authentication: one demo account, in-memory sessions."""

from __future__ import annotations

import hashlib
import hmac
import os
import secrets
import threading
from dataclasses import dataclass

from fastapi import Request
from starlette.responses import Response

SESSION_COOKIE_NAME = "dct_session"
SESSION_TTL_DAYS = 30

DEMO_USER_ID = "1"
DEMO_NAME = "Demo User"
DEMO_EMAIL = os.environ.get("DC_TUTOR_DEMO_EMAIL", "demo@example.com")
DEMO_PASSWORD = os.environ.get("DC_TUTOR_DEMO_PASSWORD", "password")

_sessions: dict[str, "AuthUser"] = {}
_sessions_lock = threading.Lock()


@dataclass(frozen=True, slots=True)
class AuthUser:
    id: str
    name: str
    email: str


class InvalidCredentialsError(ValueError):
    pass


def _hash_session_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def authenticate_user(email: str, password: str) -> AuthUser:
    email_ok = hmac.compare_digest(
        _normalize_email(email).encode("utf-8"), _normalize_email(DEMO_EMAIL).encode("utf-8")
    )
    password_ok = hmac.compare_digest(password.encode("utf-8"), DEMO_PASSWORD.encode("utf-8"))
    if not (email_ok and password_ok):
        raise InvalidCredentialsError("Invalid credentials")
    return AuthUser(id=DEMO_USER_ID, name=DEMO_NAME, email=_normalize_email(DEMO_EMAIL))


def create_user_session(user: AuthUser) -> str:
    token = secrets.token_urlsafe(32)
    with _sessions_lock:
        _sessions[_hash_session_token(token)] = user
    return token


def get_user_by_session_token(token: str | None) -> AuthUser | None:
    if not token:
        return None
    with _sessions_lock:
        return _sessions.get(_hash_session_token(token))


def revoke_session(token: str | None) -> None:
    if not token:
        return
    with _sessions_lock:
        _sessions.pop(_hash_session_token(token), None)


def clear_sessions() -> None:
    with _sessions_lock:
        _sessions.clear()


def get_current_user(request: Request) -> AuthUser | None:
    return get_user_by_session_token(request.cookies.get(SESSION_COOKIE_NAME))


def set_session_cookie(request: Request, response: Response, token: str) -> None:
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        httponly=True,
        secure=(request.url.scheme == "https"),
        samesite="lax",
        max_age=60 * 60 * 24 * SESSION_TTL_DAYS,
        path="/",
    )


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")


__all__ = [
    "AuthUser",
    "DEMO_EMAIL",
    "DEMO_PASSWORD",
    "InvalidCredentialsError",
    "SESSION_COOKIE_NAME",
    "authenticate_user",
    "clear_session_cookie",
    "clear_sessions",
    "create_user_session",
    "get_current_user",
    "get_user_by_session_token",
    "revoke_session",
    "set_session_cookie",
]
