"""
Shared-password gate: password check, JWT issuing/verification and the
auth cookie.
"""

from __future__ import annotations

import hmac
import time
from dataclasses import dataclass
from typing import Optional

import bcrypt
import jwt
from fastapi import Response

from dropit.config import Settings
from dropit.errors import AuthenticationExpired, AuthenticationRequired


@dataclass
class AuthPayload:
    authenticated: bool
    iat: Optional[int] = None
    exp: Optional[int] = None


def hash_password(plain: str) -> str:
    """Return a bcrypt hash suitable for ``APP_PASSWORD_HASH``."""
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(candidate: str, settings: Settings) -> bool:
    if settings.app_password_hash:
        try:
            return bcrypt.checkpw(
                candidate.encode("utf-8"),
                settings.app_password_hash.encode("utf-8"),
            )
        except ValueError:
            # Malformed hash in the environment; never authenticates.
            return False
    return hmac.compare_digest(
        candidate.encode("utf-8"), settings.app_password.encode("utf-8")
    )


def issue_token(settings: Settings, now: Optional[int] = None) -> str:
    issued_at = int(now if now is not None else time.time())
    claims = {
        "authenticated": True,
        "iat": issued_at,
        "exp": issued_at + settings.token_ttl_seconds,
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> AuthPayload:
    """
    Verify signature and expiry of ``token``.

    Raises AuthenticationExpired for any invalid, tampered or expired token,
    and for tokens that do not carry ``authenticated: true``.
    """
    try:
        claims = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "iat"]},
        )
    except jwt.PyJWTError as exc:
        raise AuthenticationExpired() from exc
    if claims.get("authenticated") is not True:
        raise AuthenticationExpired()
    return AuthPayload(
        authenticated=True, iat=claims.get("iat"), exp=claims.get("exp")
    )


def authenticate_token(token: Optional[str], settings: Settings) -> AuthPayload:
    if not token:
        raise AuthenticationRequired()
    return decode_token(token, settings)


def set_auth_cookie(response: Response, token: str, settings: Settings) -> None:
    response.set_cookie(
        settings.auth_cookie_name,
        token,
        max_age=settings.token_ttl_seconds,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        path="/",
    )


def clear_auth_cookie(response: Response, settings: Settings) -> None:
    response.set_cookie(
        settings.auth_cookie_name,
        "",
        max_age=0,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        path="/",
    )
