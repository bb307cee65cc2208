"""
Password hashing, access tokens and request identity.

  • Passwords — bcrypt (inputs truncated to bcrypt's 72-byte limit)
  • Tokens    — HS256 JWTs, `sub` = user_id, expiring after jwt_expires_minutes
  • Viewers   — TokenResolver turns an optional bearer token into an optional
                user_id and never raises; malformed or expired tokens simply
                mean "anonymous".
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import PyJWTError

from luna.config import settings

logger = logging.getLogger(__name__)


# ─────────────────────────── Passwords ───────────────────────────────────

def _password_bytes(raw_password: str) -> bytes:
    return raw_password.encode("utf-8")[:72]


def hash_password(raw_password: str) -> str:
    return bcrypt.hashpw(_password_bytes(raw_password), bcrypt.gensalt(rounds=10)).decode()


def verify_password(raw_password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_password_bytes(raw_password), password_hash.encode())
    except ValueError:
        # Stored hash is not a bcrypt hash
        return False


def generate_otp() -> str:
    """Six-digit numeric one-time passcode."""
    return str(secrets.randbelow(900_000) + 100_000)


# ─────────────────────────── Tokens ──────────────────────────────────────

def create_access_token(user_id: str, expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    expires = now + (expires_delta or timedelta(minutes=settings.jwt_expires_minutes))
    payload = {"sub": user_id, "iat": now, "exp": expires}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def parse_bearer(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


class TokenResolver:
    """Resolves a bearer token to the user_id it was issued for."""

    def __init__(self, secret: str, algorithm: str = "HS256"):
        self.secret = secret
        self.algorithm = algorithm

    def resolve_viewer(self, token: Optional[str]) -> Optional[str]:
        if not token:
            return None
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except PyJWTError as exc:
            logger.debug("Ignoring unusable bearer token: %s", exc)
            return None
        user_id = payload.get("sub")
        return user_id if isinstance(user_id, str) and user_id else None


# ─────────────────────────── Dependencies ────────────────────────────────

def get_credential_resolver() -> TokenResolver:
    return TokenResolver(settings.jwt_secret, settings.jwt_algorithm)


async def get_viewer_id(
    authorization: Optional[str] = Header(None),
    resolver: TokenResolver = Depends(get_credential_resolver),
) -> Optional[str]:
    """Optional identity — anonymous requests resolve to None."""
    return resolver.resolve_viewer(parse_bearer(authorization))


async def get_current_user_id(
    viewer_id: Optional[str] = Depends(get_viewer_id),
) -> str:
    """Required identity — 401 unless a valid bearer token is supplied."""
    if viewer_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return viewer_id
