"""Security utilities for auth: password hashing and JWT issuance."""

from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

import bcrypt
from jose import JWTError, jwt

from auth.config import AuthConfig
from auth.exceptions import UnauthorizedError

# bcrypt only looks at the first 72 bytes of its input
_BCRYPT_MAX_BYTES = 72
_BCRYPT_PREFIXES = ("$2a$", "$2b$", "$2y$")


class TokenType(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"
    TWO_FACTOR_PENDING = "2fa-pending"


def _bcrypt_input(value: str) -> bytes:
    return value.encode("utf-8")[:_BCRYPT_MAX_BYTES]


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    salt = bcrypt.gensalt(rounds=AuthConfig.BCRYPT_ROUNDS)
    hashed = bcrypt.hashpw(_bcrypt_input(password), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    """Verify a password against a bcrypt hash."""
    try:
        return bcrypt.checkpw(_bcrypt_input(password), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed hash or salt
        return False


def is_legacy_hash(hashed_password: str) -> bool:
    """Accounts migrated from the old system carry unsalted SHA-256 hex digests."""
    return not hashed_password.startswith(_BCRYPT_PREFIXES)


def verify_legacy_password(password: str, hashed_password: str) -> bool:
    digest = hashlib.sha256(password.encode("utf-8")).hexdigest()
    return hmac.compare_digest(digest, hashed_password.lower())


def hash_token(token: str) -> str:
    """Digest of a bearer token for server-side storage."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(token: str, token_hash: str | None) -> bool:
    if not token_hash:
        return False
    return hmac.compare_digest(hash_token(token), token_hash)


def _encode(payload: dict[str, Any], expires_delta: timedelta) -> tuple[str, int]:
    now = datetime.now(timezone.utc)
    expire = now + expires_delta
    claims = {
        **payload,
        "exp": expire,
        "iat": now,
        "jti": uuid4().hex,
    }
    token = jwt.encode(claims, AuthConfig.JWT_SECRET, algorithm=AuthConfig.JWT_ALGORITHM)
    return token, int(expire.timestamp())


def create_access_token(user: dict[str, Any]) -> str:
    token, _ = _encode(
        {
            "sub": str(user["id"]),
            "email": user["email"],
            "role": user.get("role", "USER"),
            "type": TokenType.ACCESS.value,
        },
        timedelta(seconds=AuthConfig.ACCESS_TOKEN_EXPIRE_SECONDS),
    )
    return token


def create_refresh_token(user_id: str) -> tuple[str, int]:
    """Returns the token and its expiry as a unix timestamp."""
    return _encode(
        {"sub": str(user_id), "type": TokenType.REFRESH.value},
        timedelta(days=AuthConfig.REFRESH_TOKEN_EXPIRE_DAYS),
    )


def create_two_factor_token(user_id: str) -> str:
    token, _ = _encode(
        {"sub": str(user_id), "type": TokenType.TWO_FACTOR_PENDING.value},
        timedelta(minutes=AuthConfig.TWO_FACTOR_TOKEN_EXPIRE_MINUTES),
    )
    return token


def decode_token(token: str, expected_type: TokenType) -> dict[str, Any]:
    """Verify signature and expiry, then the token kind."""
    try:
        payload = jwt.decode(token, AuthConfig.JWT_SECRET, algorithms=[AuthConfig.JWT_ALGORITHM])
    except JWTError as exc:
        raise UnauthorizedError("Invalid token") from exc

    if payload.get("type") != expected_type.value:
        raise UnauthorizedError("Invalid token")
    if not payload.get("sub"):
        raise UnauthorizedError("Invalid token")
    return payload
