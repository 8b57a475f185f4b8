"""Auth dependency helpers."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any

from fastapi import Cookie, Depends, Header, HTTPException, Request, Response

from auth.config import AuthConfig
from auth.exceptions import AuthException, ForbiddenError, RateLimitError
from auth.interfaces.rate_limiter import RateLimiter
from auth.schemas import AuthResult
from auth.services.auth_service import AuthService
from auth.services.cleanup_service import CleanupService
from auth.services.email_service import EmailService
from auth.services.pending_user_service import PendingUserService
from auth.services.totp_crypto import TotpCrypto
from auth.services.totp_service import TotpService
from auth.services.user_service import UserService
from auth.services.verification_service import VerificationService
from auth.stores.memory_store import (
    MemoryPendingUserStore,
    MemoryRateLimiter,
    MemoryUserStore,
    MemoryVerificationStore,
)
from auth.stores.postgres_store import (
    PostgresPendingUserStore,
    PostgresUserStore,
    PostgresVerificationStore,
)
from config import Config


_memory_user_store = MemoryUserStore()
_memory_pending_store = MemoryPendingUserStore()
_memory_verification_store = MemoryVerificationStore()
_memory_rate_limiter = MemoryRateLimiter()

_postgres_user_store: PostgresUserStore | None = None
_postgres_pending_store: PostgresPendingUserStore | None = None
_postgres_verification_store: PostgresVerificationStore | None = None

_totp_crypto: TotpCrypto | None = None


def _get_stores() -> tuple[Any, Any, Any]:
    """Get auth stores based on AUTH_STORE config."""
    if AuthConfig.AUTH_STORE == "postgres":
        global _postgres_user_store, _postgres_pending_store, _postgres_verification_store
        if _postgres_user_store is None:
            _postgres_user_store = PostgresUserStore()
            _postgres_pending_store = PostgresPendingUserStore()
            _postgres_verification_store = PostgresVerificationStore()
        return _postgres_user_store, _postgres_pending_store, _postgres_verification_store
    # Fallback to memory store for development/testing
    return _memory_user_store, _memory_pending_store, _memory_verification_store


def get_totp_crypto() -> TotpCrypto:
    global _totp_crypto
    if _totp_crypto is None:
        if not AuthConfig.TOTP_ENCRYPTION_KEY:
            raise RuntimeError("TOTP_ENCRYPTION_KEY is not set")
        _totp_crypto = TotpCrypto.from_hex(AuthConfig.TOTP_ENCRYPTION_KEY)
    return _totp_crypto


def build_auth_service(
    user_store: Any,
    pending_store: Any,
    verification_store: Any,
    totp_crypto: TotpCrypto,
    email_service: EmailService | None = None,
) -> AuthService:
    email_service = email_service or EmailService()
    return AuthService(
        user_store=user_store,
        user_service=UserService(user_store, email_service),
        pending_user_service=PendingUserService(pending_store, user_store),
        verification_service=VerificationService(verification_store, email_service),
        totp_service=TotpService(totp_crypto),
    )


def get_auth_service() -> AuthService:
    users, pending, verifications = _get_stores()
    return build_auth_service(users, pending, verifications, get_totp_crypto())


def get_user_service() -> UserService:
    users, _, _ = _get_stores()
    return UserService(users, EmailService())


def get_cleanup_service() -> CleanupService:
    users, pending, verifications = _get_stores()
    return CleanupService(
        PendingUserService(pending, users),
        VerificationService(verifications, EmailService()),
    )


def get_rate_limiter() -> RateLimiter:
    return _memory_rate_limiter


def rate_limit(scope: str, limit: int, window_seconds: int = 60) -> Callable[..., Awaitable[None]]:
    """Per-client-IP sliding window guard for one route."""

    async def enforce(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
        if not AuthConfig.RATE_LIMIT_ENABLED:
            return
        client_ip = request.client.host if request.client else "unknown"
        if not await limiter.allow(f"{scope}:{client_ip}", limit, window_seconds):
            exc = RateLimitError()
            raise HTTPException(status_code=exc.status_code, detail=exc.message)

    return enforce


async def get_current_user(
    access_token: str | None = Cookie(default=None),
    authorization: str | None = Header(default=None),
    auth_service: AuthService = Depends(get_auth_service),
) -> dict:
    token = access_token
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        return await auth_service.get_user_from_access(token)
    except AuthException as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


def set_cookie(response: Response, key: str, value: str, max_age: int) -> None:
    response.set_cookie(
        key=key,
        value=value,
        max_age=max_age,
        path="/",
        httponly=True,
        secure=AuthConfig.COOKIE_SECURE or Config.is_production(),
        samesite=AuthConfig.COOKIE_SAMESITE,
        domain=AuthConfig.COOKIE_DOMAIN,
    )


def set_auth_cookies(response: Response, result: AuthResult) -> None:
    refresh_max_age = int(timedelta(days=AuthConfig.REFRESH_TOKEN_EXPIRE_DAYS).total_seconds())
    set_cookie(response, "refresh_token", result.refresh_token, max_age=refresh_max_age)
    set_cookie(response, "access_token", result.access_token, max_age=result.expires_in)


def clear_auth_cookies(response: Response) -> None:
    for key in ("access_token", "refresh_token"):
        response.delete_cookie(
            key,
            path="/",
            domain=AuthConfig.COOKIE_DOMAIN,
            secure=AuthConfig.COOKIE_SECURE or Config.is_production(),
            httponly=True,
            samesite=AuthConfig.COOKIE_SAMESITE,
        )


def require_role(role: str) -> Callable[..., Awaitable[dict]]:
    """Authenticated-user guard that also checks ``role``."""

    async def enforce(current_user: dict = Depends(get_current_user)) -> dict:
        if current_user.get("role") != role:
            exc = ForbiddenError()
            raise HTTPException(status_code=exc.status_code, detail=exc.message)
        return current_user

    return enforce
