"""Auth configuration management."""

from __future__ import annotations

import os
import secrets
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading config
env_path = Path(__file__).parent.parent / ".env"
if env_path.exists():
    load_dotenv(env_path, override=True)
else:
    load_dotenv()


def _parse_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


_DEFAULT_JWT_SECRET = secrets.token_urlsafe(32)


@dataclass(frozen=True)
class AuthConfig:
    """Configuration values for auth flows."""

    ACCESS_TOKEN_EXPIRE_SECONDS: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_SECONDS", "86400"))
    REFRESH_TOKEN_EXPIRE_DAYS: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", "7"))
    TWO_FACTOR_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("TWO_FACTOR_TOKEN_EXPIRE_MINUTES", "5"))
    JWT_ALGORITHM: str = os.getenv("AUTH_JWT_ALGORITHM", "HS256")
    JWT_SECRET: str = os.getenv("AUTH_JWT_SECRET", _DEFAULT_JWT_SECRET)

    # bcrypt work factor for passwords and recovery codes
    BCRYPT_ROUNDS: int = int(os.getenv("BCRYPT_ROUNDS", "12"))

    # 32-byte AES key, hex encoded
    TOTP_ENCRYPTION_KEY: str = os.getenv("TOTP_ENCRYPTION_KEY", "")
    TOTP_ISSUER: str = os.getenv("TOTP_ISSUER", "CandiDash")
    TOTP_RECOVERY_CODE_COUNT: int = int(os.getenv("TOTP_RECOVERY_CODE_COUNT", "8"))

    VERIFICATION_CODE_EXPIRY_MINUTES: int = int(os.getenv("VERIFICATION_CODE_EXPIRY_MINUTES", "10"))
    MAX_VERIFICATION_ATTEMPTS: int = int(os.getenv("MAX_VERIFICATION_ATTEMPTS", "5"))
    RESEND_COOLDOWN_SECONDS: int = int(os.getenv("RESEND_COOLDOWN_SECONDS", "60"))
    PENDING_USER_TTL_HOURS: int = int(os.getenv("PENDING_USER_TTL_HOURS", "24"))
    PASSWORD_RESET_EXPIRY_MINUTES: int = int(os.getenv("PASSWORD_RESET_EXPIRY_MINUTES", "60"))
    CLEANUP_INTERVAL_SECONDS: int = int(os.getenv("CLEANUP_INTERVAL_SECONDS", "3600"))

    COOKIE_SECURE: bool = _parse_bool(
        os.getenv("COOKIE_SECURE"), os.getenv("ENVIRONMENT") == "production"
    )
    COOKIE_SAMESITE: str = os.getenv("COOKIE_SAME_SITE", "strict")
    COOKIE_DOMAIN: str | None = os.getenv("COOKIE_DOMAIN")

    LOGIN_RATE_LIMIT_PER_MINUTE: int = int(os.getenv("LOGIN_RATE_LIMIT_PER_MINUTE", "5"))
    REGISTER_RATE_LIMIT_PER_MINUTE: int = int(os.getenv("REGISTER_RATE_LIMIT_PER_MINUTE", "3"))
    VERIFY_RATE_LIMIT_PER_MINUTE: int = int(os.getenv("VERIFY_RATE_LIMIT_PER_MINUTE", "5"))
    RESEND_RATE_LIMIT_PER_MINUTE: int = int(os.getenv("RESEND_RATE_LIMIT_PER_MINUTE", "3"))
    RATE_LIMIT_ENABLED: bool = _parse_bool(os.getenv("RATE_LIMIT_ENABLED"), True)

    EMAIL_PROVIDER: str = os.getenv("EMAIL_PROVIDER", "resend")
    EMAIL_FROM_NAME: str = os.getenv("EMAIL_FROM_NAME", "CandiDash")
    EMAIL_FROM_ADDRESS: str = os.getenv("EMAIL_FROM_ADDRESS", "no-reply@candidash.app")
    RESEND_API_KEY: str | None = os.getenv("RESEND_API_KEY")
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")

    # Auth store: "postgres" (production) or "memory" (testing)
    AUTH_STORE: str = os.getenv("AUTH_STORE", "postgres")
