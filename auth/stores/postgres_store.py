"""PostgreSQL auth stores using SQLAlchemy."""

from __future__ import annotations

import time

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from db.engine import SessionLocal
from db.models.auth import PendingUser, VerificationCode
from db.models.user import User


def _user_to_dict(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "username": user.username,
        "password": user.password,
        "role": user.role,
        "refresh_token_hash": user.refresh_token_hash,
        "refresh_token_expires": user.refresh_token_expires,
        "reset_password_token": user.reset_password_token,
        "reset_password_expires": user.reset_password_expires,
        "totp_secret": user.totp_secret,
        "totp_enabled": bool(user.totp_enabled),
        "totp_recovery_codes": list(user.totp_recovery_codes or []),
        "created_at": int(user.created_at.timestamp()) if user.created_at else None,
        "updated_at": int(user.updated_at.timestamp()) if user.updated_at else None,
    }


class PostgresUserStore:
    """User store backed by PostgreSQL."""

    def _get_session(self) -> Session:
        return SessionLocal()

    async def get_by_email(self, email: str) -> dict | None:
        with self._get_session() as db:
            user = db.execute(
                select(User).where(User.email == email)
            ).scalar_one_or_none()
            return _user_to_dict(user) if user else None

    async def get_by_id(self, user_id: str) -> dict | None:
        with self._get_session() as db:
            user = db.get(User, user_id)
            return _user_to_dict(user) if user else None

    async def get_by_reset_token(self, token: str) -> dict | None:
        with self._get_session() as db:
            user = db.execute(
                select(User).where(User.reset_password_token == token)
            ).scalar_one_or_none()
            return _user_to_dict(user) if user else None

    async def list_users(self) -> list[dict]:
        with self._get_session() as db:
            users = db.execute(select(User).order_by(User.created_at.desc())).scalars().all()
            return [_user_to_dict(user) for user in users]

    async def create_user(self, data: dict) -> dict:
        with self._get_session() as db:
            user = User(
                email=data["email"],
                username=data.get("username"),
                password=data["password"],
                role=data.get("role", "USER"),
                totp_enabled=False,
                totp_recovery_codes=[],
            )
            db.add(user)
            try:
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                raise ValueError("Email already exists") from exc
            db.refresh(user)
            return _user_to_dict(user)

    async def update_user(self, user_id: str, updates: dict) -> dict:
        with self._get_session() as db:
            user = db.get(User, user_id)
            if not user:
                raise ValueError("User not found")
            for key, value in updates.items():
                if hasattr(user, key):
                    setattr(user, key, value)
            db.commit()
            db.refresh(user)
            return _user_to_dict(user)

    async def rotate_refresh_token(
        self, user_id: str, expected_hash: str, new_hash: str, expires_at: int
    ) -> bool:
        with self._get_session() as db:
            user = db.execute(
                select(User).where(User.id == user_id).with_for_update()
            ).scalar_one_or_none()
            if not user or user.refresh_token_hash != expected_hash:
                db.rollback()
                return False
            user.refresh_token_hash = new_hash
            user.refresh_token_expires = expires_at
            db.commit()
            return True

    async def remove_recovery_code(self, user_id: str, code_hash: str) -> bool:
        with self._get_session() as db:
            user = db.execute(
                select(User).where(User.id == user_id).with_for_update()
            ).scalar_one_or_none()
            codes = list(user.totp_recovery_codes or []) if user else []
            if code_hash not in codes:
                db.rollback()
                return False
            codes.remove(code_hash)
            # Reassign so SQLAlchemy sees the ARRAY change
            user.totp_recovery_codes = codes
            db.commit()
            return True


class PostgresPendingUserStore:
    """Pending registration store backed by PostgreSQL."""

    def _get_session(self) -> Session:
        return SessionLocal()

    async def get_by_email(self, email: str) -> dict | None:
        with self._get_session() as db:
            pending = db.get(PendingUser, email)
            if not pending:
                return None
            return {
                "email": pending.email,
                "password": pending.password,
                "username": pending.username,
                "verified": bool(pending.verified),
                "created_at": pending.created_at,
                "updated_at": pending.updated_at,
            }

    async def upsert(self, email: str, data: dict) -> dict:
        now = int(time.time())
        with self._get_session() as db:
            pending = db.get(PendingUser, email)
            if pending is None:
                pending = PendingUser(email=email, created_at=now)
                db.add(pending)
            pending.password = data["password"]
            pending.username = data.get("username")
            pending.verified = data.get("verified", False)
            pending.updated_at = now
            db.commit()
            return {
                "email": pending.email,
                "password": pending.password,
                "username": pending.username,
                "verified": bool(pending.verified),
                "created_at": pending.created_at,
                "updated_at": pending.updated_at,
            }

    async def delete_by_email(self, email: str) -> None:
        with self._get_session() as db:
            pending = db.get(PendingUser, email)
            if pending:
                db.delete(pending)
                db.commit()

    async def delete_created_before(self, cutoff: int) -> int:
        with self._get_session() as db:
            result = db.execute(delete(PendingUser).where(PendingUser.created_at < cutoff))
            db.commit()
            return result.rowcount or 0


class PostgresVerificationStore:
    """Verification code store backed by PostgreSQL."""

    def _get_session(self) -> Session:
        return SessionLocal()

    async def get_by_email(self, email: str) -> dict | None:
        with self._get_session() as db:
            verification = db.get(VerificationCode, email)
            if not verification:
                return None
            return {
                "email": verification.email,
                "code": verification.code,
                "expires_at": verification.expires_at,
                "attempts": verification.attempts,
                "created_at": verification.created_at,
                "updated_at": verification.updated_at,
            }

    async def save(self, email: str, data: dict) -> None:
        now = int(time.time())
        with self._get_session() as db:
            verification = db.get(VerificationCode, email)
            if verification is None:
                verification = VerificationCode(email=email, created_at=now)
                db.add(verification)
            verification.code = data["code"]
            verification.expires_at = data["expires_at"]
            verification.attempts = data.get("attempts", 0)
            verification.updated_at = now
            db.commit()

    async def delete_by_email(self, email: str) -> None:
        with self._get_session() as db:
            verification = db.get(VerificationCode, email)
            if verification:
                db.delete(verification)
                db.commit()

    async def increment_attempts(self, email: str) -> int:
        with self._get_session() as db:
            verification = db.execute(
                select(VerificationCode).where(VerificationCode.email == email).with_for_update()
            ).scalar_one_or_none()
            if not verification:
                return 0
            verification.attempts = (verification.attempts or 0) + 1
            verification.updated_at = int(time.time())
            db.commit()
            return verification.attempts

    async def delete_expired(self, now: int) -> int:
        with self._get_session() as db:
            result = db.execute(delete(VerificationCode).where(VerificationCode.expires_at < now))
            db.commit()
            return result.rowcount or 0
