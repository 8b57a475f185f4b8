"""Account password operations."""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from typing import Any

from auth.config import AuthConfig
from auth.exceptions import BadRequestError, UnauthorizedError
from auth.interfaces.user_store import UserStore
from auth.security import hash_password, is_legacy_hash, verify_legacy_password, verify_password
from auth.services.email_service import EmailService

logger = logging.getLogger(__name__)

_CLEARED_REFRESH = {"refresh_token_hash": None, "refresh_token_expires": None}


class UserService:
    def __init__(self, user_store: UserStore, email_service: EmailService) -> None:
        self._users = user_store
        self._email_service = email_service

    async def validate_password(self, user: dict[str, Any], password: str) -> bool:
        """
        Check ``password`` against the user's stored hash.

        Accounts still carrying a legacy SHA-256 digest are upgraded to bcrypt
        on their first successful check.
        """
        hashed = user.get("password")
        if not hashed:
            return False

        if is_legacy_hash(hashed):
            if not verify_legacy_password(password, hashed):
                return False
            new_hash = await asyncio.to_thread(hash_password, password)
            await self._users.update_user(user["id"], {"password": new_hash})
            logger.info("Migrated legacy password hash for user %s", user["id"])
            return True

        return await asyncio.to_thread(verify_password, password, hashed)

    async def list_users(self) -> list[dict[str, Any]]:
        return await self._users.list_users()

    async def change_password(self, user_id: str, current_password: str, new_password: str) -> None:
        user = await self._users.get_by_id(user_id)
        if not user or not await self.validate_password(user, current_password):
            logger.warning("Password change rejected for user %s", user_id)
            raise UnauthorizedError()

        new_hash = await asyncio.to_thread(hash_password, new_password)
        await self._users.update_user(user_id, {"password": new_hash, **_CLEARED_REFRESH})

    async def request_password_reset(self, email: str) -> None:
        """Email a reset link. Unknown emails are ignored without signalling it."""
        user = await self._users.get_by_email(email)
        if not user:
            logger.info("Password reset requested for unknown email")
            return

        token = secrets.token_hex(32)
        expires_at = int(time.time()) + AuthConfig.PASSWORD_RESET_EXPIRY_MINUTES * 60
        await self._users.update_user(
            user["id"],
            {"reset_password_token": token, "reset_password_expires": expires_at},
        )
        if not await self._email_service.send_password_reset_email(email, token):
            logger.error("Password reset email for user %s was not delivered", user["id"])

    async def reset_password(self, token: str, new_password: str) -> None:
        user = await self._users.get_by_reset_token(token)
        expires_at = user.get("reset_password_expires") if user else None
        if not user or not expires_at or int(expires_at) < int(time.time()):
            raise BadRequestError("Invalid or expired reset token")

        new_hash = await asyncio.to_thread(hash_password, new_password)
        await self._users.update_user(
            user["id"],
            {
                "password": new_hash,
                "reset_password_token": None,
                "reset_password_expires": None,
                **_CLEARED_REFRESH,
            },
        )
        logger.info("Password reset completed for user %s", user["id"])
