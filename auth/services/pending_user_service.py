"""Staging area for registrations awaiting email confirmation."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from auth.config import AuthConfig
from auth.exceptions import BadRequestError, ConflictError
from auth.interfaces.pending_user_store import PendingUserStore
from auth.interfaces.user_store import UserStore
from auth.security import hash_password

logger = logging.getLogger(__name__)


class PendingUserService:
    def __init__(self, pending_store: PendingUserStore, user_store: UserStore) -> None:
        self._pending = pending_store
        self._users = user_store

    async def create_pending_user(self, email: str, password: str, username: str | None = None) -> None:
        if await self._users.get_by_email(email):
            raise ConflictError("A user with this email already exists")

        hashed = await asyncio.to_thread(hash_password, password)
        # Re-registering before confirmation replaces the previous attempt
        await self._pending.upsert(
            email,
            {"password": hashed, "username": username, "verified": False},
        )

    async def exists(self, email: str) -> bool:
        return await self._pending.get_by_email(email) is not None

    async def promote(self, email: str) -> dict[str, Any]:
        """Create the real user from the pending record and drop the record."""
        pending = await self._pending.get_by_email(email)
        if not pending:
            raise BadRequestError("No pending registration for this email")

        # Password is already a bcrypt hash
        user = await self._users.create_user(
            {
                "email": pending["email"],
                "username": pending.get("username"),
                "password": pending["password"],
                "role": "USER",
            }
        )
        await self._pending.delete_by_email(email)
        logger.info("Registration confirmed for user %s", user["id"])
        return user

    async def cleanup_expired(self, max_age_hours: int = AuthConfig.PENDING_USER_TTL_HOURS) -> int:
        cutoff = int(time.time()) - max_age_hours * 3600
        return await self._pending.delete_created_before(cutoff)
