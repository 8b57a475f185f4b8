"""In-memory auth stores."""

from __future__ import annotations

import asyncio
import copy
import time
from typing import Any
from uuid import uuid4


def _snapshot(record: dict[str, Any] | None) -> dict | None:
    # Callers get copies so list fields can't be mutated behind the lock
    return copy.deepcopy(record) if record else None


class MemoryUserStore:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._users_by_email: dict[str, dict[str, Any]] = {}
        self._users_by_id: dict[str, dict[str, Any]] = {}

    async def get_by_email(self, email: str) -> dict | None:
        async with self._lock:
            return _snapshot(self._users_by_email.get(email))

    async def get_by_id(self, user_id: str) -> dict | None:
        async with self._lock:
            return _snapshot(self._users_by_id.get(user_id))

    async def get_by_reset_token(self, token: str) -> dict | None:
        async with self._lock:
            for user in self._users_by_id.values():
                if user.get("reset_password_token") == token:
                    return _snapshot(user)
            return None

    async def list_users(self) -> list[dict]:
        async with self._lock:
            users = sorted(self._users_by_id.values(), key=lambda user: user["created_at"], reverse=True)
            return [_snapshot(user) for user in users]

    async def create_user(self, data: dict) -> dict:
        async with self._lock:
            if data["email"] in self._users_by_email:
                raise ValueError("Email already exists")
            now = int(time.time())
            payload = {
                "username": None,
                "role": "USER",
                "refresh_token_hash": None,
                "refresh_token_expires": None,
                "reset_password_token": None,
                "reset_password_expires": None,
                "totp_secret": None,
                "totp_enabled": False,
                "totp_recovery_codes": [],
                **copy.deepcopy(data),
            }
            payload["id"] = str(uuid4())
            payload["created_at"] = payload.get("created_at", now)
            payload["updated_at"] = payload.get("updated_at", payload["created_at"])
            self._users_by_email[payload["email"]] = payload
            self._users_by_id[payload["id"]] = payload
            return _snapshot(payload)

    async def update_user(self, user_id: str, updates: dict) -> dict:
        async with self._lock:
            user = self._users_by_id.get(user_id)
            if not user:
                raise ValueError("User not found")
            for key, value in updates.items():
                user[key] = copy.deepcopy(value)
            user["updated_at"] = int(time.time())
            return _snapshot(user)

    async def rotate_refresh_token(
        self, user_id: str, expected_hash: str, new_hash: str, expires_at: int
    ) -> bool:
        async with self._lock:
            user = self._users_by_id.get(user_id)
            if not user or user.get("refresh_token_hash") != expected_hash:
                return False
            user["refresh_token_hash"] = new_hash
            user["refresh_token_expires"] = expires_at
            user["updated_at"] = int(time.time())
            return True

    async def remove_recovery_code(self, user_id: str, code_hash: str) -> bool:
        async with self._lock:
            user = self._users_by_id.get(user_id)
            if not user:
                return False
            codes = user.get("totp_recovery_codes") or []
            if code_hash not in codes:
                return False
            codes.remove(code_hash)
            user["totp_recovery_codes"] = codes
            user["updated_at"] = int(time.time())
            return True


class MemoryPendingUserStore:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._pending: dict[str, dict[str, Any]] = {}

    async def get_by_email(self, email: str) -> dict | None:
        async with self._lock:
            return _snapshot(self._pending.get(email))

    async def upsert(self, email: str, data: dict) -> dict:
        async with self._lock:
            now = int(time.time())
            existing = self._pending.get(email)
            payload = dict(data)
            payload["email"] = email
            payload["created_at"] = existing["created_at"] if existing else now
            payload["updated_at"] = now
            self._pending[email] = payload
            return dict(payload)

    async def delete_by_email(self, email: str) -> None:
        async with self._lock:
            self._pending.pop(email, None)

    async def delete_created_before(self, cutoff: int) -> int:
        async with self._lock:
            stale = [email for email, record in self._pending.items() if record["created_at"] < cutoff]
            for email in stale:
                del self._pending[email]
            return len(stale)


class MemoryVerificationStore:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._by_email: dict[str, dict[str, Any]] = {}

    async def get_by_email(self, email: str) -> dict | None:
        async with self._lock:
            return _snapshot(self._by_email.get(email))

    async def save(self, email: str, data: dict) -> None:
        async with self._lock:
            now = int(time.time())
            existing = self._by_email.get(email)
            payload = dict(data)
            payload["email"] = email
            payload["created_at"] = existing["created_at"] if existing else now
            payload["updated_at"] = now
            self._by_email[email] = payload

    async def delete_by_email(self, email: str) -> None:
        async with self._lock:
            self._by_email.pop(email, None)

    async def increment_attempts(self, email: str) -> int:
        async with self._lock:
            record = self._by_email.get(email)
            if not record:
                return 0
            record["attempts"] = int(record.get("attempts", 0)) + 1
            record["updated_at"] = int(time.time())
            return record["attempts"]

    async def delete_expired(self, now: int) -> int:
        async with self._lock:
            expired = [email for email, record in self._by_email.items() if record["expires_at"] < now]
            for email in expired:
                del self._by_email[email]
            return len(expired)


class MemoryRateLimiter:
    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._hits: dict[str, list[float]] = {}

    async def allow(self, key: str, limit: int, window_seconds: int) -> bool:
        now = time.time()
        async with self._lock:
            hits = self._hits.get(key, [])
            hits = [timestamp for timestamp in hits if (now - timestamp) < window_seconds]
            if len(hits) >= limit:
                self._hits[key] = hits
                return False
            hits.append(now)
            self._hits[key] = hits
            return True

    async def reset(self) -> None:
        async with self._lock:
            self._hits.clear()
