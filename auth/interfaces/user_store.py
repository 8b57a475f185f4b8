"""User store interface."""

from __future__ import annotations

from typing import Protocol


class UserStore(Protocol):
    async def get_by_email(self, email: str) -> dict | None:
        ...

    async def get_by_id(self, user_id: str) -> dict | None:
        ...

    async def get_by_reset_token(self, token: str) -> dict | None:
        ...

    async def create_user(self, data: dict) -> dict:
        ...

    async def update_user(self, user_id: str, updates: dict) -> dict:
        ...

    async def rotate_refresh_token(
        self, user_id: str, expected_hash: str, new_hash: str, expires_at: int
    ) -> bool:
        """Replace the stored refresh hash only if it still equals ``expected_hash``."""
        ...

    async def remove_recovery_code(self, user_id: str, code_hash: str) -> bool:
        """Atomically drop one recovery-code hash. False if it was already gone."""
        ...

    async def list_users(self) -> list[dict]:
        """Every user, newest first."""
        ...
