"""Verification code store interface."""

from __future__ import annotations

from typing import Protocol


class VerificationStore(Protocol):
    async def get_by_email(self, email: str) -> dict | None:
        ...

    async def save(self, email: str, data: dict) -> None:
        ...

    async def delete_by_email(self, email: str) -> None:
        ...

    async def increment_attempts(self, email: str) -> int:
        ...

    async def delete_expired(self, now: int) -> int:
        ...
