"""Pending registration store interface."""

from __future__ import annotations

from typing import Protocol


class PendingUserStore(Protocol):
    async def get_by_email(self, email: str) -> dict | None:
        ...

    async def upsert(self, email: str, data: dict) -> dict:
        ...

    async def delete_by_email(self, email: str) -> None:
        ...

    async def delete_created_before(self, cutoff: int) -> int:
        ...
