"""Periodic removal of stale registration data."""

from __future__ import annotations

import asyncio
import logging

from auth.config import AuthConfig
from auth.services.pending_user_service import PendingUserService
from auth.services.verification_service import VerificationService

logger = logging.getLogger(__name__)


class CleanupService:
    def __init__(
        self,
        pending_user_service: PendingUserService,
        verification_service: VerificationService,
        interval_seconds: int = AuthConfig.CLEANUP_INTERVAL_SECONDS,
    ) -> None:
        self._pending = pending_user_service
        self._verification = verification_service
        self._interval = interval_seconds

    async def run_once(self) -> dict[str, int]:
        codes = await self._verification.cleanup_expired()
        pending = await self._pending.cleanup_expired()
        if codes or pending:
            logger.info("Cleanup removed %d expired codes and %d stale registrations", codes, pending)
        return {"verification_codes": codes, "pending_users": pending}

    async def run_forever(self) -> None:
        while True:
            try:
                await self.run_once()
            except Exception:
                # Keep the loop alive; the next tick retries
                logger.exception("Registration cleanup failed")
            await asyncio.sleep(self._interval)
