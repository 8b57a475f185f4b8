"""Email verification codes for pending registrations."""

from __future__ import annotations

import logging
import secrets
import time

from auth.config import AuthConfig
from auth.interfaces.verification_store import VerificationStore
from auth.services.email_service import EmailService

logger = logging.getLogger(__name__)


class VerificationService:
    def __init__(self, verification_store: VerificationStore, email_service: EmailService) -> None:
        self._codes = verification_store
        self._email_service = email_service

    def generate_code(self) -> str:
        return str(secrets.randbelow(900000) + 100000)

    async def save_code(self, email: str, code: str) -> None:
        """Store ``code`` as the only outstanding code for ``email``."""
        expires_at = int(time.time()) + AuthConfig.VERIFICATION_CODE_EXPIRY_MINUTES * 60
        await self._codes.save(email, {"code": code, "expires_at": expires_at, "attempts": 0})

    async def verify_code(self, email: str, code: str) -> bool:
        """
        Check ``code`` against the stored one.

        Every check counts as an attempt. Once the attempt budget is spent the
        code can no longer succeed, even if correct. Expired codes are deleted.
        """
        record = await self._codes.get_by_email(email)
        if not record:
            logger.info("Verification for %s rejected: no outstanding code", email)
            return False

        if int(time.time()) > int(record["expires_at"]):
            await self._codes.delete_by_email(email)
            logger.info("Verification for %s rejected: code expired", email)
            return False

        if int(record.get("attempts", 0)) >= AuthConfig.MAX_VERIFICATION_ATTEMPTS:
            logger.warning("Verification for %s rejected: attempts exhausted", email)
            return False

        # The stored count may have moved since the read above
        attempts = await self._codes.increment_attempts(email)
        if attempts == 0:
            logger.info("Verification for %s rejected: code consumed concurrently", email)
            return False
        if attempts > AuthConfig.MAX_VERIFICATION_ATTEMPTS:
            logger.warning("Verification for %s rejected: attempts exhausted", email)
            return False

        if secrets.compare_digest(str(record["code"]).encode("utf-8"), code.encode("utf-8")):
            await self._codes.delete_by_email(email)
            return True

        logger.info("Verification for %s rejected: wrong code", email)
        return False

    async def can_resend(self, email: str) -> bool:
        record = await self._codes.get_by_email(email)
        if not record:
            return True
        return int(record["updated_at"]) <= int(time.time()) - AuthConfig.RESEND_COOLDOWN_SECONDS

    async def send_code(self, email: str, code: str) -> bool:
        return await self._email_service.send_verification_email(email, code)

    async def cleanup_expired(self) -> int:
        return await self._codes.delete_expired(int(time.time()))
