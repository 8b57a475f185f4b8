"""Shared builders for auth tests."""

from __future__ import annotations

import os

from auth.dependencies import build_auth_service
from auth.services.email_service import EmailService
from auth.services.totp_crypto import TotpCrypto
from auth.stores.memory_store import (
    MemoryPendingUserStore,
    MemoryUserStore,
    MemoryVerificationStore,
)


class RecordingEmailService(EmailService):
    """Captures outgoing messages instead of delivering them."""

    def __init__(self) -> None:
        self.verification_codes: dict[str, list[str]] = {}
        self.reset_tokens: dict[str, list[str]] = {}
        self.fail = False

    async def send_verification_email(self, email: str, code: str) -> bool:
        self.verification_codes.setdefault(email, []).append(code)
        return not self.fail

    async def send_password_reset_email(self, email: str, token: str) -> bool:
        self.reset_tokens.setdefault(email, []).append(token)
        return not self.fail

    def last_code(self, email: str) -> str:
        return self.verification_codes[email][-1]


class AuthHarness:
    """Auth service wired to fresh in-memory stores."""

    def __init__(self) -> None:
        self.users = MemoryUserStore()
        self.pending = MemoryPendingUserStore()
        self.codes = MemoryVerificationStore()
        self.email = RecordingEmailService()
        self.crypto = TotpCrypto.from_hex(os.environ["TOTP_ENCRYPTION_KEY"])
        self.service = build_auth_service(
            self.users, self.pending, self.codes, self.crypto, email_service=self.email
        )

    async def register_user(self, email: str, password: str, username: str | None = None):
        """Run the full registration ceremony and return the AuthResult."""
        await self.service.register(email, password, username)
        return await self.service.verify_registration(email, self.email.last_code(email))

    def backdate_code(self, email: str, seconds: int) -> None:
        record = self.codes._by_email[email]
        record["updated_at"] -= seconds
        record["expires_at"] -= seconds

    def backdate_pending(self, email: str, seconds: int) -> None:
        self.pending._pending[email]["created_at"] -= seconds
