"""Core auth service: login, token rotation, two-factor and registration ceremonies."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from auth.config import AuthConfig
from auth.exceptions import BadRequestError, UnauthorizedError
from auth.interfaces.user_store import UserStore
from auth.schemas import (
    AuthResult,
    MessageResponse,
    RecoveryCodesResponse,
    RegisterResponse,
    SafeUser,
    TotpSetupResponse,
    TwoFactorPendingResponse,
)
from auth.security import (
    TokenType,
    create_access_token,
    create_refresh_token,
    create_two_factor_token,
    decode_token,
    hash_password,
    hash_token,
    token_matches,
    verify_password,
)
from auth.services.pending_user_service import PendingUserService
from auth.services.totp_service import TotpService
from auth.services.user_service import UserService
from auth.services.verification_service import VerificationService

logger = logging.getLogger(__name__)

INVALID_TOKEN = "Invalid token"

# Shared by every AuthService in the process; set on first unknown-email login
_dummy_hash: str | None = None


def to_safe_user(user: dict[str, Any]) -> SafeUser:
    # SafeUser ignores password, refresh, reset and TOTP secret fields
    return SafeUser.model_validate(user)


class AuthService:
    def __init__(
        self,
        user_store: UserStore,
        user_service: UserService,
        pending_user_service: PendingUserService,
        verification_service: VerificationService,
        totp_service: TotpService,
    ) -> None:
        self._users = user_store
        self._user_service = user_service
        self._pending = pending_user_service
        self._verification = verification_service
        self._totp = totp_service

    # ------------------------------------------------------------------
    # Login and session lifecycle
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> AuthResult | TwoFactorPendingResponse:
        user = await self._users.get_by_email(email)
        if not user:
            await self._burn_password_check(password)
            logger.warning("Login rejected: unknown email")
            raise UnauthorizedError()

        if not await self._user_service.validate_password(user, password):
            logger.warning("Login rejected for user %s: wrong password", user["id"])
            raise UnauthorizedError()

        if user.get("totp_enabled"):
            logger.info("Login for user %s awaiting second factor", user["id"])
            return TwoFactorPendingResponse(temp_token=create_two_factor_token(user["id"]))

        return await self.generate_full_auth_tokens(user)

    async def login_after_registration(self, email: str) -> AuthResult:
        user = await self._users.get_by_email(email)
        if not user:
            raise UnauthorizedError()
        return await self.generate_full_auth_tokens(user)

    async def generate_full_auth_tokens(
        self,
        user: dict[str, Any],
        rotate_from: str | None = None,
    ) -> AuthResult:
        """
        Issue an access/refresh pair and record the refresh digest on the user.

        Each user has a single active refresh token, so this replaces whatever
        was stored before. With ``rotate_from`` the replacement only happens if
        the stored digest still equals it; losing that race is Unauthorized.
        """
        access_token = create_access_token(user)
        refresh_token, refresh_expires = create_refresh_token(user["id"])
        refresh_hash = hash_token(refresh_token)

        if rotate_from is None:
            await self._users.update_user(
                user["id"],
                {"refresh_token_hash": refresh_hash, "refresh_token_expires": refresh_expires},
            )
        elif not await self._users.rotate_refresh_token(
            user["id"], rotate_from, refresh_hash, refresh_expires
        ):
            logger.warning("Refresh rejected for user %s: token already rotated", user["id"])
            raise UnauthorizedError(INVALID_TOKEN)

        return AuthResult(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_in=AuthConfig.ACCESS_TOKEN_EXPIRE_SECONDS,
            token_type="Bearer",
            user=to_safe_user(user),
        )

    async def refresh_token(self, token: str) -> AuthResult:
        payload = decode_token(token, TokenType.REFRESH)

        user = await self._users.get_by_id(payload["sub"])
        if not user:
            logger.warning("Refresh rejected: user %s not found", payload["sub"])
            raise UnauthorizedError(INVALID_TOKEN)

        stored_hash = user.get("refresh_token_hash")
        stored_expires = user.get("refresh_token_expires")
        if not token_matches(token, stored_hash):
            logger.warning("Refresh rejected for user %s: token superseded or revoked", user["id"])
            raise UnauthorizedError(INVALID_TOKEN)
        if not stored_expires or int(stored_expires) < int(time.time()):
            logger.warning("Refresh rejected for user %s: stored token expired", user["id"])
            raise UnauthorizedError(INVALID_TOKEN)

        return await self.generate_full_auth_tokens(user, rotate_from=stored_hash)

    async def logout(self, user_id: str) -> MessageResponse:
        # Access tokens already issued stay valid until they expire
        if await self._users.get_by_id(user_id):
            await self._users.update_user(
                user_id, {"refresh_token_hash": None, "refresh_token_expires": None}
            )
        return MessageResponse(message="Logged out successfully")

    async def get_user_from_access(self, access_token: str) -> dict[str, Any]:
        payload = decode_token(access_token, TokenType.ACCESS)
        user = await self._users.get_by_id(payload["sub"])
        if not user:
            raise UnauthorizedError(INVALID_TOKEN)
        return user

    # ------------------------------------------------------------------
    # TOTP
    # ------------------------------------------------------------------

    async def setup_totp(self, user_id: str) -> TotpSetupResponse:
        user = await self._users.get_by_id(user_id)
        if not user:
            raise UnauthorizedError()
        if user.get("totp_enabled"):
            raise BadRequestError("Two-factor authentication is already enabled")

        setup = self._totp.generate_setup(user["email"])
        await self._users.update_user(user_id, {"totp_secret": setup.encrypted_secret})
        return TotpSetupResponse(
            qr_code_data_uri=setup.qr_code_data_uri,
            otpauth_uri=setup.otpauth_uri,
        )

    async def verify_totp_setup(self, user_id: str, code: str) -> RecoveryCodesResponse:
        user = await self._users.get_by_id(user_id)
        if not user or not user.get("totp_secret"):
            raise BadRequestError("TOTP setup has not been started")
        if user.get("totp_enabled"):
            raise BadRequestError("Two-factor authentication is already enabled")

        if not self._totp.verify_code(user["totp_secret"], code):
            raise BadRequestError("Invalid TOTP code")

        recovery_codes = self._totp.generate_recovery_codes()
        hashed_codes = await asyncio.to_thread(self._totp.hash_recovery_codes, recovery_codes)
        await self._users.update_user(
            user_id, {"totp_enabled": True, "totp_recovery_codes": hashed_codes}
        )
        logger.info("Two-factor authentication enabled for user %s", user_id)
        # Plaintext codes are only ever returned here
        return RecoveryCodesResponse(recovery_codes=recovery_codes)

    async def disable_totp(self, user_id: str, password: str) -> None:
        user = await self._users.get_by_id(user_id)
        if not user:
            raise UnauthorizedError()
        if not await self._user_service.validate_password(user, password):
            logger.warning("TOTP disable rejected for user %s: wrong password", user_id)
            raise UnauthorizedError()

        await self._users.update_user(
            user_id,
            {"totp_secret": None, "totp_enabled": False, "totp_recovery_codes": []},
        )
        logger.info("Two-factor authentication disabled for user %s", user_id)

    async def validate_totp(self, temp_token: str, code: str) -> AuthResult:
        user = await self._user_from_temp_token(temp_token)
        if not user.get("totp_secret"):
            raise UnauthorizedError()

        if not self._totp.verify_code(user["totp_secret"], code):
            logger.warning("TOTP login rejected for user %s: wrong code", user["id"])
            raise UnauthorizedError()

        return await self.generate_full_auth_tokens(user)

    async def use_recovery_code(self, temp_token: str, recovery_code: str) -> AuthResult:
        user = await self._user_from_temp_token(temp_token)

        hashed_codes = user.get("totp_recovery_codes") or []
        index = await asyncio.to_thread(self._totp.find_recovery_code, recovery_code, hashed_codes)
        if index == -1:
            logger.warning("Recovery login rejected for user %s: no matching code", user["id"])
            raise UnauthorizedError()

        if not await self._users.remove_recovery_code(user["id"], hashed_codes[index]):
            logger.warning("Recovery login rejected for user %s: code consumed concurrently", user["id"])
            raise UnauthorizedError()

        logger.info(
            "Recovery code used for user %s, %d remaining", user["id"], len(hashed_codes) - 1
        )
        return await self.generate_full_auth_tokens(user)

    async def _user_from_temp_token(self, temp_token: str) -> dict[str, Any]:
        payload = decode_token(temp_token, TokenType.TWO_FACTOR_PENDING)
        user = await self._users.get_by_id(payload["sub"])
        if not user or not user.get("totp_enabled"):
            logger.warning("Second factor rejected: user %s has no active TOTP", payload["sub"])
            raise UnauthorizedError()
        return user

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register(self, email: str, password: str, username: str | None = None) -> RegisterResponse:
        await self._pending.create_pending_user(email, password, username)
        await self._issue_verification_code(email)
        return RegisterResponse(
            message="Verification code sent by email. Please check your inbox.",
            email=email,
        )

    async def verify_registration(self, email: str, code: str) -> AuthResult:
        if not await self._verification.verify_code(email, code):
            raise BadRequestError("Invalid or expired verification code")

        if not await self._pending.exists(email):
            raise BadRequestError("No pending registration for this email")

        await self._pending.promote(email)
        return await self.login_after_registration(email)

    async def resend_verification_code(self, email: str) -> MessageResponse:
        if not await self._verification.can_resend(email):
            raise BadRequestError("Please wait at least one minute before requesting a new code")

        if not await self._pending.exists(email):
            raise BadRequestError("No pending registration for this email")

        await self._issue_verification_code(email)
        return MessageResponse(message="A new verification code has been sent")

    async def _issue_verification_code(self, email: str) -> None:
        code = self._verification.generate_code()
        await self._verification.save_code(email, code)
        # The pending registration is kept so the client can ask for a resend
        if not await self._verification.send_code(email, code):
            raise BadRequestError("Could not send the verification code")

    async def _burn_password_check(self, password: str) -> None:
        """Spend one bcrypt check so unknown emails take as long as wrong passwords."""
        global _dummy_hash
        if _dummy_hash is None:
            _dummy_hash = await asyncio.to_thread(hash_password, "not-a-real-password")
        await asyncio.to_thread(verify_password, password, _dummy_hash)
