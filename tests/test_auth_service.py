import asyncio
import hashlib
import time
import unittest
from unittest import mock

import pyotp

from auth.dependencies import get_auth_service
from auth.exceptions import BadRequestError, ConflictError, UnauthorizedError
from auth.schemas import AuthResult, TwoFactorPendingResponse
from auth.security import create_refresh_token, create_two_factor_token, hash_password, verify_password
from auth.services import auth_service as auth_service_module
from tests.support import AuthHarness

EMAIL = "alice@example.com"
PASSWORD = "Secret123!"


class AuthServiceTestCase(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.harness = AuthHarness()
        self.service = self.harness.service

    async def enable_totp(self, user_id: str) -> tuple[str, list[str]]:
        setup = await self.service.setup_totp(user_id)
        secret = pyotp.parse_uri(setup.otpauth_uri).secret
        result = await self.service.verify_totp_setup(user_id, pyotp.TOTP(secret).now())
        return secret, result.recovery_codes


class TestLogin(AuthServiceTestCase):
    async def test_login_without_totp_returns_tokens(self):
        registered = await self.harness.register_user(EMAIL, PASSWORD, "alice")
        result = await self.service.login(EMAIL, PASSWORD)

        self.assertIsInstance(result, AuthResult)
        self.assertEqual(result.expires_in, 86400)
        self.assertEqual(result.token_type, "Bearer")
        self.assertEqual(result.user.id, registered.user.id)
        self.assertEqual(result.user.username, "alice")

    async def test_safe_user_has_no_secrets(self):
        result = await self.harness.register_user(EMAIL, PASSWORD)
        dumped = result.user.model_dump()
        for field in (
            "password",
            "refresh_token_hash",
            "refresh_token_expires",
            "totp_secret",
            "totp_recovery_codes",
            "reset_password_token",
            "reset_password_expires",
        ):
            self.assertNotIn(field, dumped)

    async def test_unknown_email_and_wrong_password_look_identical(self):
        await self.harness.register_user(EMAIL, PASSWORD)

        with self.assertRaises(UnauthorizedError) as unknown:
            await self.service.login("bob@example.com", PASSWORD)
        with self.assertRaises(UnauthorizedError) as wrong:
            await self.service.login(EMAIL, "Wrong123!")

        self.assertEqual(unknown.exception.message, wrong.exception.message)
        self.assertEqual(unknown.exception.status_code, 401)

    async def test_unknown_email_check_hashes_once_per_process(self):
        with mock.patch.object(auth_service_module, "_dummy_hash", None), mock.patch(
            "auth.services.auth_service.hash_password", wraps=hash_password
        ) as hashed:
            for _ in range(3):
                with self.assertRaises(UnauthorizedError):
                    await get_auth_service().login("nobody@example.com", PASSWORD)
            self.assertEqual(hashed.call_count, 1)
            self.assertIsNotNone(auth_service_module._dummy_hash)

    async def test_login_with_totp_returns_pending_marker(self):
        registered = await self.harness.register_user(EMAIL, PASSWORD)
        await self.enable_totp(registered.user.id)
        await self.service.logout(registered.user.id)

        result = await self.service.login(EMAIL, PASSWORD)

        self.assertIsInstance(result, TwoFactorPendingResponse)
        self.assertTrue(result.requires_2fa)
        self.assertTrue(result.temp_token)
        user = await self.harness.users.get_by_id(registered.user.id)
        self.assertIsNone(user["refresh_token_hash"])
        self.assertIsNone(user["refresh_token_expires"])

    async def test_legacy_hash_migrates_on_login(self):
        user = await self.harness.users.create_user(
            {"email": EMAIL, "password": hashlib.sha256(PASSWORD.encode()).hexdigest()}
        )

        result = await self.service.login(EMAIL, PASSWORD)

        self.assertIsInstance(result, AuthResult)
        stored = await self.harness.users.get_by_id(user["id"])
        self.assertTrue(stored["password"].startswith("$2"))
        self.assertTrue(verify_password(PASSWORD, stored["password"]))

    async def test_new_login_supersedes_previous_refresh_token(self):
        first = await self.harness.register_user(EMAIL, PASSWORD)
        await self.service.login(EMAIL, PASSWORD)

        with self.assertRaises(UnauthorizedError):
            await self.service.refresh_token(first.refresh_token)


class TestRefreshAndLogout(AuthServiceTestCase):
    async def test_refresh_rotates_both_tokens(self):
        first = await self.harness.register_user(EMAIL, PASSWORD)
        second = await self.service.refresh_token(first.refresh_token)

        self.assertNotEqual(first.refresh_token, second.refresh_token)
        self.assertNotEqual(first.access_token, second.access_token)

        with self.assertRaises(UnauthorizedError):
            await self.service.refresh_token(first.refresh_token)

        third = await self.service.refresh_token(second.refresh_token)
        self.assertIsInstance(third, AuthResult)

    async def test_logout_revokes_refresh_token(self):
        result = await self.harness.register_user(EMAIL, PASSWORD)
        response = await self.service.logout(result.user.id)
        self.assertTrue(response.message)

        with self.assertRaises(UnauthorizedError):
            await self.service.refresh_token(result.refresh_token)

    async def test_logout_is_idempotent(self):
        result = await self.harness.register_user(EMAIL, PASSWORD)
        await self.service.logout(result.user.id)
        await self.service.logout(result.user.id)
        await self.service.logout("missing-user")

    async def test_access_token_survives_logout(self):
        result = await self.harness.register_user(EMAIL, PASSWORD)
        await self.service.logout(result.user.id)
        user = await self.service.get_user_from_access(result.access_token)
        self.assertEqual(user["id"], result.user.id)

    async def test_refresh_rejects_other_token_kinds(self):
        result = await self.harness.register_user(EMAIL, PASSWORD)
        with self.assertRaises(UnauthorizedError):
            await self.service.refresh_token(result.access_token)
        with self.assertRaises(UnauthorizedError):
            await self.service.refresh_token(create_two_factor_token(result.user.id))
        with self.assertRaises(UnauthorizedError):
            await self.service.refresh_token("not-a-jwt")

    async def test_refresh_rejects_validly_signed_but_unknown_token(self):
        result = await self.harness.register_user(EMAIL, PASSWORD)
        forged, _ = create_refresh_token(result.user.id)
        with self.assertRaises(UnauthorizedError):
            await self.service.refresh_token(forged)

    async def test_refresh_rejects_when_stored_expiry_passed(self):
        result = await self.harness.register_user(EMAIL, PASSWORD)
        await self.harness.users.update_user(result.user.id, {"refresh_token_expires": 1})
        with self.assertRaises(UnauthorizedError):
            await self.service.refresh_token(result.refresh_token)

    async def test_concurrent_refresh_with_same_token_only_one_wins(self):
        result = await self.harness.register_user(EMAIL, PASSWORD)

        outcomes = await asyncio.gather(
            self.service.refresh_token(result.refresh_token),
            self.service.refresh_token(result.refresh_token),
            return_exceptions=True,
        )

        successes = [o for o in outcomes if isinstance(o, AuthResult)]
        failures = [o for o in outcomes if isinstance(o, UnauthorizedError)]
        self.assertEqual(len(successes), 1)
        self.assertEqual(len(failures), 1)
        # The winner's token is the one that stays usable
        await self.service.refresh_token(successes[0].refresh_token)


class TestTotp(AuthServiceTestCase):
    async def asyncSetUp(self):
        self.registered = await self.harness.register_user(EMAIL, PASSWORD)
        self.user_id = self.registered.user.id

    async def test_setup_then_verify_enables_totp(self):
        setup = await self.service.setup_totp(self.user_id)
        self.assertTrue(setup.qr_code_data_uri.startswith("data:image/png;base64,"))

        stored = await self.harness.users.get_by_id(self.user_id)
        self.assertFalse(stored["totp_enabled"])
        self.assertIsNotNone(stored["totp_secret"])

        secret = pyotp.parse_uri(setup.otpauth_uri).secret
        self.assertNotEqual(stored["totp_secret"], secret)
        result = await self.service.verify_totp_setup(self.user_id, pyotp.TOTP(secret).now())

        self.assertEqual(len(result.recovery_codes), 8)
        stored = await self.harness.users.get_by_id(self.user_id)
        self.assertTrue(stored["totp_enabled"])
        self.assertEqual(len(stored["totp_recovery_codes"]), 8)
        self.assertNotIn(result.recovery_codes[0], stored["totp_recovery_codes"])

    async def test_verify_setup_with_wrong_code_changes_nothing(self):
        setup = await self.service.setup_totp(self.user_id)
        before = await self.harness.users.get_by_id(self.user_id)
        totp = pyotp.TOTP(pyotp.parse_uri(setup.otpauth_uri).secret)
        accepted = {totp.at(time.time() + offset) for offset in (-30, 0, 30)}
        wrong = next(code for code in ("000000", "111111", "222222", "333333") if code not in accepted)

        with self.assertRaises(BadRequestError):
            await self.service.verify_totp_setup(self.user_id, wrong)

        after = await self.harness.users.get_by_id(self.user_id)
        self.assertFalse(after["totp_enabled"])
        self.assertEqual(after["totp_recovery_codes"], [])
        self.assertEqual(after["totp_secret"], before["totp_secret"])

    async def test_verify_setup_without_setup(self):
        with self.assertRaises(BadRequestError):
            await self.service.verify_totp_setup(self.user_id, "123456")

    async def test_setup_again_replaces_pending_secret(self):
        first = await self.service.setup_totp(self.user_id)
        second = await self.service.setup_totp(self.user_id)
        old_secret = pyotp.parse_uri(first.otpauth_uri).secret
        new_secret = pyotp.parse_uri(second.otpauth_uri).secret
        self.assertNotEqual(old_secret, new_secret)

        result = await self.service.verify_totp_setup(self.user_id, pyotp.TOTP(new_secret).now())
        self.assertEqual(len(result.recovery_codes), 8)

    async def test_validate_totp_completes_login(self):
        secret, _ = await self.enable_totp(self.user_id)
        pending = await self.service.login(EMAIL, PASSWORD)

        result = await self.service.validate_totp(pending.temp_token, pyotp.TOTP(secret).now())

        self.assertIsInstance(result, AuthResult)
        self.assertTrue(result.user.totp_enabled)
        refreshed = await self.service.refresh_token(result.refresh_token)
        self.assertIsInstance(refreshed, AuthResult)

    async def test_validate_totp_rejects_wrong_code(self):
        secret, _ = await self.enable_totp(self.user_id)
        pending = await self.service.login(EMAIL, PASSWORD)
        current = pyotp.TOTP(secret).now()
        wrong = "000000" if current != "000000" else "111111"

        with self.assertRaises(UnauthorizedError):
            await self.service.validate_totp(pending.temp_token, wrong)

    async def test_second_factor_rejects_non_pending_tokens(self):
        secret, codes = await self.enable_totp(self.user_id)
        login = await self.service.login(EMAIL, PASSWORD)
        self.assertIsInstance(login, TwoFactorPendingResponse)
        refresh, _ = create_refresh_token(self.user_id)

        for token in (refresh, self.registered.access_token):
            with self.assertRaises(UnauthorizedError):
                await self.service.validate_totp(token, pyotp.TOTP(secret).now())
            with self.assertRaises(UnauthorizedError):
                await self.service.use_recovery_code(token, codes[0])

    async def test_recovery_code_is_single_use(self):
        _, codes = await self.enable_totp(self.user_id)
        pending = await self.service.login(EMAIL, PASSWORD)

        result = await self.service.use_recovery_code(pending.temp_token, codes[0])
        self.assertIsInstance(result, AuthResult)

        with self.assertRaises(UnauthorizedError):
            await self.service.use_recovery_code(pending.temp_token, codes[0])

        stored = await self.harness.users.get_by_id(self.user_id)
        self.assertEqual(len(stored["totp_recovery_codes"]), 7)

        other = await self.service.use_recovery_code(pending.temp_token, codes[1])
        self.assertIsInstance(other, AuthResult)

    async def test_concurrent_recovery_with_same_code_only_one_wins(self):
        _, codes = await self.enable_totp(self.user_id)
        pending = await self.service.login(EMAIL, PASSWORD)

        outcomes = await asyncio.gather(
            self.service.use_recovery_code(pending.temp_token, codes[2]),
            self.service.use_recovery_code(pending.temp_token, codes[2]),
            return_exceptions=True,
        )

        self.assertEqual(sum(isinstance(o, AuthResult) for o in outcomes), 1)
        self.assertEqual(sum(isinstance(o, UnauthorizedError) for o in outcomes), 1)
        stored = await self.harness.users.get_by_id(self.user_id)
        self.assertEqual(len(stored["totp_recovery_codes"]), 7)

    async def test_disable_requires_password(self):
        await self.enable_totp(self.user_id)

        with self.assertRaises(UnauthorizedError):
            await self.service.disable_totp(self.user_id, "Wrong123!")
        stored = await self.harness.users.get_by_id(self.user_id)
        self.assertTrue(stored["totp_enabled"])

        await self.service.disable_totp(self.user_id, PASSWORD)
        stored = await self.harness.users.get_by_id(self.user_id)
        self.assertFalse(stored["totp_enabled"])
        self.assertIsNone(stored["totp_secret"])
        self.assertEqual(stored["totp_recovery_codes"], [])

        result = await self.service.login(EMAIL, PASSWORD)
        self.assertIsInstance(result, AuthResult)

    async def test_pending_token_useless_after_disable(self):
        secret, _ = await self.enable_totp(self.user_id)
        pending = await self.service.login(EMAIL, PASSWORD)
        await self.service.disable_totp(self.user_id, PASSWORD)

        with self.assertRaises(UnauthorizedError):
            await self.service.validate_totp(pending.temp_token, pyotp.TOTP(secret).now())


class TestRegistration(AuthServiceTestCase):
    async def test_register_stages_hashed_password(self):
        response = await self.service.register(EMAIL, PASSWORD, "alice")

        self.assertEqual(response.email, EMAIL)
        pending = await self.harness.pending.get_by_email(EMAIL)
        self.assertFalse(pending["verified"])
        self.assertNotEqual(pending["password"], PASSWORD)
        self.assertTrue(verify_password(PASSWORD, pending["password"]))
        self.assertIsNone(await self.harness.users.get_by_email(EMAIL))
        self.assertRegex(self.harness.email.last_code(EMAIL), r"^\d{6}$")

    async def test_verify_promotes_without_rehashing(self):
        await self.service.register(EMAIL, PASSWORD)
        staged_hash = (await self.harness.pending.get_by_email(EMAIL))["password"]

        result = await self.service.verify_registration(EMAIL, self.harness.email.last_code(EMAIL))

        self.assertIsInstance(result, AuthResult)
        user = await self.harness.users.get_by_email(EMAIL)
        self.assertEqual(user["password"], staged_hash)
        self.assertEqual(user["role"], "USER")
        self.assertIsNotNone(user["refresh_token_hash"])
        self.assertIsNone(await self.harness.pending.get_by_email(EMAIL))

    async def test_register_existing_user_conflicts(self):
        await self.harness.register_user(EMAIL, PASSWORD)
        with self.assertRaises(ConflictError):
            await self.service.register(EMAIL, "Another123!")

    async def test_reregistering_overwrites_pending(self):
        await self.service.register(EMAIL, PASSWORD, "alice")
        await self.harness.pending.upsert(
            EMAIL, {**(await self.harness.pending.get_by_email(EMAIL)), "verified": True}
        )
        await self.service.register(EMAIL, "Different123!", "alice2")

        pending = await self.harness.pending.get_by_email(EMAIL)
        self.assertFalse(pending["verified"])
        self.assertEqual(pending["username"], "alice2")
        self.assertTrue(verify_password("Different123!", pending["password"]))

    async def test_five_wrong_codes_lock_out_the_correct_one(self):
        await self.service.register(EMAIL, PASSWORD)
        code = self.harness.email.last_code(EMAIL)
        wrong = "000000" if code != "000000" else "111111"

        for _ in range(5):
            with self.assertRaises(BadRequestError):
                await self.service.verify_registration(EMAIL, wrong)

        with self.assertRaises(BadRequestError):
            await self.service.verify_registration(EMAIL, code)
        self.assertIsNone(await self.harness.users.get_by_email(EMAIL))

    async def test_expired_code_fails_and_is_deleted(self):
        await self.service.register(EMAIL, PASSWORD)
        code = self.harness.email.last_code(EMAIL)
        self.harness.backdate_code(EMAIL, 11 * 60)

        with self.assertRaises(BadRequestError):
            await self.service.verify_registration(EMAIL, code)
        self.assertIsNone(await self.harness.codes.get_by_email(EMAIL))

    async def test_verify_without_pending_user(self):
        await self.service.register(EMAIL, PASSWORD)
        code = self.harness.email.last_code(EMAIL)
        await self.harness.pending.delete_by_email(EMAIL)

        with self.assertRaises(BadRequestError):
            await self.service.verify_registration(EMAIL, code)

    async def test_resend_twice_within_a_minute(self):
        await self.service.register(EMAIL, PASSWORD)
        self.harness.backdate_code(EMAIL, 61)

        response = await self.service.resend_verification_code(EMAIL)
        self.assertTrue(response.message)
        self.assertEqual(len(self.harness.email.verification_codes[EMAIL]), 2)

        with self.assertRaises(BadRequestError) as ctx:
            await self.service.resend_verification_code(EMAIL)
        self.assertIn("wait at least one minute", ctx.exception.message)

    async def test_resent_code_replaces_old_one(self):
        await self.service.register(EMAIL, PASSWORD)
        old_code = self.harness.email.last_code(EMAIL)
        self.harness.backdate_code(EMAIL, 61)
        await self.service.resend_verification_code(EMAIL)
        new_code = self.harness.email.last_code(EMAIL)

        if old_code != new_code:
            with self.assertRaises(BadRequestError):
                await self.service.verify_registration(EMAIL, old_code)
        result = await self.service.verify_registration(EMAIL, new_code)
        self.assertIsInstance(result, AuthResult)

    async def test_resend_without_pending_registration(self):
        with self.assertRaises(BadRequestError):
            await self.service.resend_verification_code("nobody@example.com")

    async def test_email_failure_keeps_pending_user(self):
        self.harness.email.fail = True
        with self.assertRaises(BadRequestError):
            await self.service.register(EMAIL, PASSWORD)

        self.assertIsNotNone(await self.harness.pending.get_by_email(EMAIL))
        self.harness.email.fail = False
        self.harness.backdate_code(EMAIL, 61)
        await self.service.resend_verification_code(EMAIL)
        result = await self.service.verify_registration(EMAIL, self.harness.email.last_code(EMAIL))
        self.assertIsInstance(result, AuthResult)


class TestPasswordManagement(AuthServiceTestCase):
    async def asyncSetUp(self):
        self.registered = await self.harness.register_user(EMAIL, PASSWORD)
        self.user_service = self.service._user_service

    async def test_change_password(self):
        await self.user_service.change_password(self.registered.user.id, PASSWORD, "NewSecret123!")

        with self.assertRaises(UnauthorizedError):
            await self.service.login(EMAIL, PASSWORD)
        self.assertIsInstance(await self.service.login(EMAIL, "NewSecret123!"), AuthResult)
        with self.assertRaises(UnauthorizedError):
            await self.service.refresh_token(self.registered.refresh_token)

    async def test_change_password_requires_current(self):
        with self.assertRaises(UnauthorizedError):
            await self.user_service.change_password(self.registered.user.id, "Wrong123!", "NewSecret123!")

    async def test_reset_password_flow(self):
        await self.user_service.request_password_reset(EMAIL)
        token = self.harness.email.reset_tokens[EMAIL][-1]

        await self.user_service.reset_password(token, "NewSecret123!")

        self.assertIsInstance(await self.service.login(EMAIL, "NewSecret123!"), AuthResult)
        with self.assertRaises(BadRequestError):
            await self.user_service.reset_password(token, "Again123!")

    async def test_reset_token_expires(self):
        await self.user_service.request_password_reset(EMAIL)
        token = self.harness.email.reset_tokens[EMAIL][-1]
        await self.harness.users.update_user(self.registered.user.id, {"reset_password_expires": 1})

        with self.assertRaises(BadRequestError):
            await self.user_service.reset_password(token, "NewSecret123!")

    async def test_reset_for_unknown_email_is_silent(self):
        await self.user_service.request_password_reset("nobody@example.com")
        self.assertEqual(self.harness.email.reset_tokens, {})


if __name__ == "__main__":
    unittest.main()
