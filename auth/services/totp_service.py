"""
TOTP (time-based one-time password) engine.

RFC 6238, compatible with Google Authenticator, Authy and Aegis:
- 6-digit codes
- 30-second time step, one step of tolerance either side
- HMAC-SHA1
- Base32 secret encoding
"""

from __future__ import annotations

import base64
import io
import secrets
from dataclasses import dataclass

import bcrypt
import pyotp
import qrcode

from auth.config import AuthConfig
from auth.services.totp_crypto import TotpCrypto

TOTP_DIGITS = 6
TOTP_PERIOD = 30
VALID_WINDOW = 1


@dataclass(frozen=True)
class TotpSetup:
    secret: str
    encrypted_secret: str
    otpauth_uri: str
    qr_code_data_uri: str


def _qr_code_data_uri(data: str) -> str:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"


class TotpService:
    def __init__(self, crypto: TotpCrypto, issuer: str = AuthConfig.TOTP_ISSUER) -> None:
        self._crypto = crypto
        self._issuer = issuer

    def generate_setup(self, email: str) -> TotpSetup:
        """Create a fresh secret for ``email``; nothing is activated here."""
        secret = pyotp.random_base32()
        totp = pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_PERIOD)
        otpauth_uri = totp.provisioning_uri(name=email, issuer_name=self._issuer)
        return TotpSetup(
            secret=secret,
            encrypted_secret=self._crypto.encrypt(secret),
            otpauth_uri=otpauth_uri,
            qr_code_data_uri=_qr_code_data_uri(otpauth_uri),
        )

    def verify_code(self, encrypted_secret: str, code: str) -> bool:
        code = (code or "").strip().replace(" ", "")
        if len(code) != TOTP_DIGITS or not code.isdigit():
            return False

        secret = self._crypto.decrypt(encrypted_secret)
        totp = pyotp.TOTP(secret, digits=TOTP_DIGITS, interval=TOTP_PERIOD)
        return totp.verify(code, valid_window=VALID_WINDOW)

    def generate_recovery_codes(self, count: int = AuthConfig.TOTP_RECOVERY_CODE_COUNT) -> list[str]:
        codes = []
        for _ in range(count):
            raw = secrets.token_hex(6)
            codes.append(f"{raw[0:4]}-{raw[4:8]}-{raw[8:12]}")
        return codes

    def hash_recovery_codes(self, codes: list[str]) -> list[str]:
        return [
            bcrypt.hashpw(code.encode("utf-8"), bcrypt.gensalt(rounds=AuthConfig.BCRYPT_ROUNDS)).decode("utf-8")
            for code in codes
        ]

    def find_recovery_code(self, code: str, hashed_codes: list[str]) -> int:
        """Index of the first hash matching ``code``, or -1."""
        candidate = code.strip().lower().encode("utf-8")
        for index, hashed in enumerate(hashed_codes):
            try:
                if bcrypt.checkpw(candidate, hashed.encode("utf-8")):
                    return index
            except ValueError:
                continue
        return -1
