"""Test environment: in-memory stores, fast bcrypt, fixed keys."""

import os

os.environ["AUTH_STORE"] = "memory"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["AUTH_JWT_SECRET"] = "test-jwt-secret-for-unit-tests-only"
os.environ["TOTP_ENCRYPTION_KEY"] = "00112233445566778899aabbccddeeff00112233445566778899aabbccddeeff"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RESEND_API_KEY"] = ""
os.environ["ENVIRONMENT"] = "test"
