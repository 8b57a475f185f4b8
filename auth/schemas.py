"""Auth request/response schemas."""

from __future__ import annotations

from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints

SixDigitCode = Annotated[str, StringConstraints(pattern=r"^\d{6}$")]


class MessageResponse(BaseModel):
    message: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    username: str | None = Field(default=None, min_length=2, max_length=100)


class RegisterResponse(BaseModel):
    message: str
    email: EmailStr


class VerifyRegistrationRequest(BaseModel):
    email: EmailStr
    verification_code: SixDigitCode


class ResendVerificationRequest(BaseModel):
    email: EmailStr


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=8, max_length=128)


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=8, max_length=128)


class SafeUser(BaseModel):
    """User view with every credential and secret field left out."""

    id: str
    email: str
    username: str | None = None
    role: Literal["USER", "ADMIN"] = "USER"
    totp_enabled: bool = False
    created_at: int | None = None
    updated_at: int | None = None


class AuthResult(BaseModel):
    access_token: str
    refresh_token: str
    expires_in: int
    token_type: Literal["Bearer"] = "Bearer"
    user: SafeUser


class TwoFactorPendingResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    requires_2fa: Literal[True] = Field(default=True, alias="requires2FA")
    temp_token: str = Field(alias="tempToken")
    message: str = "Two-factor verification required"


class LoginResponse(BaseModel):
    access_token: str
    user: SafeUser


class RefreshResponse(BaseModel):
    access_token: str


class TotpSetupResponse(BaseModel):
    qr_code_data_uri: str
    otpauth_uri: str


class TotpCodeRequest(BaseModel):
    code: SixDigitCode


class TotpValidateRequest(BaseModel):
    temp_token: str = Field(min_length=1)
    code: SixDigitCode


class RecoveryCodeRequest(BaseModel):
    temp_token: str = Field(min_length=1)
    recovery_code: str = Field(min_length=1, max_length=32)


class RecoveryCodesResponse(BaseModel):
    recovery_codes: list[str]


class DisableTotpRequest(BaseModel):
    password: str = Field(min_length=1, max_length=128)
