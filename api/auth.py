"""Auth API routes."""

from __future__ import annotations

from fastapi import APIRouter, Cookie, Depends, HTTPException, Response, status

from auth.config import AuthConfig
from auth.dependencies import (
    clear_auth_cookies,
    get_auth_service,
    get_current_user,
    get_user_service,
    rate_limit,
    set_auth_cookies,
)
from auth.exceptions import AuthException
from auth.schemas import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    RefreshResponse,
    RegisterRequest,
    RegisterResponse,
    ResendVerificationRequest,
    ResetPasswordRequest,
    SafeUser,
    TwoFactorPendingResponse,
    VerifyRegistrationRequest,
)
from auth.services.auth_service import AuthService, to_safe_user
from auth.services.user_service import UserService

router = APIRouter()


@router.post(
    "/login",
    response_model=LoginResponse | TwoFactorPendingResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(rate_limit("login", AuthConfig.LOGIN_RATE_LIMIT_PER_MINUTE))],
)
async def login(
    payload: LoginRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse | TwoFactorPendingResponse:
    try:
        result = await auth_service.login(payload.email, payload.password)
    except AuthException as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc

    if isinstance(result, TwoFactorPendingResponse):
        return result

    set_auth_cookies(response, result)
    return LoginResponse(access_token=result.access_token, user=result.user)


@router.post("/refresh", response_model=RefreshResponse, status_code=status.HTTP_200_OK)
async def refresh(
    response: Response,
    refresh_token: str | None = Cookie(default=None),
    auth_service: AuthService = Depends(get_auth_service),
) -> RefreshResponse:
    if not refresh_token:
        raise HTTPException(status_code=401, detail="Missing refresh token")

    try:
        result = await auth_service.refresh_token(refresh_token)
    except AuthException as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc

    set_auth_cookies(response, result)
    return RefreshResponse(access_token=result.access_token)


@router.post("/logout", response_model=MessageResponse, status_code=status.HTTP_200_OK)
async def logout(
    response: Response,
    current_user: dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    clear_auth_cookies(response)
    return await auth_service.logout(current_user["id"])


@router.post(
    "/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("register", AuthConfig.REGISTER_RATE_LIMIT_PER_MINUTE))],
)
async def register(
    payload: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> RegisterResponse:
    try:
        return await auth_service.register(payload.email, payload.password, payload.username)
    except AuthException as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


@router.post(
    "/verify-registration",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(rate_limit("verify", AuthConfig.VERIFY_RATE_LIMIT_PER_MINUTE))],
)
async def verify_registration(
    payload: VerifyRegistrationRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    try:
        result = await auth_service.verify_registration(payload.email, payload.verification_code)
    except AuthException as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc

    set_auth_cookies(response, result)
    return LoginResponse(access_token=result.access_token, user=result.user)


@router.post(
    "/resend-verification",
    response_model=MessageResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(rate_limit("resend", AuthConfig.RESEND_RATE_LIMIT_PER_MINUTE))],
)
async def resend_verification(
    payload: ResendVerificationRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    try:
        return await auth_service.resend_verification_code(payload.email)
    except AuthException as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


@router.post("/forgot-password", response_model=MessageResponse, status_code=status.HTTP_200_OK)
async def forgot_password(
    payload: ForgotPasswordRequest,
    user_service: UserService = Depends(get_user_service),
) -> MessageResponse:
    await user_service.request_password_reset(payload.email)
    return MessageResponse(message="If an account exists for this email, a reset link has been sent")


@router.post("/reset-password", response_model=MessageResponse, status_code=status.HTTP_200_OK)
async def reset_password(
    payload: ResetPasswordRequest,
    user_service: UserService = Depends(get_user_service),
) -> MessageResponse:
    try:
        await user_service.reset_password(payload.token, payload.new_password)
    except AuthException as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return MessageResponse(message="Password has been reset")


@router.post("/change-password", response_model=MessageResponse, status_code=status.HTTP_200_OK)
async def change_password(
    payload: ChangePasswordRequest,
    response: Response,
    current_user: dict = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
) -> MessageResponse:
    try:
        await user_service.change_password(
            current_user["id"], payload.current_password, payload.new_password
        )
    except AuthException as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc

    clear_auth_cookies(response)
    return MessageResponse(message="Password changed, please sign in again")


@router.get("/me", response_model=SafeUser, status_code=status.HTTP_200_OK)
async def me(current_user: dict = Depends(get_current_user)) -> SafeUser:
    return to_safe_user(current_user)
