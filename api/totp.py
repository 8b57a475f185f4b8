"""Two-factor (TOTP) API routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from auth.config import AuthConfig
from auth.dependencies import get_auth_service, get_current_user, rate_limit, set_auth_cookies
from auth.exceptions import AuthException
from auth.schemas import (
    DisableTotpRequest,
    LoginResponse,
    MessageResponse,
    RecoveryCodeRequest,
    RecoveryCodesResponse,
    TotpCodeRequest,
    TotpSetupResponse,
    TotpValidateRequest,
)
from auth.services.auth_service import AuthService

router = APIRouter()

_second_factor_limit = rate_limit("2fa", AuthConfig.LOGIN_RATE_LIMIT_PER_MINUTE)


@router.post("/setup", response_model=TotpSetupResponse, status_code=status.HTTP_200_OK)
async def setup(
    current_user: dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> TotpSetupResponse:
    try:
        return await auth_service.setup_totp(current_user["id"])
    except AuthException as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


@router.post("/verify-setup", response_model=RecoveryCodesResponse, status_code=status.HTTP_200_OK)
async def verify_setup(
    payload: TotpCodeRequest,
    current_user: dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> RecoveryCodesResponse:
    try:
        return await auth_service.verify_totp_setup(current_user["id"], payload.code)
    except AuthException as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc


@router.post(
    "/validate",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(_second_factor_limit)],
)
async def validate(
    payload: TotpValidateRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    try:
        result = await auth_service.validate_totp(payload.temp_token, payload.code)
    except AuthException as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc

    set_auth_cookies(response, result)
    return LoginResponse(access_token=result.access_token, user=result.user)


@router.post(
    "/recovery",
    response_model=LoginResponse,
    status_code=status.HTTP_200_OK,
    dependencies=[Depends(_second_factor_limit)],
)
async def recovery(
    payload: RecoveryCodeRequest,
    response: Response,
    auth_service: AuthService = Depends(get_auth_service),
) -> LoginResponse:
    try:
        result = await auth_service.use_recovery_code(payload.temp_token, payload.recovery_code)
    except AuthException as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc

    set_auth_cookies(response, result)
    return LoginResponse(access_token=result.access_token, user=result.user)


@router.post("/disable", response_model=MessageResponse, status_code=status.HTTP_200_OK)
async def disable(
    payload: DisableTotpRequest,
    current_user: dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageResponse:
    try:
        await auth_service.disable_totp(current_user["id"], payload.password)
    except AuthException as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.message) from exc
    return MessageResponse(message="Two-factor authentication disabled")
