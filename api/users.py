"""Account administration routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from auth.dependencies import get_user_service, require_role
from auth.schemas import SafeUser
from auth.services.auth_service import to_safe_user
from auth.services.user_service import UserService

router = APIRouter()


@router.get("/directory", response_model=list[SafeUser], status_code=status.HTTP_200_OK)
async def directory(
    current_user: dict = Depends(require_role("ADMIN")),
    user_service: UserService = Depends(get_user_service),
) -> list[SafeUser]:
    return [to_safe_user(user) for user in await user_service.list_users()]
