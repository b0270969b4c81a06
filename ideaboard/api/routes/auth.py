from __future__ import annotations

from fastapi import APIRouter, Depends

from ideaboard.api.deps.auth import get_current_principal
from ideaboard.api.schemas.auth import (
    AuthLoginRequest,
    AuthSessionResponse,
    AuthUserResponse,
)
from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.services.auth_service import AuthService

router = APIRouter()
me_router = APIRouter()


def get_auth_service() -> AuthService:
    return AuthService()


@router.post("/login", response_model=AuthSessionResponse)
async def login(
    payload: AuthLoginRequest,
    service: AuthService = Depends(get_auth_service),
):
    issued, principal = await service.login(email=payload.email, password=payload.password)
    return AuthSessionResponse(
        access_token=issued.access_token,
        expires_at=issued.expires_at,
        user=AuthUserResponse(**AuthService.principal_payload(principal)),
    )


@me_router.get("", response_model=AuthUserResponse)
async def me(principal: AuthenticatedPrincipal = Depends(get_current_principal)):
    return AuthUserResponse(**AuthService.principal_payload(principal))
