from __future__ import annotations

import logging
from typing import Any

from ideaboard.application.dto.auth import AuthenticatedPrincipal, IssuedAccessToken
from ideaboard.core.config import get_settings
from ideaboard.core.database import get_session
from ideaboard.core.errors import ApiException
from ideaboard.core.security import (
    create_signed_token,
    decode_signed_token,
    random_jti,
    verify_password,
)
from ideaboard.infrastructure.repositories.auth_repository import AuthRepository

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self):
        self.settings = get_settings()

    def _ensure_jwt_config(self) -> None:
        if not self.settings.JWT_SECRET:
            raise ApiException(
                status_code=500,
                error_code="JWT_SECRET_MISSING",
                message="JWT_SECRET is required for authentication",
            )

    async def login(
        self,
        *,
        email: str,
        password: str,
    ) -> tuple[IssuedAccessToken, AuthenticatedPrincipal]:
        self._ensure_jwt_config()
        async with get_session() as session:
            repo = AuthRepository(session)
            user = await repo.get_user_by_email(email)
            if user is None or user.deleted_at is not None or not verify_password(
                password, user.password_hash
            ):
                raise ApiException(
                    status_code=401,
                    error_code="INVALID_CREDENTIALS",
                    message="Email or password is incorrect",
                )
            if not user.is_active:
                raise ApiException(
                    status_code=403,
                    error_code="USER_INACTIVE",
                    message="This account has been deactivated",
                )

            await repo.touch_last_login(user)
            stacks = await repo.list_user_stacks(user.id)

            token_jti = random_jti(18)
            access_token, expires_at = create_signed_token(
                settings=self.settings,
                token_type="access",
                claims={"sub": str(user.id), "role": user.role, "jti": token_jti},
                ttl_seconds=self.settings.JWT_EXP_MINUTES * 60,
            )
            principal = AuthenticatedPrincipal(
                user_id=user.id,
                name=user.name,
                email=user.email,
                role=user.role,
                stacks=tuple(stacks),
                is_active=user.is_active,
            )

        logger.info("User #%s logged in", principal.user_id)
        return (
            IssuedAccessToken(access_token=access_token, expires_at=expires_at, token_jti=token_jti),
            principal,
        )

    async def get_principal_from_access_token(self, token: str) -> AuthenticatedPrincipal:
        self._ensure_jwt_config()
        payload = decode_signed_token(
            settings=self.settings,
            token=token,
            expected_type="access",
        )
        try:
            user_id = int(payload["sub"])
        except (KeyError, ValueError, TypeError) as exc:
            raise ApiException(
                status_code=401,
                error_code="TOKEN_PAYLOAD_INVALID",
                message="Authentication token payload is invalid",
            ) from exc

        async with get_session() as session:
            repo = AuthRepository(session)
            user = await repo.get_user(user_id)
            if user is None or not user.is_active or user.deleted_at is not None:
                raise ApiException(
                    status_code=401,
                    error_code="USER_NOT_ACTIVE",
                    message="Authenticated user is not active",
                )
            stacks = await repo.list_user_stacks(user.id)

        return AuthenticatedPrincipal(
            user_id=user.id,
            name=user.name,
            email=user.email,
            role=user.role,
            stacks=tuple(stacks),
            is_active=user.is_active,
        )

    @staticmethod
    def principal_payload(principal: AuthenticatedPrincipal) -> dict[str, Any]:
        return {
            "id": principal.user_id,
            "name": principal.name,
            "email": principal.email,
            "role": principal.role,
            "stacks": list(principal.stacks),
            "is_active": principal.is_active,
        }
