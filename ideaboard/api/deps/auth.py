from __future__ import annotations

from collections.abc import Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.services.auth_service import AuthService
from ideaboard.core.errors import ApiException
from ideaboard.core.request_context import bind_principal
from ideaboard.domain.policies import Capability, denial_reason

bearer_scheme = HTTPBearer(auto_error=False)


async def get_optional_principal(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthenticatedPrincipal | None:
    if credentials is None or not credentials.credentials:
        return None
    principal = await AuthService().get_principal_from_access_token(credentials.credentials)
    request.state.authenticated_principal = principal
    bind_principal(principal.user_id)
    return principal


async def get_current_principal(
    principal: AuthenticatedPrincipal | None = Depends(get_optional_principal),
) -> AuthenticatedPrincipal:
    if principal is None:
        raise ApiException(
            status_code=401,
            error_code="AUTH_REQUIRED",
            message="Authentication is required for this endpoint",
        )
    return principal


def require_capability(
    capability: Capability,
) -> Callable[[AuthenticatedPrincipal], AuthenticatedPrincipal]:
    async def _dependency(
        principal: AuthenticatedPrincipal = Depends(get_current_principal),
    ) -> AuthenticatedPrincipal:
        reason = denial_reason(principal, capability)
        if reason is not None:
            raise ApiException(
                status_code=403,
                error_code="CAPABILITY_DENIED",
                message=f"Not allowed: {reason}",
                details={"capability": capability.value},
            )
        return principal

    return _dependency


require_admin = require_capability(Capability.ADMIN_MANAGE)
