from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ideaboard.domain.catalog import ROLE_ADMIN


@dataclass(frozen=True)
class AuthenticatedPrincipal:
    user_id: int
    name: str
    email: str
    role: str
    stacks: tuple[str, ...] = ()
    is_active: bool = True

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN


@dataclass(frozen=True)
class IssuedAccessToken:
    access_token: str
    expires_at: datetime
    token_jti: str
