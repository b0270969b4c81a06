from __future__ import annotations

import logging

from ideaboard.core.config import get_settings
from ideaboard.core.database import get_session
from ideaboard.core.security import hash_password
from ideaboard.domain.catalog import ROLE_ADMIN
from ideaboard.infrastructure.repositories.auth_repository import AuthRepository

logger = logging.getLogger(__name__)


class BootstrapService:
    def __init__(self):
        self.settings = get_settings()

    async def run(self) -> None:
        email = self.settings.bootstrap_admin_email
        password = self.settings.BACKEND_BOOTSTRAP_ADMIN_PASSWORD
        if not email or not password:
            logger.info("Bootstrap admin not configured; skipping seed")
            return

        async with get_session() as session:
            repo = AuthRepository(session)
            user = await repo.get_user_by_email(email)
            if user is None:
                user = await repo.create_user(
                    name=self.settings.BACKEND_BOOTSTRAP_ADMIN_NAME,
                    email=email,
                    password_hash=hash_password(
                        password,
                        iterations=self.settings.BACKEND_PASSWORD_HASH_ITERATIONS,
                    ),
                    role=ROLE_ADMIN,
                )
                logger.info("Bootstrap admin #%s created", user.id)
            elif user.role != ROLE_ADMIN or not user.is_active:
                user.role = ROLE_ADMIN
                user.is_active = True
                await session.flush()
                logger.info("Bootstrap admin #%s restored", user.id)

        logger.info("Bootstrap seed completed")
