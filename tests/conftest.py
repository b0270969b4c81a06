import asyncio
import os

# Settings are read lazily, but the process-wide defaults must be in place before
# the first get_settings() call made by any ideaboard module.
os.environ.setdefault("BACKEND_ENV", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-for-ideaboard-suite")
os.environ.setdefault("BACKEND_CACHE_ENABLED", "false")
os.environ.setdefault("BACKEND_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("BACKEND_ANOMALY_THRESHOLD", "0")
os.environ.setdefault("BACKEND_PASSWORD_HASH_ITERATIONS", "1000")
os.environ.setdefault("BACKEND_ENABLE_ACCESS_LOG", "false")

import pytest

from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.services.promotion_service import PromotionService
from ideaboard.application.services.suggestion_service import SuggestionService
from ideaboard.core.config import get_settings
from ideaboard.core.database import DatabaseManager, get_session
from ideaboard.core.security import hash_password
from ideaboard.infrastructure.repositories.auth_repository import AuthRepository
from ideaboard.infrastructure.repositories.project_repository import ProjectRepository

DEFAULT_PASSWORD = "correct-horse-battery"


@pytest.fixture
def database_url(tmp_path, monkeypatch):
    url = f"sqlite+aiosqlite:///{tmp_path / 'ideaboard.sqlite'}"
    monkeypatch.setenv("BACKEND_DATABASE_URL", url)
    get_settings.cache_clear()
    yield url
    get_settings.cache_clear()


@pytest.fixture
def run(database_url):
    """Execute an async scenario against a fresh database."""

    def _run(scenario):
        async def _wrapped():
            await DatabaseManager.initialize()
            try:
                return await scenario()
            finally:
                await DatabaseManager.close()

        return asyncio.run(_wrapped())

    return _run


class Seeder:
    """Writes fixture rows straight through the repositories."""

    def __init__(self):
        self._counter = 0

    async def user(
        self,
        *,
        role: str,
        stacks: tuple[str, ...] = (),
        name: str | None = None,
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
    ) -> AuthenticatedPrincipal:
        self._counter += 1
        name = name or f"{role.title()} {self._counter}"
        email = email or f"{role}{self._counter}@example.test"
        async with get_session() as session:
            repo = AuthRepository(session)
            user = await repo.create_user(
                name=name,
                email=email,
                password_hash=hash_password(password, iterations=1000),
                role=role,
            )
            assigned = await repo.replace_user_stacks(user_id=user.id, stacks=stacks)
            return AuthenticatedPrincipal(
                user_id=user.id,
                name=user.name,
                email=user.email,
                role=user.role,
                stacks=tuple(assigned),
            )

    async def project(
        self,
        *,
        creator: AuthenticatedPrincipal,
        members: tuple[AuthenticatedPrincipal, ...] = (),
        name: str = "Roadmap",
    ) -> int:
        async with get_session() as session:
            repo = ProjectRepository(session)
            project = await repo.create_project(
                name=name,
                description=None,
                created_by_user_id=creator.user_id,
            )
            for member in members:
                await repo.add_member(project_id=project.id, user_id=member.user_id)
            return project.id

    async def suggestion(
        self,
        *,
        project_id: int,
        author: AuthenticatedPrincipal,
        title: str = "Dark mode",
        description: str = "Offer a dark colour scheme",
    ) -> int:
        row = await SuggestionService().create_suggestion(
            actor=author,
            project_id=project_id,
            title=title,
            description=description,
        )
        return row["id"]

    async def promoted_item(
        self,
        *,
        project_id: int,
        author: AuthenticatedPrincipal,
        promoter: AuthenticatedPrincipal,
    ) -> tuple[int, int]:
        suggestion_id = await self.suggestion(project_id=project_id, author=author)
        item = await PromotionService().promote(
            project_id=project_id,
            suggestion_id=suggestion_id,
            actor=promoter,
        )
        return suggestion_id, item["id"]


@pytest.fixture
def seed():
    return Seeder()
