from __future__ import annotations

from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.services.access import ensure_project_access
from ideaboard.application.services.serializers import project_payload
from ideaboard.core.database import get_session
from ideaboard.infrastructure.repositories.project_repository import ProjectRepository


class ProjectService:
    async def list_projects(self, *, actor: AuthenticatedPrincipal) -> list[dict]:
        async with get_session() as session:
            repo = ProjectRepository(session)
            if actor.is_admin:
                rows = await repo.list_all_projects(include_inactive=True)
            else:
                rows = await repo.list_projects_for_user(actor.user_id)
            return [project_payload(row) for row in rows]

    async def get_project(self, *, actor: AuthenticatedPrincipal, project_id: int) -> dict:
        async with get_session() as session:
            project = await ensure_project_access(session, actor=actor, project_id=project_id)
            return project_payload(project)
