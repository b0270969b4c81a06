"""Project access and capability enforcement shared by the services."""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.core.errors import ApiException
from ideaboard.core.metrics import metrics_registry
from ideaboard.domain.policies import Capability, denial_reason
from ideaboard.infrastructure.db.models.projects import Project
from ideaboard.infrastructure.repositories.project_repository import ProjectRepository

logger = logging.getLogger(__name__)


def ensure_capability(
    actor: AuthenticatedPrincipal,
    capability: Capability,
    *,
    stack: str | None = None,
    error_code: str = "CAPABILITY_DENIED",
) -> None:
    reason = denial_reason(actor, capability, stack=stack)
    if reason is None:
        return
    metrics_registry.record_capability_denial(capability=capability.value)
    logger.warning(
        "Capability denied user_id=%s role=%s capability=%s stack=%s reason=%s",
        actor.user_id,
        actor.role,
        capability.value,
        stack,
        reason,
    )
    raise ApiException(
        status_code=403,
        error_code=error_code,
        message=f"Not allowed: {reason}",
        details={"capability": capability.value, "stack": stack},
    )


async def ensure_project_access(
    session: AsyncSession,
    *,
    actor: AuthenticatedPrincipal,
    project_id: int,
) -> Project:
    """Resolve the project and require membership; admins are members everywhere."""
    repo = ProjectRepository(session)
    project = await repo.get_project(project_id)
    if project is None or (not project.is_active and not actor.is_admin):
        raise ApiException(
            status_code=404,
            error_code="PROJECT_NOT_FOUND",
            message=f"Project #{project_id} not found",
        )
    if actor.is_admin:
        return project
    if not await repo.is_member(project_id=project_id, user_id=actor.user_id):
        raise ApiException(
            status_code=403,
            error_code="PROJECT_ACCESS_DENIED",
            message="You are not a member of this project",
        )
    return project
