from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder

from ideaboard.api.deps.auth import get_current_principal
from ideaboard.api.schemas.projects import ProjectResponse
from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.services.project_service import ProjectService
from ideaboard.core.config import get_settings
from ideaboard.infrastructure.cache.redis_cache import cache

router = APIRouter()


def get_project_service() -> ProjectService:
    return ProjectService()


@router.get("", response_model=list[ProjectResponse])
async def list_projects(
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: ProjectService = Depends(get_project_service),
):
    cache_tags = {"projects", cache.user_tag(principal.user_id)}
    cache_key = await cache.versioned_key(
        "projects", {"viewer": principal.user_id}, tags=cache_tags
    )
    cached = await cache.get_json(cache_key)
    if cached is not None:
        return [ProjectResponse(**row) for row in cached]

    rows = await service.list_projects(actor=principal)
    payload = [ProjectResponse(**row).model_dump(mode="json") for row in rows]
    await cache.set_json(
        key=cache_key,
        value=jsonable_encoder(payload),
        ttl_seconds=get_settings().BACKEND_CACHE_PROJECTS_TTL_SECONDS,
        tags=cache_tags,
    )
    return [ProjectResponse(**row) for row in payload]


@router.get("/{project_id}", response_model=ProjectResponse)
async def get_project(
    project_id: int,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: ProjectService = Depends(get_project_service),
):
    row = await service.get_project(actor=principal, project_id=project_id)
    return ProjectResponse(**row)
