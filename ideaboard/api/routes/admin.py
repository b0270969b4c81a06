from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status

from ideaboard.api.deps.auth import require_admin
from ideaboard.api.schemas.admin import (
    AdminProjectCreateRequest,
    AdminUserCreateRequest,
    AdminUserResponse,
    AdminUserStacksRequest,
    AdminUserUpdateRequest,
    AuditEventResponse,
    ProjectMemberResponse,
)
from ideaboard.api.schemas.projects import ProjectResponse
from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.services.admin_service import AdminService
from ideaboard.infrastructure.cache.redis_cache import cache

router = APIRouter()


def get_admin_service() -> AdminService:
    return AdminService()


@router.get("/users", response_model=list[AdminUserResponse])
async def list_users(
    include_inactive: bool = Query(default=True),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    _: AuthenticatedPrincipal = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    rows = await service.list_users(
        include_inactive=include_inactive,
        limit=limit,
        offset=offset,
    )
    return [AdminUserResponse(**row) for row in rows]


@router.post("/users", response_model=AdminUserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    payload: AdminUserCreateRequest,
    _: AuthenticatedPrincipal = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    row = await service.create_user(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
        stacks=list(payload.stacks),
    )
    return AdminUserResponse(**row)


@router.patch("/users/{user_id}", response_model=AdminUserResponse)
async def update_user(
    user_id: int,
    payload: AdminUserUpdateRequest,
    principal: AuthenticatedPrincipal = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    row = await service.update_user(
        actor_user_id=principal.user_id,
        user_id=user_id,
        name=payload.name,
        role=payload.role,
        is_active=payload.is_active,
    )
    await cache.invalidate_tags(cache.user_tag(user_id))
    return AdminUserResponse(**row)


@router.put("/users/{user_id}/stacks", response_model=AdminUserResponse)
async def replace_user_stacks(
    user_id: int,
    payload: AdminUserStacksRequest,
    _: AuthenticatedPrincipal = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    row = await service.replace_user_stacks(user_id=user_id, stacks=list(payload.stacks))
    return AdminUserResponse(**row)


@router.post("/projects", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
async def create_project(
    payload: AdminProjectCreateRequest,
    principal: AuthenticatedPrincipal = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    row = await service.create_project(
        actor_user_id=principal.user_id,
        name=payload.name,
        description=payload.description,
    )
    await cache.invalidate_tags("projects")
    return ProjectResponse(**row)


@router.post("/projects/{project_id}/archive", response_model=ProjectResponse)
async def archive_project(
    project_id: int,
    _: AuthenticatedPrincipal = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    row = await service.archive_project(project_id=project_id)
    await cache.invalidate_tags("projects", cache.project_tag(project_id))
    return ProjectResponse(**row)


@router.get("/projects/{project_id}/members", response_model=list[ProjectMemberResponse])
async def list_members(
    project_id: int,
    _: AuthenticatedPrincipal = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    rows = await service.list_members(project_id=project_id)
    return [ProjectMemberResponse(**row) for row in rows]


@router.put(
    "/projects/{project_id}/members/{user_id}",
    response_model=ProjectMemberResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_member(
    project_id: int,
    user_id: int,
    _: AuthenticatedPrincipal = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    row = await service.add_member(project_id=project_id, user_id=user_id)
    await cache.invalidate_tags(cache.user_tag(user_id))
    return ProjectMemberResponse(**row)


@router.delete(
    "/projects/{project_id}/members/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_member(
    project_id: int,
    user_id: int,
    _: AuthenticatedPrincipal = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    await service.remove_member(project_id=project_id, user_id=user_id)
    await cache.invalidate_tags(cache.user_tag(user_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/audit", response_model=list[AuditEventResponse])
async def list_audit_events(
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    entity_type: str | None = Query(default=None),
    actor_user_id: int | None = Query(default=None),
    _: AuthenticatedPrincipal = Depends(require_admin),
    service: AdminService = Depends(get_admin_service),
):
    rows = await service.list_audit_events(
        limit=limit,
        offset=offset,
        entity_type=entity_type,
        actor_user_id=actor_user_id,
    )
    return [AuditEventResponse(**row) for row in rows]
