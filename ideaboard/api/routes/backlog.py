from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.encoders import jsonable_encoder

from ideaboard.api.deps.auth import get_current_principal
from ideaboard.api.schemas.backlog import (
    BacklogItemCreateRequest,
    BacklogItemDetailResponse,
    BacklogItemResponse,
    BacklogItemUpdateRequest,
    TaskCreateRequest,
    TaskMutationResponse,
    TaskUpdateRequest,
)
from ideaboard.api.schemas.common import ProgressResponse
from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.services.backlog_service import BacklogService
from ideaboard.application.services.progress_service import ProgressAggregator
from ideaboard.application.services.task_service import TaskService
from ideaboard.core.config import get_settings
from ideaboard.infrastructure.cache.redis_cache import cache

router = APIRouter()


def get_backlog_service() -> BacklogService:
    return BacklogService()


def get_task_service() -> TaskService:
    return TaskService()


def get_progress_aggregator() -> ProgressAggregator:
    return ProgressAggregator()


@router.get("/{project_id}/backlog", response_model=list[BacklogItemResponse])
async def list_backlog(
    project_id: int,
    stage: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: BacklogService = Depends(get_backlog_service),
):
    cache_tags = {cache.project_tag(project_id), cache.user_tag(principal.user_id)}
    cache_key = await cache.versioned_key(
        "backlog",
        {
            "project_id": project_id,
            "viewer": principal.user_id,
            "stage": stage,
            "limit": limit,
            "offset": offset,
        },
        tags=cache_tags,
    )
    cached = await cache.get_json(cache_key)
    if cached is not None:
        return [BacklogItemResponse(**row) for row in cached]

    rows = await service.list_items(
        actor=principal,
        project_id=project_id,
        stage=stage,
        limit=limit,
        offset=offset,
    )
    payload = [BacklogItemResponse(**row).model_dump(mode="json") for row in rows]
    await cache.set_json(
        key=cache_key,
        value=jsonable_encoder(payload),
        ttl_seconds=get_settings().BACKEND_CACHE_BACKLOG_TTL_SECONDS,
        tags=cache_tags,
    )
    return [BacklogItemResponse(**row) for row in payload]


@router.post(
    "/{project_id}/backlog",
    response_model=BacklogItemDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_backlog_item(
    project_id: int,
    payload: BacklogItemCreateRequest,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: BacklogService = Depends(get_backlog_service),
):
    row = await service.create_item(
        actor=principal,
        project_id=project_id,
        title=payload.title,
        summary=payload.summary,
        priority=payload.priority,
    )
    await cache.invalidate_tags(cache.project_tag(project_id))
    return BacklogItemDetailResponse(**row)


@router.get("/{project_id}/backlog/{backlog_item_id}", response_model=BacklogItemDetailResponse)
async def get_backlog_item(
    project_id: int,
    backlog_item_id: int,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: BacklogService = Depends(get_backlog_service),
):
    row = await service.get_item(
        actor=principal,
        project_id=project_id,
        backlog_item_id=backlog_item_id,
    )
    return BacklogItemDetailResponse(**row)


@router.patch(
    "/{project_id}/backlog/{backlog_item_id}",
    response_model=BacklogItemDetailResponse,
)
async def update_backlog_item(
    project_id: int,
    backlog_item_id: int,
    payload: BacklogItemUpdateRequest,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: BacklogService = Depends(get_backlog_service),
):
    row = await service.update_item(
        actor=principal,
        project_id=project_id,
        backlog_item_id=backlog_item_id,
        title=payload.title,
        summary=payload.summary,
        stage=payload.stage,
        priority=payload.priority,
    )
    await cache.invalidate_tags(cache.project_tag(project_id))
    return BacklogItemDetailResponse(**row)


@router.delete(
    "/{project_id}/backlog/{backlog_item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_backlog_item(
    project_id: int,
    backlog_item_id: int,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: BacklogService = Depends(get_backlog_service),
):
    await service.delete_item(
        actor=principal,
        project_id=project_id,
        backlog_item_id=backlog_item_id,
    )
    await cache.invalidate_tags(cache.project_tag(project_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{project_id}/backlog/{backlog_item_id}/recompute",
    response_model=ProgressResponse,
)
async def recompute_progress(
    project_id: int,
    backlog_item_id: int,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    aggregator: ProgressAggregator = Depends(get_progress_aggregator),
):
    snapshot = await aggregator.recompute(
        project_id=project_id,
        backlog_item_id=backlog_item_id,
        actor=principal,
    )
    await cache.invalidate_tags(cache.project_tag(project_id))
    return ProgressResponse(**snapshot.as_dict())


@router.post(
    "/{project_id}/backlog/{backlog_item_id}/tasks",
    response_model=TaskMutationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_task(
    project_id: int,
    backlog_item_id: int,
    payload: TaskCreateRequest,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: TaskService = Depends(get_task_service),
):
    row = await service.create_task(
        actor=principal,
        project_id=project_id,
        backlog_item_id=backlog_item_id,
        stack=payload.stack,
        title=payload.title,
        description=payload.description,
        order_index=payload.order_index,
    )
    await cache.invalidate_tags(cache.project_tag(project_id))
    return TaskMutationResponse(**row)


@router.patch(
    "/{project_id}/backlog/{backlog_item_id}/tasks/{task_id}",
    response_model=TaskMutationResponse,
)
async def update_task(
    project_id: int,
    backlog_item_id: int,
    task_id: int,
    payload: TaskUpdateRequest,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: TaskService = Depends(get_task_service),
):
    row = await service.update_task(
        actor=principal,
        project_id=project_id,
        backlog_item_id=backlog_item_id,
        task_id=task_id,
        title=payload.title,
        description=payload.description,
        is_done=payload.is_done,
        order_index=payload.order_index,
    )
    await cache.invalidate_tags(cache.project_tag(project_id))
    return TaskMutationResponse(**row)


@router.delete(
    "/{project_id}/backlog/{backlog_item_id}/tasks/{task_id}",
    response_model=TaskMutationResponse,
)
async def delete_task(
    project_id: int,
    backlog_item_id: int,
    task_id: int,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: TaskService = Depends(get_task_service),
):
    row = await service.delete_task(
        actor=principal,
        project_id=project_id,
        backlog_item_id=backlog_item_id,
        task_id=task_id,
    )
    await cache.invalidate_tags(cache.project_tag(project_id))
    return TaskMutationResponse(**row)
