from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Response, status
from fastapi.encoders import jsonable_encoder

from ideaboard.api.deps.auth import get_current_principal
from ideaboard.api.schemas.backlog import BacklogItemDetailResponse
from ideaboard.api.schemas.suggestions import (
    SuggestionCreateRequest,
    SuggestionResponse,
    SuggestionUpdateRequest,
    VoteRequest,
    VoteResponse,
)
from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.services.promotion_service import PromotionService
from ideaboard.application.services.suggestion_service import SuggestionService
from ideaboard.application.services.voting_service import VotingService
from ideaboard.core.config import get_settings
from ideaboard.infrastructure.cache.redis_cache import cache

router = APIRouter()


def get_suggestion_service() -> SuggestionService:
    return SuggestionService()


def get_voting_service() -> VotingService:
    return VotingService()


def get_promotion_service() -> PromotionService:
    return PromotionService()


@router.get("/{project_id}/suggestions", response_model=list[SuggestionResponse])
async def list_suggestions(
    project_id: int,
    status_filter: str | None = Query(default=None, alias="status"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: SuggestionService = Depends(get_suggestion_service),
):
    cache_tags = {cache.project_tag(project_id), cache.user_tag(principal.user_id)}
    cache_key = await cache.versioned_key(
        "suggestions",
        {
            "project_id": project_id,
            "viewer": principal.user_id,
            "status": status_filter,
            "limit": limit,
            "offset": offset,
        },
        tags=cache_tags,
    )
    cached = await cache.get_json(cache_key)
    if cached is not None:
        return [SuggestionResponse(**row) for row in cached]

    rows = await service.list_suggestions(
        actor=principal,
        project_id=project_id,
        status=status_filter,
        limit=limit,
        offset=offset,
    )
    payload = [SuggestionResponse(**row).model_dump(mode="json") for row in rows]
    await cache.set_json(
        key=cache_key,
        value=jsonable_encoder(payload),
        ttl_seconds=get_settings().BACKEND_CACHE_SUGGESTIONS_TTL_SECONDS,
        tags=cache_tags,
    )
    return [SuggestionResponse(**row) for row in payload]


@router.post(
    "/{project_id}/suggestions",
    response_model=SuggestionResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_suggestion(
    project_id: int,
    payload: SuggestionCreateRequest,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: SuggestionService = Depends(get_suggestion_service),
):
    row = await service.create_suggestion(
        actor=principal,
        project_id=project_id,
        title=payload.title,
        description=payload.description,
    )
    await cache.invalidate_tags(cache.project_tag(project_id))
    return SuggestionResponse(**row)


@router.get("/{project_id}/suggestions/{suggestion_id}", response_model=SuggestionResponse)
async def get_suggestion(
    project_id: int,
    suggestion_id: int,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: SuggestionService = Depends(get_suggestion_service),
):
    row = await service.get_suggestion(
        actor=principal,
        project_id=project_id,
        suggestion_id=suggestion_id,
    )
    return SuggestionResponse(**row)


@router.patch("/{project_id}/suggestions/{suggestion_id}", response_model=SuggestionResponse)
async def update_suggestion(
    project_id: int,
    suggestion_id: int,
    payload: SuggestionUpdateRequest,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: SuggestionService = Depends(get_suggestion_service),
):
    row = await service.update_suggestion(
        actor=principal,
        project_id=project_id,
        suggestion_id=suggestion_id,
        title=payload.title,
        description=payload.description,
    )
    await cache.invalidate_tags(cache.project_tag(project_id))
    return SuggestionResponse(**row)


@router.delete(
    "/{project_id}/suggestions/{suggestion_id}",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_suggestion(
    project_id: int,
    suggestion_id: int,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: SuggestionService = Depends(get_suggestion_service),
):
    await service.delete_suggestion(
        actor=principal,
        project_id=project_id,
        suggestion_id=suggestion_id,
    )
    await cache.invalidate_tags(cache.project_tag(project_id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{project_id}/suggestions/{suggestion_id}/vote", response_model=VoteResponse)
async def cast_vote(
    project_id: int,
    suggestion_id: int,
    payload: VoteRequest,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: VotingService = Depends(get_voting_service),
):
    row = await service.cast_vote(
        project_id=project_id,
        suggestion_id=suggestion_id,
        voter=principal,
        value=payload.value,
    )
    await cache.invalidate_tags(cache.project_tag(project_id))
    return VoteResponse(**row)


@router.post(
    "/{project_id}/suggestions/{suggestion_id}/promote",
    response_model=BacklogItemDetailResponse,
    status_code=status.HTTP_201_CREATED,
)
async def promote_suggestion(
    project_id: int,
    suggestion_id: int,
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    service: PromotionService = Depends(get_promotion_service),
):
    row = await service.promote(
        project_id=project_id,
        suggestion_id=suggestion_id,
        actor=principal,
    )
    await cache.invalidate_tags(cache.project_tag(project_id))
    return BacklogItemDetailResponse(**row)
