from __future__ import annotations

import logging

from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.services.access import ensure_capability, ensure_project_access
from ideaboard.application.services.progress_service import lock_backlog_item
from ideaboard.application.services.serializers import backlog_item_payload
from ideaboard.core.database import get_session
from ideaboard.core.errors import ApiException
from ideaboard.domain.catalog import (
    BACKLOG_DEFAULT_PRIORITY,
    BACKLOG_INITIAL_STAGE,
    BACKLOG_ORIGIN_MANUAL,
    BACKLOG_PRIORITIES,
    BACKLOG_STAGES,
)
from ideaboard.domain.policies import Capability
from ideaboard.infrastructure.repositories.backlog_repository import BacklogRepository

logger = logging.getLogger(__name__)


class BacklogService:
    async def list_items(
        self,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        stage: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict]:
        ensure_capability(actor, Capability.BACKLOG_READ)
        if stage is not None:
            self._validate_choice("stage", stage, BACKLOG_STAGES)
        async with get_session() as session:
            await ensure_project_access(session, actor=actor, project_id=project_id)
            rows = await BacklogRepository(session).list_items(
                project_id=project_id,
                stage=stage,
                limit=limit,
                offset=offset,
            )
            return [backlog_item_payload(row) for row in rows]

    async def get_item(
        self,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        backlog_item_id: int,
    ) -> dict:
        ensure_capability(actor, Capability.BACKLOG_READ)
        async with get_session() as session:
            await ensure_project_access(session, actor=actor, project_id=project_id)
            repo = BacklogRepository(session)
            item = await repo.get_item(project_id=project_id, backlog_item_id=backlog_item_id)
            if item is None:
                raise ApiException(
                    status_code=404,
                    error_code="BACKLOG_ITEM_NOT_FOUND",
                    message=f"Backlog item #{backlog_item_id} not found",
                )
            tasks = await repo.list_tasks(project_id=project_id, backlog_item_id=item.id)
            return backlog_item_payload(item, tasks=list(tasks))

    async def create_item(
        self,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        title: str,
        summary: str | None = None,
        priority: str = BACKLOG_DEFAULT_PRIORITY,
    ) -> dict:
        ensure_capability(actor, Capability.BACKLOG_WRITE)
        self._validate_choice("priority", priority, BACKLOG_PRIORITIES)
        async with get_session() as session:
            await ensure_project_access(session, actor=actor, project_id=project_id)
            item = await BacklogRepository(session).create_item(
                project_id=project_id,
                origin_type=BACKLOG_ORIGIN_MANUAL,
                suggestion_id=None,
                title=title.strip(),
                summary=summary,
                stage=BACKLOG_INITIAL_STAGE,
                priority=priority,
                created_by_user_id=actor.user_id,
            )
            payload = backlog_item_payload(item, tasks=[])
        logger.info("Backlog item #%s created in project #%s", payload["id"], project_id)
        return payload

    async def update_item(
        self,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        backlog_item_id: int,
        title: str | None = None,
        summary: str | None = None,
        stage: str | None = None,
        priority: str | None = None,
    ) -> dict:
        ensure_capability(actor, Capability.BACKLOG_WRITE)
        if stage is not None:
            self._validate_choice("stage", stage, BACKLOG_STAGES)
        if priority is not None:
            self._validate_choice("priority", priority, BACKLOG_PRIORITIES)
        async with get_session() as session:
            await ensure_project_access(session, actor=actor, project_id=project_id)
            item = await lock_backlog_item(
                session,
                project_id=project_id,
                backlog_item_id=backlog_item_id,
            )
            if title is not None:
                item.title = title.strip()
            if summary is not None:
                item.summary = summary
            if stage is not None:
                item.stage = stage
            if priority is not None:
                item.priority = priority
            await session.flush()
            tasks = await BacklogRepository(session).list_tasks(
                project_id=project_id,
                backlog_item_id=item.id,
            )
            return backlog_item_payload(item, tasks=list(tasks))

    async def delete_item(
        self,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        backlog_item_id: int,
    ) -> None:
        ensure_capability(actor, Capability.BACKLOG_WRITE)
        async with get_session() as session:
            await ensure_project_access(session, actor=actor, project_id=project_id)
            item = await lock_backlog_item(
                session,
                project_id=project_id,
                backlog_item_id=backlog_item_id,
            )
            if item.origin_type != BACKLOG_ORIGIN_MANUAL or item.suggestion_id is not None:
                raise ApiException(
                    status_code=409,
                    error_code="BACKLOG_ITEM_LINKED_TO_SUGGESTION",
                    message="Backlog items created from a suggestion cannot be deleted",
                    details={"suggestion_id": item.suggestion_id},
                )
            await BacklogRepository(session).delete_item(item)
        logger.info("Backlog item #%s deleted from project #%s", backlog_item_id, project_id)

    @staticmethod
    def _validate_choice(field: str, value: str, allowed: tuple[str, ...]) -> None:
        if value not in allowed:
            raise ApiException(
                status_code=422,
                error_code=f"BACKLOG_{field.upper()}_INVALID",
                message=f"Unknown {field}: {value}",
                details={"allowed": list(allowed)},
            )
