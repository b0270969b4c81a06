from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.dto.progress import ProgressSnapshot
from ideaboard.application.services.access import ensure_capability, ensure_project_access
from ideaboard.core.database import get_session
from ideaboard.core.errors import ApiException
from ideaboard.core.metrics import metrics_registry
from ideaboard.domain.policies import Capability
from ideaboard.domain.progress import compute_progress_percent
from ideaboard.infrastructure.db.models.backlog import BacklogItem
from ideaboard.infrastructure.repositories.backlog_repository import BacklogRepository
from ideaboard.infrastructure.repositories.suggestion_repository import (
    SuggestionRepository,
)

logger = logging.getLogger(__name__)


class ProgressAggregator:
    """Derives a backlog item's completion from its tasks and mirrors it onto the suggestion."""

    async def recompute(
        self,
        *,
        project_id: int,
        backlog_item_id: int,
        actor: AuthenticatedPrincipal | None = None,
    ) -> ProgressSnapshot:
        if actor is not None:
            ensure_capability(actor, Capability.BACKLOG_WRITE)
        async with get_session() as session:
            if actor is not None:
                await ensure_project_access(session, actor=actor, project_id=project_id)
            item = await lock_backlog_item(
                session,
                project_id=project_id,
                backlog_item_id=backlog_item_id,
            )
            return await self.recompute_in_session(session, item=item)

    async def recompute_in_session(
        self,
        session: AsyncSession,
        *,
        item: BacklogItem,
    ) -> ProgressSnapshot:
        """Write the fresh percentage inside the caller's transaction."""
        backlog_repo = BacklogRepository(session)
        done, total = await backlog_repo.count_tasks(
            project_id=item.project_id,
            backlog_item_id=item.id,
        )
        progress = compute_progress_percent(done, total)
        item.progress_percent = progress

        suggestion_progress: int | None = None
        if item.suggestion_id is not None:
            await SuggestionRepository(session).set_progress(
                project_id=item.project_id,
                suggestion_id=item.suggestion_id,
                progress=progress,
            )
            suggestion_progress = progress
        await session.flush()

        metrics_registry.record_workflow_event(workflow="progress", outcome="recomputed")
        logger.info(
            "Progress recomputed backlog_item_id=%s done=%s total=%s progress=%s suggestion_id=%s",
            item.id,
            done,
            total,
            progress,
            item.suggestion_id,
        )
        return ProgressSnapshot(
            backlog_item_id=item.id,
            backlog_progress=progress,
            suggestion_id=item.suggestion_id,
            suggestion_progress=suggestion_progress,
        )


async def lock_backlog_item(
    session: AsyncSession,
    *,
    project_id: int,
    backlog_item_id: int,
) -> BacklogItem:
    item = await BacklogRepository(session).get_item(
        project_id=project_id,
        backlog_item_id=backlog_item_id,
        for_update=True,
    )
    if item is None:
        raise ApiException(
            status_code=404,
            error_code="BACKLOG_ITEM_NOT_FOUND",
            message=f"Backlog item #{backlog_item_id} not found",
        )
    return item
