from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import AsyncSession

from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.services.access import ensure_capability, ensure_project_access
from ideaboard.application.services.progress_service import (
    ProgressAggregator,
    lock_backlog_item,
)
from ideaboard.application.services.serializers import task_payload
from ideaboard.core.database import get_session
from ideaboard.core.errors import ApiException
from ideaboard.domain.catalog import STACKS
from ideaboard.domain.policies import Capability, role_grants
from ideaboard.infrastructure.db.models.backlog import BacklogTask
from ideaboard.infrastructure.repositories.backlog_repository import BacklogRepository

logger = logging.getLogger(__name__)


class TaskService:
    """Stack-guarded task mutations; each one recomputes progress before committing."""

    def __init__(self, aggregator: ProgressAggregator | None = None):
        self.aggregator = aggregator or ProgressAggregator()

    async def create_task(
        self,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        backlog_item_id: int,
        stack: str,
        title: str,
        description: str | None = None,
        order_index: int | None = None,
    ) -> dict:
        if stack not in STACKS:
            raise ApiException(
                status_code=422,
                error_code="TASK_STACK_INVALID",
                message=f"Unknown stack: {stack}",
            )
        async with get_session() as session:
            await ensure_project_access(session, actor=actor, project_id=project_id)
            item = await lock_backlog_item(
                session,
                project_id=project_id,
                backlog_item_id=backlog_item_id,
            )
            self._guard(actor, stack=stack, action="create")

            repo = BacklogRepository(session)
            if order_index is None:
                _, order_index = await repo.count_tasks(
                    project_id=project_id,
                    backlog_item_id=backlog_item_id,
                )
            task = await repo.create_task(
                project_id=project_id,
                backlog_item_id=backlog_item_id,
                stack=stack,
                title=title.strip(),
                description=description,
                order_index=order_index,
                created_by_user_id=actor.user_id,
            )
            progress = await self.aggregator.recompute_in_session(session, item=item)
            result = {"task": task_payload(task), "progress": progress.as_dict()}

        logger.info(
            "Task #%s created on backlog item #%s stack=%s by user #%s",
            result["task"]["id"],
            backlog_item_id,
            stack,
            actor.user_id,
        )
        return result

    async def update_task(
        self,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        backlog_item_id: int,
        task_id: int,
        title: str | None = None,
        description: str | None = None,
        is_done: bool | None = None,
        order_index: int | None = None,
    ) -> dict:
        async with get_session() as session:
            item, task = await self._load_guarded(
                session,
                actor=actor,
                project_id=project_id,
                backlog_item_id=backlog_item_id,
                task_id=task_id,
                action="update",
            )
            repo = BacklogRepository(session)
            if title is not None:
                task.title = title.strip()
            if description is not None:
                task.description = description
            if order_index is not None:
                task.order_index = order_index
            if is_done is not None:
                await repo.set_task_done(task, is_done=is_done)
            await session.flush()

            progress = await self.aggregator.recompute_in_session(session, item=item)
            return {"task": task_payload(task), "progress": progress.as_dict()}

    async def delete_task(
        self,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        backlog_item_id: int,
        task_id: int,
    ) -> dict:
        async with get_session() as session:
            item, task = await self._load_guarded(
                session,
                actor=actor,
                project_id=project_id,
                backlog_item_id=backlog_item_id,
                task_id=task_id,
                action="delete",
            )
            snapshot = task_payload(task)
            await BacklogRepository(session).delete_task(task)
            progress = await self.aggregator.recompute_in_session(session, item=item)
            result = {"task": snapshot, "progress": progress.as_dict()}

        logger.info(
            "Task #%s deleted from backlog item #%s by user #%s",
            task_id,
            backlog_item_id,
            actor.user_id,
        )
        return result

    async def _load_guarded(
        self,
        session: AsyncSession,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        backlog_item_id: int,
        task_id: int,
        action: str,
    ):
        await ensure_project_access(session, actor=actor, project_id=project_id)
        item = await lock_backlog_item(
            session,
            project_id=project_id,
            backlog_item_id=backlog_item_id,
        )
        task: BacklogTask | None = await BacklogRepository(session).get_task(
            project_id=project_id,
            backlog_item_id=backlog_item_id,
            task_id=task_id,
        )
        if task is None:
            raise ApiException(
                status_code=404,
                error_code="TASK_NOT_FOUND",
                message=f"Task #{task_id} not found",
            )
        self._guard(actor, stack=task.stack, action=action)
        return item, task

    @staticmethod
    def _guard(actor: AuthenticatedPrincipal, *, stack: str, action: str) -> None:
        logger.debug("Task %s check user_id=%s stack=%s", action, actor.user_id, stack)
        if role_grants(actor.role, Capability.TASK_MUTATE):
            error_code = "STACK_FORBIDDEN"
        else:
            error_code = "CAPABILITY_DENIED"
        ensure_capability(actor, Capability.TASK_MUTATE, stack=stack, error_code=error_code)
