from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ideaboard.infrastructure.db.models.backlog import BacklogItem, BacklogTask


class BacklogRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_item(
        self,
        *,
        project_id: int,
        backlog_item_id: int,
        for_update: bool = False,
    ) -> BacklogItem | None:
        stmt = select(BacklogItem).where(
            BacklogItem.project_id == project_id,
            BacklogItem.id == backlog_item_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_items(
        self,
        *,
        project_id: int,
        stage: str | None,
        limit: int,
        offset: int,
    ) -> Sequence[BacklogItem]:
        stmt = (
            select(BacklogItem)
            .where(BacklogItem.project_id == project_id)
            .order_by(BacklogItem.created_at.desc(), BacklogItem.id.desc())
        )
        if stage:
            stmt = stmt.where(BacklogItem.stage == stage)
        stmt = stmt.limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def create_item(
        self,
        *,
        project_id: int,
        origin_type: str,
        suggestion_id: int | None,
        title: str,
        summary: str | None,
        stage: str,
        priority: str,
        created_by_user_id: int,
    ) -> BacklogItem:
        row = BacklogItem(
            project_id=project_id,
            origin_type=origin_type,
            suggestion_id=suggestion_id,
            title=title,
            summary=summary,
            stage=stage,
            priority=priority,
            progress_percent=0,
            created_by_user_id=created_by_user_id,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def delete_item(self, item: BacklogItem) -> None:
        await self.session.delete(item)
        await self.session.flush()

    async def get_task(
        self,
        *,
        project_id: int,
        backlog_item_id: int,
        task_id: int,
    ) -> BacklogTask | None:
        stmt = select(BacklogTask).where(
            BacklogTask.project_id == project_id,
            BacklogTask.backlog_item_id == backlog_item_id,
            BacklogTask.id == task_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_tasks(self, *, project_id: int, backlog_item_id: int) -> Sequence[BacklogTask]:
        stmt = (
            select(BacklogTask)
            .where(
                BacklogTask.project_id == project_id,
                BacklogTask.backlog_item_id == backlog_item_id,
            )
            .order_by(BacklogTask.order_index.asc(), BacklogTask.created_at.asc(), BacklogTask.id.asc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def create_task(
        self,
        *,
        project_id: int,
        backlog_item_id: int,
        stack: str,
        title: str,
        description: str | None,
        order_index: int,
        created_by_user_id: int,
    ) -> BacklogTask:
        row = BacklogTask(
            project_id=project_id,
            backlog_item_id=backlog_item_id,
            stack=stack,
            title=title,
            description=description,
            is_done=False,
            order_index=order_index,
            created_by_user_id=created_by_user_id,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def set_task_done(self, task: BacklogTask, *, is_done: bool) -> None:
        if is_done and not task.is_done:
            task.done_at = datetime.now(timezone.utc)
        elif not is_done:
            task.done_at = None
        task.is_done = is_done

    async def delete_task(self, task: BacklogTask) -> None:
        await self.session.delete(task)
        await self.session.flush()

    async def count_tasks(self, *, project_id: int, backlog_item_id: int) -> tuple[int, int]:
        """(done, total) for the backlog item's tasks."""
        stmt = select(
            func.count(BacklogTask.id),
            func.coalesce(func.sum(case((BacklogTask.is_done.is_(True), 1), else_=0)), 0),
        ).where(
            BacklogTask.project_id == project_id,
            BacklogTask.backlog_item_id == backlog_item_id,
        )
        result = await self.session.execute(stmt)
        total, done = result.one()
        return int(done), int(total)
