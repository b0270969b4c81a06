from __future__ import annotations

from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ideaboard.infrastructure.db.models.auth import User
from ideaboard.infrastructure.db.models.projects import Project, ProjectMember


class ProjectRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_project(self, project_id: int) -> Project | None:
        return await self.session.get(Project, project_id)

    async def list_all_projects(self, *, include_inactive: bool) -> Sequence[Project]:
        stmt = select(Project).order_by(Project.created_at.desc(), Project.id.desc())
        if not include_inactive:
            stmt = stmt.where(Project.is_active.is_(True))
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def list_projects_for_user(self, user_id: int) -> Sequence[Project]:
        stmt = (
            select(Project)
            .join(ProjectMember, ProjectMember.project_id == Project.id)
            .where(ProjectMember.user_id == user_id, Project.is_active.is_(True))
            .order_by(Project.created_at.desc(), Project.id.desc())
        )
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def create_project(
        self,
        *,
        name: str,
        description: str | None,
        created_by_user_id: int,
    ) -> Project:
        row = Project(
            name=name,
            description=description,
            status="active",
            is_active=True,
            created_by_user_id=created_by_user_id,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def is_member(self, *, project_id: int, user_id: int) -> bool:
        stmt = select(ProjectMember.user_id).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def add_member(self, *, project_id: int, user_id: int) -> ProjectMember:
        row = ProjectMember(project_id=project_id, user_id=user_id)
        self.session.add(row)
        await self.session.flush()
        return row

    async def remove_member(self, *, project_id: int, user_id: int) -> int:
        stmt = delete(ProjectMember).where(
            ProjectMember.project_id == project_id,
            ProjectMember.user_id == user_id,
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)

    async def list_members(self, project_id: int) -> Sequence[tuple[ProjectMember, User]]:
        stmt = (
            select(ProjectMember, User)
            .join(User, User.id == ProjectMember.user_id)
            .where(ProjectMember.project_id == project_id)
            .order_by(ProjectMember.created_at.asc(), User.id.asc())
        )
        result = await self.session.execute(stmt)
        return result.all()
