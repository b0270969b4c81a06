from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from ideaboard.domain.catalog import STACKS
from ideaboard.infrastructure.db.models.auth import User, UserStack


class AuthRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_user(self, user_id: int) -> User | None:
        return await self.session.get(User, user_id)

    async def get_user_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_users(
        self,
        *,
        include_inactive: bool,
        limit: int,
        offset: int,
    ) -> Sequence[User]:
        stmt = select(User).order_by(User.created_at.desc(), User.id.desc())
        if not include_inactive:
            stmt = stmt.where(User.is_active.is_(True))
        stmt = stmt.limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def create_user(
        self,
        *,
        name: str,
        email: str,
        password_hash: str,
        role: str,
    ) -> User:
        row = User(
            name=name,
            email=email.strip().lower(),
            password_hash=password_hash,
            role=role,
            is_active=True,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def touch_last_login(self, user: User) -> None:
        user.last_login_at = datetime.now(timezone.utc)
        await self.session.flush()

    async def list_user_stacks(self, user_id: int) -> list[str]:
        stmt = select(UserStack.stack).where(UserStack.user_id == user_id)
        result = await self.session.execute(stmt)
        assigned = set(result.scalars().all())
        return [stack for stack in STACKS if stack in assigned]

    async def replace_user_stacks(self, *, user_id: int, stacks: Sequence[str]) -> list[str]:
        await self.session.execute(delete(UserStack).where(UserStack.user_id == user_id))
        for stack in sorted(set(stacks)):
            self.session.add(UserStack(user_id=user_id, stack=stack))
        await self.session.flush()
        return await self.list_user_stacks(user_id)
