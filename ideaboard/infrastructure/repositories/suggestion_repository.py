from __future__ import annotations

from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import case, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ideaboard.domain.catalog import SUGGESTION_STATUS_IN_PROGRESS, SUGGESTION_STATUS_OPEN
from ideaboard.infrastructure.db.models.auth import User
from ideaboard.infrastructure.db.models.suggestions import Suggestion, SuggestionVote


class SuggestionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_suggestion(
        self,
        *,
        project_id: int,
        suggestion_id: int,
        for_update: bool = False,
    ) -> Suggestion | None:
        stmt = select(Suggestion).where(
            Suggestion.project_id == project_id,
            Suggestion.id == suggestion_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_suggestion_with_author(
        self,
        *,
        project_id: int,
        suggestion_id: int,
    ) -> tuple[Suggestion, User] | None:
        stmt = (
            select(Suggestion, User)
            .join(User, User.id == Suggestion.created_by_user_id)
            .where(Suggestion.project_id == project_id, Suggestion.id == suggestion_id)
        )
        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return row[0], row[1]

    async def list_suggestions_with_authors(
        self,
        *,
        project_id: int,
        status: str | None,
        limit: int,
        offset: int,
    ) -> Sequence[tuple[Suggestion, User]]:
        stmt = (
            select(Suggestion, User)
            .join(User, User.id == Suggestion.created_by_user_id)
            .where(Suggestion.project_id == project_id)
            .order_by(Suggestion.created_at.desc(), Suggestion.id.desc())
        )
        if status:
            stmt = stmt.where(Suggestion.status == status)
        stmt = stmt.limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return result.all()

    async def create_suggestion(
        self,
        *,
        project_id: int,
        created_by_user_id: int,
        title: str,
        description: str,
    ) -> Suggestion:
        row = Suggestion(
            project_id=project_id,
            created_by_user_id=created_by_user_id,
            title=title,
            description=description,
            status=SUGGESTION_STATUS_OPEN,
            progress_percent=0,
            score=0,
            upvotes_count=0,
            downvotes_count=0,
        )
        self.session.add(row)
        await self.session.flush()
        return row

    async def delete_suggestion(self, suggestion: Suggestion) -> None:
        await self.session.delete(suggestion)
        await self.session.flush()

    async def mark_promoted(self, suggestion: Suggestion, *, backlog_item_id: int) -> None:
        suggestion.backlog_item_id = backlog_item_id
        suggestion.status = SUGGESTION_STATUS_IN_PROGRESS
        suggestion.locked_at = datetime.now(timezone.utc)
        await self.session.flush()

    async def set_progress(self, *, project_id: int, suggestion_id: int, progress: int) -> None:
        row = await self.get_suggestion(project_id=project_id, suggestion_id=suggestion_id)
        if row is None:
            return
        row.progress_percent = progress
        await self.session.flush()

    async def get_vote(
        self,
        *,
        project_id: int,
        suggestion_id: int,
        user_id: int,
        for_update: bool = False,
    ) -> SuggestionVote | None:
        stmt = select(SuggestionVote).where(
            SuggestionVote.project_id == project_id,
            SuggestionVote.suggestion_id == suggestion_id,
            SuggestionVote.user_id == user_id,
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def upsert_vote(
        self,
        *,
        project_id: int,
        suggestion_id: int,
        user_id: int,
        vote: int,
    ) -> tuple[SuggestionVote, int | None]:
        row = await self.get_vote(
            project_id=project_id,
            suggestion_id=suggestion_id,
            user_id=user_id,
            for_update=True,
        )
        previous_vote = row.vote if row is not None else None
        if row is None:
            row = SuggestionVote(
                project_id=project_id,
                suggestion_id=suggestion_id,
                user_id=user_id,
                vote=vote,
            )
            self.session.add(row)
            await self.session.flush()
            return row, previous_vote

        row.vote = vote
        row.updated_at = datetime.now(timezone.utc)
        await self.session.flush()
        return row, previous_vote

    async def count_votes(self, *, project_id: int, suggestion_id: int) -> tuple[int, int]:
        """Full scan of the suggestion's vote rows: (upvotes, downvotes)."""
        stmt = select(
            func.coalesce(func.sum(case((SuggestionVote.vote == 1, 1), else_=0)), 0),
            func.coalesce(func.sum(case((SuggestionVote.vote == -1, 1), else_=0)), 0),
        ).where(
            SuggestionVote.project_id == project_id,
            SuggestionVote.suggestion_id == suggestion_id,
        )
        result = await self.session.execute(stmt)
        upvotes, downvotes = result.one()
        return int(upvotes), int(downvotes)

    async def map_user_votes(
        self,
        *,
        project_id: int,
        user_id: int,
        suggestion_ids: Sequence[int] | None = None,
    ) -> dict[int, int]:
        stmt = select(SuggestionVote.suggestion_id, SuggestionVote.vote).where(
            SuggestionVote.project_id == project_id,
            SuggestionVote.user_id == user_id,
        )
        if suggestion_ids is not None:
            if not suggestion_ids:
                return {}
            stmt = stmt.where(SuggestionVote.suggestion_id.in_(list(suggestion_ids)))
        result = await self.session.execute(stmt)
        return {int(suggestion_id): int(vote) for suggestion_id, vote in result.all()}

    async def delete_votes(self, *, project_id: int, suggestion_id: int) -> int:
        stmt = delete(SuggestionVote).where(
            SuggestionVote.project_id == project_id,
            SuggestionVote.suggestion_id == suggestion_id,
        )
        result = await self.session.execute(stmt)
        return int(result.rowcount or 0)
