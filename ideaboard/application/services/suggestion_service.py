from __future__ import annotations

import logging

from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.services.access import ensure_capability, ensure_project_access
from ideaboard.application.services.serializers import suggestion_payload
from ideaboard.core.database import get_session
from ideaboard.core.errors import ApiException
from ideaboard.domain.catalog import SUGGESTION_STATUSES
from ideaboard.domain.policies import Capability, is_allowed
from ideaboard.domain.suggestion_state import is_mutable, promotion_state
from ideaboard.infrastructure.db.models.suggestions import Suggestion
from ideaboard.infrastructure.repositories.suggestion_repository import (
    SuggestionRepository,
)

logger = logging.getLogger(__name__)


class SuggestionService:
    async def list_suggestions(
        self,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[dict]:
        if status is not None and status not in SUGGESTION_STATUSES:
            raise ApiException(
                status_code=422,
                error_code="SUGGESTION_STATUS_INVALID",
                message=f"Unknown suggestion status: {status}",
            )
        show_author = is_allowed(actor, Capability.SUGGESTION_VIEW_AUTHOR)
        async with get_session() as session:
            await ensure_project_access(session, actor=actor, project_id=project_id)
            repo = SuggestionRepository(session)
            rows = await repo.list_suggestions_with_authors(
                project_id=project_id,
                status=status,
                limit=limit,
                offset=offset,
            )
            my_votes = await repo.map_user_votes(
                project_id=project_id,
                user_id=actor.user_id,
                suggestion_ids=[suggestion.id for suggestion, _ in rows],
            )
            return [
                suggestion_payload(
                    suggestion,
                    author=author,
                    show_author=show_author,
                    viewer_user_id=actor.user_id,
                    my_vote=my_votes.get(suggestion.id),
                )
                for suggestion, author in rows
            ]

    async def get_suggestion(
        self,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        suggestion_id: int,
    ) -> dict:
        async with get_session() as session:
            await ensure_project_access(session, actor=actor, project_id=project_id)
            repo = SuggestionRepository(session)
            row = await repo.get_suggestion_with_author(
                project_id=project_id,
                suggestion_id=suggestion_id,
            )
            if row is None:
                raise _not_found(suggestion_id)
            suggestion, author = row
            my_vote = await repo.get_vote(
                project_id=project_id,
                suggestion_id=suggestion_id,
                user_id=actor.user_id,
            )
            return suggestion_payload(
                suggestion,
                author=author,
                show_author=is_allowed(actor, Capability.SUGGESTION_VIEW_AUTHOR),
                viewer_user_id=actor.user_id,
                my_vote=my_vote.vote if my_vote is not None else None,
            )

    async def create_suggestion(
        self,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        title: str,
        description: str,
    ) -> dict:
        ensure_capability(actor, Capability.SUGGESTION_CREATE)
        async with get_session() as session:
            await ensure_project_access(session, actor=actor, project_id=project_id)
            repo = SuggestionRepository(session)
            suggestion = await repo.create_suggestion(
                project_id=project_id,
                created_by_user_id=actor.user_id,
                title=title.strip(),
                description=description.strip(),
            )
            payload = suggestion_payload(
                suggestion,
                show_author=False,
                viewer_user_id=actor.user_id,
            )
        logger.info("Suggestion #%s created in project #%s", payload["id"], project_id)
        return payload

    async def update_suggestion(
        self,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        suggestion_id: int,
        title: str | None = None,
        description: str | None = None,
    ) -> dict:
        if title is None and description is None:
            raise ApiException(
                status_code=422,
                error_code="SUGGESTION_UPDATE_EMPTY",
                message="Provide at least one of title or description",
            )
        async with get_session() as session:
            await ensure_project_access(session, actor=actor, project_id=project_id)
            repo = SuggestionRepository(session)
            suggestion = await self._get_author_owned_mutable(
                repo,
                actor=actor,
                project_id=project_id,
                suggestion_id=suggestion_id,
                action="edit",
            )
            if title is not None:
                suggestion.title = title.strip()
            if description is not None:
                suggestion.description = description.strip()
            await session.flush()
            my_vote = await repo.get_vote(
                project_id=project_id,
                suggestion_id=suggestion_id,
                user_id=actor.user_id,
            )
            return suggestion_payload(
                suggestion,
                viewer_user_id=actor.user_id,
                my_vote=my_vote.vote if my_vote is not None else None,
            )

    async def delete_suggestion(
        self,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        suggestion_id: int,
    ) -> None:
        async with get_session() as session:
            await ensure_project_access(session, actor=actor, project_id=project_id)
            repo = SuggestionRepository(session)
            suggestion = await self._get_author_owned_mutable(
                repo,
                actor=actor,
                project_id=project_id,
                suggestion_id=suggestion_id,
                action="delete",
            )
            await repo.delete_votes(project_id=project_id, suggestion_id=suggestion_id)
            await repo.delete_suggestion(suggestion)
        logger.info("Suggestion #%s deleted from project #%s", suggestion_id, project_id)

    @staticmethod
    async def _get_author_owned_mutable(
        repo: SuggestionRepository,
        *,
        actor: AuthenticatedPrincipal,
        project_id: int,
        suggestion_id: int,
        action: str,
    ) -> Suggestion:
        suggestion = await repo.get_suggestion(
            project_id=project_id,
            suggestion_id=suggestion_id,
            for_update=True,
        )
        if suggestion is None:
            raise _not_found(suggestion_id)
        # Authorship is not waived for admins.
        if suggestion.created_by_user_id != actor.user_id:
            raise ApiException(
                status_code=403,
                error_code="SUGGESTION_NOT_AUTHOR",
                message=f"Only the author can {action} this suggestion",
            )
        if not is_mutable(promotion_state(suggestion)):
            raise ApiException(
                status_code=409,
                error_code="SUGGESTION_LOCKED",
                message=f"Suggestion #{suggestion_id} is promoted and can no longer be changed",
                details={"backlog_item_id": suggestion.backlog_item_id},
            )
        return suggestion


def _not_found(suggestion_id: int) -> ApiException:
    return ApiException(
        status_code=404,
        error_code="SUGGESTION_NOT_FOUND",
        message=f"Suggestion #{suggestion_id} not found",
    )
