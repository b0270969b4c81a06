from __future__ import annotations

import logging

from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.services.access import ensure_capability, ensure_project_access
from ideaboard.core.database import get_session
from ideaboard.core.errors import ApiException
from ideaboard.core.metrics import metrics_registry
from ideaboard.domain.catalog import VOTE_VALUES
from ideaboard.domain.policies import Capability
from ideaboard.domain.progress import vote_tally
from ideaboard.infrastructure.repositories.suggestion_repository import (
    SuggestionRepository,
)

logger = logging.getLogger(__name__)


class VotingService:
    async def cast_vote(
        self,
        *,
        project_id: int,
        suggestion_id: int,
        voter: AuthenticatedPrincipal,
        value: int,
    ) -> dict:
        """Upsert the voter's vote and rewrite the suggestion's tallies from all vote rows.

        A vote of 0 clears the voter's preference but keeps the row.
        """
        if value not in VOTE_VALUES:
            raise ApiException(
                status_code=422,
                error_code="VOTE_VALUE_INVALID",
                message="Vote must be one of -1, 0 or 1",
            )
        ensure_capability(voter, Capability.SUGGESTION_VOTE)

        async with get_session() as session:
            await ensure_project_access(session, actor=voter, project_id=project_id)
            repo = SuggestionRepository(session)
            suggestion = await repo.get_suggestion(
                project_id=project_id,
                suggestion_id=suggestion_id,
                for_update=True,
            )
            if suggestion is None:
                raise ApiException(
                    status_code=404,
                    error_code="SUGGESTION_NOT_FOUND",
                    message=f"Suggestion #{suggestion_id} not found",
                )

            _, prior_vote = await repo.upsert_vote(
                project_id=project_id,
                suggestion_id=suggestion_id,
                user_id=voter.user_id,
                vote=value,
            )
            upvotes, downvotes = await repo.count_votes(
                project_id=project_id,
                suggestion_id=suggestion_id,
            )
            suggestion.upvotes_count = upvotes
            suggestion.downvotes_count = downvotes
            suggestion.score = vote_tally(upvotes, downvotes)
            await session.flush()

            result = {
                "suggestion_id": suggestion.id,
                "score": suggestion.score,
                "upvotes": upvotes,
                "downvotes": downvotes,
                "my_vote": value,
                "prior_vote": prior_vote if prior_vote is not None else 0,
            }

        metrics_registry.record_workflow_event(workflow="vote", outcome="cast")
        logger.info(
            "Vote cast suggestion_id=%s user_id=%s value=%s prior=%s score=%s",
            suggestion_id,
            voter.user_id,
            value,
            result["prior_vote"],
            result["score"],
        )
        return result
