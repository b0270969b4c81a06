from __future__ import annotations

import logging

from sqlalchemy.exc import IntegrityError

from ideaboard.application.dto.auth import AuthenticatedPrincipal
from ideaboard.application.services.access import ensure_capability, ensure_project_access
from ideaboard.application.services.serializers import backlog_item_payload
from ideaboard.core.database import get_session
from ideaboard.core.errors import ApiException
from ideaboard.core.metrics import metrics_registry
from ideaboard.domain.catalog import (
    BACKLOG_DEFAULT_PRIORITY,
    BACKLOG_INITIAL_STAGE,
    BACKLOG_ORIGIN_SUGGESTION,
)
from ideaboard.domain.policies import Capability
from ideaboard.domain.suggestion_state import Promoted, promotion_state
from ideaboard.infrastructure.repositories.backlog_repository import BacklogRepository
from ideaboard.infrastructure.repositories.suggestion_repository import (
    SuggestionRepository,
)

logger = logging.getLogger(__name__)

# PostgreSQL reports the constraint name, SQLite only the constrained columns.
_PROMOTION_CONFLICT_MARKERS = (
    "uq_backlog_items_project_suggestion",
    "uq_suggestions_backlog_item_id",
    "backlog_items.project_id, backlog_items.suggestion_id",
    "UNIQUE constraint failed: suggestions.backlog_item_id",
)


class PromotionService:
    async def promote(
        self,
        *,
        project_id: int,
        suggestion_id: int,
        actor: AuthenticatedPrincipal,
    ) -> dict:
        """Turn an unpromoted suggestion into a backlog item, exactly once."""
        ensure_capability(actor, Capability.SUGGESTION_PROMOTE)
        try:
            async with get_session() as session:
                await ensure_project_access(session, actor=actor, project_id=project_id)
                suggestion_repo = SuggestionRepository(session)
                suggestion = await suggestion_repo.get_suggestion(
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

                state = promotion_state(suggestion)
                if isinstance(state, Promoted):
                    logger.warning(
                        "Promotion rejected suggestion_id=%s already linked to backlog_item_id=%s",
                        suggestion_id,
                        state.backlog_item_id,
                    )
                    metrics_registry.record_workflow_event(workflow="promotion", outcome="conflict")
                    raise _already_promoted(suggestion_id, state.backlog_item_id)

                item = await BacklogRepository(session).create_item(
                    project_id=project_id,
                    origin_type=BACKLOG_ORIGIN_SUGGESTION,
                    suggestion_id=suggestion.id,
                    title=suggestion.title,
                    summary=suggestion.description,
                    stage=BACKLOG_INITIAL_STAGE,
                    priority=BACKLOG_DEFAULT_PRIORITY,
                    created_by_user_id=actor.user_id,
                )
                await suggestion_repo.mark_promoted(suggestion, backlog_item_id=item.id)
                payload = backlog_item_payload(item, tasks=[])
        except IntegrityError as exc:
            if not is_promotion_conflict(exc):
                raise
            logger.warning(
                "Promotion of suggestion_id=%s hit a uniqueness constraint: %s",
                suggestion_id,
                exc.orig,
            )
            metrics_registry.record_workflow_event(workflow="promotion", outcome="conflict")
            raise _already_promoted(suggestion_id, None) from exc

        metrics_registry.record_workflow_event(workflow="promotion", outcome="promoted")
        logger.info(
            "Suggestion #%s promoted to backlog item #%s by user #%s",
            suggestion_id,
            payload["id"],
            actor.user_id,
        )
        return payload


def _already_promoted(suggestion_id: int, backlog_item_id: int | None) -> ApiException:
    return ApiException(
        status_code=409,
        error_code="SUGGESTION_ALREADY_PROMOTED",
        message=f"Suggestion #{suggestion_id} has already been promoted",
        details={"backlog_item_id": backlog_item_id},
    )


def is_promotion_conflict(exc: IntegrityError) -> bool:
    message = str(exc.orig)
    return any(marker in message for marker in _PROMOTION_CONFLICT_MARKERS)
