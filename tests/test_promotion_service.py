import asyncio

import pytest
from sqlalchemy.exc import IntegrityError

from ideaboard.application.services.backlog_service import BacklogService
from ideaboard.application.services.promotion_service import (
    PromotionService,
    is_promotion_conflict,
)
from ideaboard.application.services.suggestion_service import SuggestionService
from ideaboard.application.services.voting_service import VotingService
from ideaboard.core.errors import ApiException
from ideaboard.infrastructure.repositories.backlog_repository import BacklogRepository


async def _team(seed):
    admin = await seed.user(role="admin")
    author = await seed.user(role="user")
    developer = await seed.user(role="developer", stacks=("backend",))
    project_id = await seed.project(creator=admin, members=(author, developer))
    return project_id, admin, author, developer


def test_promotion_creates_linked_backlog_item(run, seed):
    async def scenario():
        project_id, _, author, developer = await _team(seed)
        suggestion_id = await seed.suggestion(
            project_id=project_id,
            author=author,
            title="Export to CSV",
            description="Download the board as a spreadsheet",
        )
        item = await PromotionService().promote(
            project_id=project_id, suggestion_id=suggestion_id, actor=developer
        )
        suggestion = await SuggestionService().get_suggestion(
            actor=author, project_id=project_id, suggestion_id=suggestion_id
        )
        return suggestion_id, item, suggestion

    suggestion_id, item, suggestion = run(scenario)

    assert item["origin_type"] == "suggestion"
    assert item["suggestion_id"] == suggestion_id
    assert item["title"] == "Export to CSV"
    assert item["summary"] == "Download the board as a spreadsheet"
    assert item["stage"] == "todo"
    assert item["priority"] == "medium"
    assert item["progress_percent"] == 0
    assert item["tasks"] == []

    assert suggestion["backlog_item_id"] == item["id"]
    assert suggestion["is_promoted"] is True
    assert suggestion["status"] == "in_progress"
    assert suggestion["locked_at"] is not None


def test_second_promotion_conflicts(run, seed):
    async def scenario():
        project_id, admin, author, developer = await _team(seed)
        suggestion_id, item_id = await seed.promoted_item(
            project_id=project_id, author=author, promoter=developer
        )
        try:
            await PromotionService().promote(
                project_id=project_id, suggestion_id=suggestion_id, actor=admin
            )
        except ApiException as exc:
            return item_id, exc
        return item_id, None

    item_id, exc = run(scenario)

    assert exc is not None
    assert exc.status_code == 409
    assert exc.kind == "conflict"
    assert exc.error_code == "SUGGESTION_ALREADY_PROMOTED"
    assert exc.details == {"backlog_item_id": item_id}


def test_concurrent_promotions_create_exactly_one_item(run, seed):
    async def scenario():
        project_id, admin, author, developer = await _team(seed)
        suggestion_id = await seed.suggestion(project_id=project_id, author=author)
        service = PromotionService()
        outcomes = await asyncio.gather(
            service.promote(project_id=project_id, suggestion_id=suggestion_id, actor=developer),
            service.promote(project_id=project_id, suggestion_id=suggestion_id, actor=admin),
            return_exceptions=True,
        )
        items = await BacklogService().list_items(actor=admin, project_id=project_id)
        return outcomes, items

    outcomes, items = run(scenario)

    created = [outcome for outcome in outcomes if isinstance(outcome, dict)]
    failures = [outcome for outcome in outcomes if isinstance(outcome, ApiException)]
    assert len(created) == 1
    assert len(failures) == 1
    assert failures[0].error_code == "SUGGESTION_ALREADY_PROMOTED"
    assert [item["id"] for item in items] == [created[0]["id"]]


def test_plain_user_cannot_promote(run, seed):
    async def scenario():
        project_id, _, author, _ = await _team(seed)
        suggestion_id = await seed.suggestion(project_id=project_id, author=author)
        await PromotionService().promote(
            project_id=project_id, suggestion_id=suggestion_id, actor=author
        )

    with pytest.raises(ApiException) as exc_info:
        run(scenario)
    assert exc_info.value.status_code == 403
    assert exc_info.value.error_code == "CAPABILITY_DENIED"


@pytest.mark.parametrize("operation", ["edit", "delete"])
def test_promoted_suggestion_is_frozen_for_its_author(run, seed, operation):
    async def scenario():
        project_id, _, author, developer = await _team(seed)
        suggestion_id, _ = await seed.promoted_item(
            project_id=project_id, author=author, promoter=developer
        )
        service = SuggestionService()
        if operation == "edit":
            await service.update_suggestion(
                actor=author,
                project_id=project_id,
                suggestion_id=suggestion_id,
                title="Renamed after promotion",
            )
        else:
            await service.delete_suggestion(
                actor=author, project_id=project_id, suggestion_id=suggestion_id
            )

    with pytest.raises(ApiException) as exc_info:
        run(scenario)
    assert exc_info.value.status_code == 409
    assert exc_info.value.error_code == "SUGGESTION_LOCKED"


def test_authorship_check_runs_before_lock_check(run, seed):
    async def scenario():
        project_id, admin, author, developer = await _team(seed)
        suggestion_id, _ = await seed.promoted_item(
            project_id=project_id, author=author, promoter=developer
        )
        await SuggestionService().update_suggestion(
            actor=admin,
            project_id=project_id,
            suggestion_id=suggestion_id,
            title="Admin rewrite",
        )

    with pytest.raises(ApiException) as exc_info:
        run(scenario)
    assert exc_info.value.status_code == 403
    assert exc_info.value.error_code == "SUGGESTION_NOT_AUTHOR"


def test_unpromoted_suggestion_can_be_edited_and_deleted_by_author(run, seed):
    async def scenario():
        project_id, _, author, developer = await _team(seed)
        suggestion_id = await seed.suggestion(project_id=project_id, author=author)
        await VotingService().cast_vote(
            project_id=project_id, suggestion_id=suggestion_id, voter=developer, value=1
        )
        service = SuggestionService()
        edited = await service.update_suggestion(
            actor=author,
            project_id=project_id,
            suggestion_id=suggestion_id,
            description="Offer a dark and a high-contrast scheme",
        )
        await service.delete_suggestion(
            actor=author, project_id=project_id, suggestion_id=suggestion_id
        )
        remaining = await service.list_suggestions(actor=author, project_id=project_id)
        return edited, remaining

    edited, remaining = run(scenario)

    assert edited["description"] == "Offer a dark and a high-contrast scheme"
    assert edited["is_mine"] is True
    assert edited["score"] == 1
    assert remaining == []


def test_votes_are_still_accepted_after_promotion(run, seed):
    async def scenario():
        project_id, _, author, developer = await _team(seed)
        suggestion_id, _ = await seed.promoted_item(
            project_id=project_id, author=author, promoter=developer
        )
        return await VotingService().cast_vote(
            project_id=project_id, suggestion_id=suggestion_id, voter=author, value=-1
        )

    result = run(scenario)
    assert result["score"] == -1


@pytest.mark.parametrize(
    "message, expected",
    [
        (
            'duplicate key value violates unique constraint "uq_backlog_items_project_suggestion"',
            True,
        ),
        ('duplicate key value violates unique constraint "uq_suggestions_backlog_item_id"', True),
        (
            "UNIQUE constraint failed: backlog_items.project_id, backlog_items.suggestion_id",
            True,
        ),
        ("UNIQUE constraint failed: suggestions.backlog_item_id", True),
        ("FOREIGN KEY constraint failed", False),
        ('insert or update on table "backlog_items" violates foreign key constraint', False),
    ],
)
def test_only_promotion_uniqueness_counts_as_conflict(message, expected):
    exc = IntegrityError("INSERT INTO backlog_items", {}, Exception(message))
    assert is_promotion_conflict(exc) is expected


def test_unrelated_integrity_error_is_not_reported_as_conflict(run, seed, monkeypatch):
    async def _broken_create_item(self, **kwargs):
        raise IntegrityError(
            "INSERT INTO backlog_items", {}, Exception("FOREIGN KEY constraint failed")
        )

    async def scenario():
        project_id, _, author, developer = await _team(seed)
        suggestion_id = await seed.suggestion(project_id=project_id, author=author)
        monkeypatch.setattr(BacklogRepository, "create_item", _broken_create_item)
        with pytest.raises(IntegrityError):
            await PromotionService().promote(
                project_id=project_id, suggestion_id=suggestion_id, actor=developer
            )
        return await SuggestionService().get_suggestion(
            actor=author, project_id=project_id, suggestion_id=suggestion_id
        )

    suggestion = run(scenario)

    assert suggestion["is_promoted"] is False
    assert suggestion["status"] == "open"
