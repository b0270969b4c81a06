from __future__ import annotations

from typing import Any

from ideaboard.domain.suggestion_state import Promoted, promotion_state
from ideaboard.infrastructure.db.models.auth import User
from ideaboard.infrastructure.db.models.backlog import BacklogItem, BacklogTask
from ideaboard.infrastructure.db.models.projects import Project
from ideaboard.infrastructure.db.models.suggestions import Suggestion


def user_payload(user: User, *, stacks: list[str] | None = None) -> dict[str, Any]:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "stacks": list(stacks or []),
        "is_active": user.is_active,
        "last_login_at": user.last_login_at,
        "created_at": user.created_at,
    }


def project_payload(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "status": project.status,
        "is_active": project.is_active,
        "created_by_user_id": project.created_by_user_id,
        "created_at": project.created_at,
        "updated_at": project.updated_at,
    }


def suggestion_payload(
    suggestion: Suggestion,
    *,
    author: User | None = None,
    show_author: bool = False,
    viewer_user_id: int | None = None,
    my_vote: int | None = None,
) -> dict[str, Any]:
    state = promotion_state(suggestion)
    return {
        "id": suggestion.id,
        "project_id": suggestion.project_id,
        "title": suggestion.title,
        "description": suggestion.description,
        "status": suggestion.status,
        "progress_percent": suggestion.progress_percent,
        "score": suggestion.score,
        "upvotes_count": suggestion.upvotes_count,
        "downvotes_count": suggestion.downvotes_count,
        "backlog_item_id": state.backlog_item_id if isinstance(state, Promoted) else None,
        "is_promoted": isinstance(state, Promoted),
        "locked_at": suggestion.locked_at,
        "is_mine": viewer_user_id is not None
        and suggestion.created_by_user_id == viewer_user_id,
        "author": (
            {"id": author.id, "name": author.name}
            if show_author and author is not None
            else None
        ),
        "my_vote": my_vote if my_vote is not None else 0,
        "created_at": suggestion.created_at,
        "updated_at": suggestion.updated_at,
    }


def task_payload(task: BacklogTask) -> dict[str, Any]:
    return {
        "id": task.id,
        "project_id": task.project_id,
        "backlog_item_id": task.backlog_item_id,
        "stack": task.stack,
        "title": task.title,
        "description": task.description,
        "is_done": task.is_done,
        "done_at": task.done_at,
        "order_index": task.order_index,
        "created_by_user_id": task.created_by_user_id,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
    }


def backlog_item_payload(
    item: BacklogItem,
    *,
    tasks: list[BacklogTask] | None = None,
) -> dict[str, Any]:
    payload = {
        "id": item.id,
        "project_id": item.project_id,
        "origin_type": item.origin_type,
        "suggestion_id": item.suggestion_id,
        "title": item.title,
        "summary": item.summary,
        "stage": item.stage,
        "priority": item.priority,
        "progress_percent": item.progress_percent,
        "created_by_user_id": item.created_by_user_id,
        "created_at": item.created_at,
        "updated_at": item.updated_at,
    }
    if tasks is not None:
        payload["tasks"] = [task_payload(task) for task in tasks]
    return payload
