from __future__ import annotations

from typing import Final

ROLE_USER: Final = "user"
ROLE_MANAGER: Final = "manager"
ROLE_DEVELOPER: Final = "developer"
ROLE_ADMIN: Final = "admin"
ROLES: Final[tuple[str, ...]] = (ROLE_USER, ROLE_MANAGER, ROLE_DEVELOPER, ROLE_ADMIN)

STACKS: Final[tuple[str, ...]] = ("frontend", "backend", "infra")

SUGGESTION_STATUSES: Final[tuple[str, ...]] = ("open", "in_progress", "done", "rejected")
SUGGESTION_STATUS_OPEN: Final = "open"
SUGGESTION_STATUS_IN_PROGRESS: Final = "in_progress"

VOTE_VALUES: Final[tuple[int, ...]] = (-1, 0, 1)

BACKLOG_ORIGIN_MANUAL: Final = "manual"
BACKLOG_ORIGIN_SUGGESTION: Final = "suggestion"
BACKLOG_ORIGINS: Final[tuple[str, ...]] = (BACKLOG_ORIGIN_MANUAL, BACKLOG_ORIGIN_SUGGESTION)

BACKLOG_STAGES: Final[tuple[str, ...]] = ("todo", "doing", "review", "done", "blocked")
BACKLOG_INITIAL_STAGE: Final = "todo"

BACKLOG_PRIORITIES: Final[tuple[str, ...]] = ("low", "medium", "high", "urgent")
BACKLOG_DEFAULT_PRIORITY: Final = "medium"

PROJECT_STATUSES: Final[tuple[str, ...]] = ("active", "archived")


def sql_in(values: tuple[str, ...] | tuple[int, ...]) -> str:
    """Render a CHECK-constraint membership list."""
    return ", ".join(repr(value) if isinstance(value, str) else str(value) for value in values)
