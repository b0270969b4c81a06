"""Role and stack based capability checks.

Every authorization decision made by routes and services goes through
:func:`is_allowed` so the role table below is the single source of truth.
"""

from __future__ import annotations

from enum import Enum
from typing import Protocol

from ideaboard.domain.catalog import (
    ROLE_ADMIN,
    ROLE_DEVELOPER,
    ROLE_MANAGER,
    ROLE_USER,
)


class Actor(Protocol):
    role: str
    stacks: tuple[str, ...]


class Capability(str, Enum):
    SUGGESTION_CREATE = "suggestion.create"
    SUGGESTION_VOTE = "suggestion.vote"
    SUGGESTION_PROMOTE = "suggestion.promote"
    SUGGESTION_VIEW_AUTHOR = "suggestion.view_author"
    BACKLOG_READ = "backlog.read"
    BACKLOG_WRITE = "backlog.write"
    TASK_MUTATE = "task.mutate"
    ADMIN_MANAGE = "admin.manage"


_MEMBER_CAPABILITIES = frozenset({Capability.SUGGESTION_CREATE, Capability.SUGGESTION_VOTE})

ROLE_CAPABILITIES: dict[str, frozenset[Capability]] = {
    ROLE_USER: _MEMBER_CAPABILITIES,
    ROLE_MANAGER: _MEMBER_CAPABILITIES | {Capability.BACKLOG_READ},
    ROLE_DEVELOPER: _MEMBER_CAPABILITIES
    | {
        Capability.SUGGESTION_PROMOTE,
        Capability.SUGGESTION_VIEW_AUTHOR,
        Capability.BACKLOG_READ,
        Capability.BACKLOG_WRITE,
        Capability.TASK_MUTATE,
    },
    ROLE_ADMIN: frozenset(Capability),
}


def role_grants(role: str, capability: Capability) -> bool:
    return capability in ROLE_CAPABILITIES.get(role, frozenset())


def denial_reason(
    actor: Actor,
    capability: Capability,
    *,
    stack: str | None = None,
) -> str | None:
    """Return why ``actor`` may not exercise ``capability``, or None if allowed."""
    if not role_grants(actor.role, capability):
        return f"role '{actor.role}' lacks capability '{capability.value}'"

    if capability is Capability.TASK_MUTATE and actor.role != ROLE_ADMIN:
        if stack is None:
            return "task stack is required for this check"
        if stack not in actor.stacks:
            return f"not assigned to stack '{stack}'"
    return None


def is_allowed(actor: Actor, capability: Capability, *, stack: str | None = None) -> bool:
    return denial_reason(actor, capability, stack=stack) is None
