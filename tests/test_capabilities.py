from dataclasses import dataclass

import pytest

from ideaboard.domain.policies import Capability, denial_reason, is_allowed, role_grants


@dataclass(frozen=True)
class _Actor:
    role: str
    stacks: tuple[str, ...] = ()


@pytest.mark.parametrize(
    "role, capability, expected",
    [
        ("user", Capability.SUGGESTION_CREATE, True),
        ("user", Capability.SUGGESTION_VOTE, True),
        ("user", Capability.SUGGESTION_PROMOTE, False),
        ("user", Capability.SUGGESTION_VIEW_AUTHOR, False),
        ("user", Capability.BACKLOG_READ, False),
        ("manager", Capability.BACKLOG_READ, True),
        ("manager", Capability.BACKLOG_WRITE, False),
        ("manager", Capability.SUGGESTION_PROMOTE, False),
        ("developer", Capability.SUGGESTION_PROMOTE, True),
        ("developer", Capability.SUGGESTION_VIEW_AUTHOR, True),
        ("developer", Capability.BACKLOG_WRITE, True),
        ("developer", Capability.ADMIN_MANAGE, False),
        ("admin", Capability.ADMIN_MANAGE, True),
        ("admin", Capability.SUGGESTION_PROMOTE, True),
    ],
)
def test_role_capability_table(role, capability, expected):
    assert is_allowed(_Actor(role=role), capability) is expected


def test_unknown_role_is_denied_everything():
    actor = _Actor(role="guest")
    assert not any(is_allowed(actor, capability) for capability in Capability)


def test_task_mutation_requires_matching_stack_for_developers():
    frontend_dev = _Actor(role="developer", stacks=("frontend",))

    assert is_allowed(frontend_dev, Capability.TASK_MUTATE, stack="frontend")
    assert not is_allowed(frontend_dev, Capability.TASK_MUTATE, stack="backend")
    assert "backend" in denial_reason(frontend_dev, Capability.TASK_MUTATE, stack="backend")


def test_task_mutation_without_stack_is_denied_for_developers():
    dev = _Actor(role="developer", stacks=("frontend", "backend", "infra"))
    assert not is_allowed(dev, Capability.TASK_MUTATE)


def test_admin_mutates_tasks_on_any_stack():
    admin = _Actor(role="admin")
    for stack in ("frontend", "backend", "infra"):
        assert is_allowed(admin, Capability.TASK_MUTATE, stack=stack)


def test_stack_assignment_does_not_grant_capability_to_managers():
    manager = _Actor(role="manager", stacks=("backend",))
    reason = denial_reason(manager, Capability.TASK_MUTATE, stack="backend")
    assert reason is not None
    assert "manager" in reason


def test_role_grants_ignores_stacks():
    assert role_grants("developer", Capability.TASK_MUTATE) is True
    assert role_grants("manager", Capability.TASK_MUTATE) is False
    assert role_grants("intern", Capability.SUGGESTION_VOTE) is False
