import pytest

from ideaboard.application.services.backlog_service import BacklogService
from ideaboard.application.services.progress_service import ProgressAggregator
from ideaboard.application.services.suggestion_service import SuggestionService
from ideaboard.application.services.task_service import TaskService
from ideaboard.core.errors import ApiException


async def _promoted_board(seed):
    admin = await seed.user(role="admin")
    author = await seed.user(role="user")
    frontend_dev = await seed.user(role="developer", stacks=("frontend",))
    backend_dev = await seed.user(role="developer", stacks=("backend",))
    manager = await seed.user(role="manager")
    project_id = await seed.project(
        creator=admin, members=(author, frontend_dev, backend_dev, manager)
    )
    suggestion_id, item_id = await seed.promoted_item(
        project_id=project_id, author=author, promoter=admin
    )
    return {
        "admin": admin,
        "author": author,
        "frontend_dev": frontend_dev,
        "backend_dev": backend_dev,
        "manager": manager,
        "project_id": project_id,
        "suggestion_id": suggestion_id,
        "item_id": item_id,
    }


async def _suggestion_progress(board) -> int:
    row = await SuggestionService().get_suggestion(
        actor=board["author"],
        project_id=board["project_id"],
        suggestion_id=board["suggestion_id"],
    )
    return row["progress_percent"]


def test_two_of_three_done_mirrors_67_percent(run, seed):
    async def scenario():
        board = await _promoted_board(seed)
        service = TaskService()
        common = {"project_id": board["project_id"], "backlog_item_id": board["item_id"]}
        first = await service.create_task(
            actor=board["frontend_dev"], stack="frontend", title="Toggle", **common
        )
        second = await service.create_task(
            actor=board["frontend_dev"], stack="frontend", title="Palette", **common
        )
        await service.create_task(
            actor=board["backend_dev"], stack="backend", title="Persist preference", **common
        )
        await service.update_task(
            actor=board["frontend_dev"], task_id=first["task"]["id"], is_done=True, **common
        )
        result = await service.update_task(
            actor=board["frontend_dev"], task_id=second["task"]["id"], is_done=True, **common
        )
        return result, await _suggestion_progress(board)

    result, suggestion_progress = run(scenario)

    assert result["progress"]["backlog_progress"] == 67
    assert result["progress"]["suggestion_progress"] == 67
    assert suggestion_progress == 67


def test_single_task_done_brings_both_records_to_100(run, seed):
    async def scenario():
        board = await _promoted_board(seed)
        service = TaskService()
        common = {"project_id": board["project_id"], "backlog_item_id": board["item_id"]}
        created = await service.create_task(
            actor=board["backend_dev"], stack="backend", title="Migration", **common
        )
        await service.update_task(
            actor=board["backend_dev"], task_id=created["task"]["id"], is_done=True, **common
        )
        item = await BacklogService().get_item(
            actor=board["admin"],
            project_id=board["project_id"],
            backlog_item_id=board["item_id"],
        )
        return item, await _suggestion_progress(board)

    item, suggestion_progress = run(scenario)

    assert item["progress_percent"] == 100
    assert suggestion_progress == 100
    assert item["tasks"][0]["is_done"] is True


def test_deleting_last_task_resets_progress_to_zero(run, seed):
    async def scenario():
        board = await _promoted_board(seed)
        service = TaskService()
        common = {"project_id": board["project_id"], "backlog_item_id": board["item_id"]}
        created = await service.create_task(
            actor=board["admin"], stack="infra", title="Provision", **common
        )
        await service.update_task(
            actor=board["admin"], task_id=created["task"]["id"], is_done=True, **common
        )
        deleted = await service.delete_task(
            actor=board["admin"], task_id=created["task"]["id"], **common
        )
        return deleted, await _suggestion_progress(board)

    deleted, suggestion_progress = run(scenario)

    assert deleted["progress"]["backlog_progress"] == 0
    assert suggestion_progress == 0


@pytest.mark.parametrize("operation", ["create", "update", "delete"])
def test_frontend_developer_cannot_touch_backend_tasks(run, seed, operation):
    async def scenario():
        board = await _promoted_board(seed)
        service = TaskService()
        common = {"project_id": board["project_id"], "backlog_item_id": board["item_id"]}
        backend_task = await service.create_task(
            actor=board["backend_dev"], stack="backend", title="Endpoint", **common
        )
        actor = board["frontend_dev"]
        if operation == "create":
            await service.create_task(actor=actor, stack="backend", title="Cache", **common)
        elif operation == "update":
            await service.update_task(
                actor=actor, task_id=backend_task["task"]["id"], is_done=True, **common
            )
        else:
            await service.delete_task(actor=actor, task_id=backend_task["task"]["id"], **common)

    with pytest.raises(ApiException) as exc_info:
        run(scenario)
    assert exc_info.value.status_code == 403
    assert exc_info.value.error_code == "STACK_FORBIDDEN"


@pytest.mark.parametrize("operation", ["create", "update", "delete"])
def test_admin_can_touch_backend_tasks(run, seed, operation):
    async def scenario():
        board = await _promoted_board(seed)
        service = TaskService()
        common = {"project_id": board["project_id"], "backlog_item_id": board["item_id"]}
        backend_task = await service.create_task(
            actor=board["backend_dev"], stack="backend", title="Endpoint", **common
        )
        actor = board["admin"]
        if operation == "create":
            return await service.create_task(actor=actor, stack="backend", title="Cache", **common)
        if operation == "update":
            return await service.update_task(
                actor=actor, task_id=backend_task["task"]["id"], is_done=True, **common
            )
        return await service.delete_task(
            actor=actor, task_id=backend_task["task"]["id"], **common
        )

    result = run(scenario)
    assert result["task"]["stack"] == "backend"


def test_done_at_follows_completion(run, seed):
    async def scenario():
        board = await _promoted_board(seed)
        service = TaskService()
        common = {"project_id": board["project_id"], "backlog_item_id": board["item_id"]}
        created = await service.create_task(
            actor=board["frontend_dev"], stack="frontend", title="Toggle", **common
        )
        task_id = created["task"]["id"]
        done = await service.update_task(
            actor=board["frontend_dev"], task_id=task_id, is_done=True, **common
        )
        reopened = await service.update_task(
            actor=board["frontend_dev"], task_id=task_id, is_done=False, **common
        )
        return created, done, reopened

    created, done, reopened = run(scenario)

    assert created["task"]["done_at"] is None
    assert done["task"]["done_at"] is not None
    assert reopened["task"]["is_done"] is False
    assert reopened["task"]["done_at"] is None
    assert reopened["progress"]["backlog_progress"] == 0


def test_new_tasks_are_appended_in_order(run, seed):
    async def scenario():
        board = await _promoted_board(seed)
        service = TaskService()
        common = {"project_id": board["project_id"], "backlog_item_id": board["item_id"]}
        for title in ("One", "Two", "Three"):
            await service.create_task(actor=board["admin"], stack="infra", title=title, **common)
        return await BacklogService().get_item(
            actor=board["admin"],
            project_id=board["project_id"],
            backlog_item_id=board["item_id"],
        )

    item = run(scenario)
    assert [(task["title"], task["order_index"]) for task in item["tasks"]] == [
        ("One", 0),
        ("Two", 1),
        ("Three", 2),
    ]


def test_unknown_stack_is_a_validation_error(run, seed):
    async def scenario():
        board = await _promoted_board(seed)
        await TaskService().create_task(
            actor=board["admin"],
            project_id=board["project_id"],
            backlog_item_id=board["item_id"],
            stack="mobile",
            title="App",
        )

    with pytest.raises(ApiException) as exc_info:
        run(scenario)
    assert exc_info.value.status_code == 422
    assert exc_info.value.error_code == "TASK_STACK_INVALID"


def test_missing_task_is_not_found(run, seed):
    async def scenario():
        board = await _promoted_board(seed)
        await TaskService().update_task(
            actor=board["admin"],
            project_id=board["project_id"],
            backlog_item_id=board["item_id"],
            task_id=4242,
            is_done=True,
        )

    with pytest.raises(ApiException) as exc_info:
        run(scenario)
    assert exc_info.value.status_code == 404
    assert exc_info.value.error_code == "TASK_NOT_FOUND"


def test_manual_item_recompute_without_tasks_is_zero(run, seed):
    async def scenario():
        admin = await seed.user(role="admin")
        developer = await seed.user(role="developer", stacks=("infra",))
        project_id = await seed.project(creator=admin, members=(developer,))
        item = await BacklogService().create_item(
            actor=developer, project_id=project_id, title="Rotate keys"
        )
        return item, await ProgressAggregator().recompute(
            project_id=project_id, backlog_item_id=item["id"], actor=developer
        )

    item, snapshot = run(scenario)

    assert item["origin_type"] == "manual"
    assert snapshot.backlog_progress == 0
    assert snapshot.suggestion_id is None
    assert snapshot.suggestion_progress is None


def test_promoted_item_cannot_be_deleted(run, seed):
    async def scenario():
        board = await _promoted_board(seed)
        await BacklogService().delete_item(
            actor=board["admin"],
            project_id=board["project_id"],
            backlog_item_id=board["item_id"],
        )

    with pytest.raises(ApiException) as exc_info:
        run(scenario)
    assert exc_info.value.status_code == 409
    assert exc_info.value.error_code == "BACKLOG_ITEM_LINKED_TO_SUGGESTION"


@pytest.mark.parametrize("operation", ["create", "update", "delete"])
def test_manager_without_task_capability_is_denied_by_role(run, seed, operation):
    async def scenario():
        board = await _promoted_board(seed)
        manager = board["manager"]
        service = TaskService()
        common = {"project_id": board["project_id"], "backlog_item_id": board["item_id"]}
        task = await service.create_task(
            actor=board["frontend_dev"], stack="frontend", title="Toggle", **common
        )
        if operation == "create":
            await service.create_task(actor=manager, stack="frontend", title="Badge", **common)
        elif operation == "update":
            await service.update_task(
                actor=manager, task_id=task["task"]["id"], is_done=True, **common
            )
        else:
            await service.delete_task(actor=manager, task_id=task["task"]["id"], **common)

    with pytest.raises(ApiException) as exc_info:
        run(scenario)
    assert exc_info.value.status_code == 403
    assert exc_info.value.error_code == "CAPABILITY_DENIED"
    assert "lacks capability" in exc_info.value.message
