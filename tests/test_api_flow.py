import pytest
from fastapi.testclient import TestClient

from ideaboard.app import create_app
from ideaboard.core.config import get_settings

API = "/api/v1"
ADMIN_EMAIL = "root@example.test"
ADMIN_PASSWORD = "admin-password-1"
MEMBER_PASSWORD = "member-password-1"


@pytest.fixture
def client(database_url, monkeypatch):
    monkeypatch.setenv("BACKEND_BOOTSTRAP_ADMIN_EMAIL", ADMIN_EMAIL)
    monkeypatch.setenv("BACKEND_BOOTSTRAP_ADMIN_PASSWORD", ADMIN_PASSWORD)
    monkeypatch.setenv("BACKEND_BOOTSTRAP_BLOCKING", "true")
    get_settings.cache_clear()
    with TestClient(create_app()) as test_client:
        yield test_client


def _login(client, email: str, password: str) -> dict:
    response = client.post(f"{API}/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _create_member(client, admin, project_id: int, *, name: str, role: str, stacks=()) -> dict:
    email = f"{name.lower()}@example.test"
    response = client.post(
        f"{API}/admin/users",
        headers=admin,
        json={
            "name": name,
            "email": email,
            "password": MEMBER_PASSWORD,
            "role": role,
            "stacks": list(stacks),
        },
    )
    assert response.status_code == 201, response.text
    user = response.json()
    response = client.put(
        f"{API}/admin/projects/{project_id}/members/{user['id']}", headers=admin
    )
    assert response.status_code == 201, response.text
    return _login(client, email, MEMBER_PASSWORD)


def test_health_is_public(client):
    response = client.get(f"{API}/system/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Request-ID"]


def test_suggestion_to_progress_flow(client):
    admin = _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    project = client.post(
        f"{API}/admin/projects", headers=admin, json={"name": "Checkout revamp"}
    ).json()
    pid = project["id"]

    alice = _create_member(client, admin, pid, name="Alice", role="user")
    dave = _create_member(client, admin, pid, name="Dave", role="developer", stacks=["frontend"])

    me = client.get(f"{API}/me", headers=dave).json()
    assert me["role"] == "developer"
    assert me["stacks"] == ["frontend"]

    projects = client.get(f"{API}/projects", headers=alice).json()
    assert [row["id"] for row in projects] == [pid]

    created = client.post(
        f"{API}/projects/{pid}/suggestions",
        headers=alice,
        json={"title": "One-click reorder", "description": "Repeat a past order"},
    )
    assert created.status_code == 201
    sid = created.json()["id"]
    assert created.json()["is_mine"] is True

    first = client.put(f"{API}/projects/{pid}/suggestions/{sid}/vote", headers=dave, json={"value": 1})
    again = client.put(f"{API}/projects/{pid}/suggestions/{sid}/vote", headers=dave, json={"value": 1})
    assert first.json()["prior_vote"] == 0
    assert again.json() == {
        "suggestion_id": sid,
        "score": 1,
        "upvotes": 1,
        "downvotes": 0,
        "my_vote": 1,
        "prior_vote": 1,
    }

    as_alice = client.get(f"{API}/projects/{pid}/suggestions/{sid}", headers=alice).json()
    as_dave = client.get(f"{API}/projects/{pid}/suggestions/{sid}", headers=dave).json()
    assert as_alice["author"] is None
    assert as_dave["author"] == {"id": as_dave["author"]["id"], "name": "Alice"}
    assert as_dave["my_vote"] == 1
    assert as_dave["is_mine"] is False

    promoted = client.post(f"{API}/projects/{pid}/suggestions/{sid}/promote", headers=dave)
    assert promoted.status_code == 201
    bid = promoted.json()["id"]
    assert promoted.json()["suggestion_id"] == sid

    locked = client.patch(
        f"{API}/projects/{pid}/suggestions/{sid}", headers=alice, json={"title": "Changed"}
    )
    assert locked.status_code == 409
    assert locked.json()["error_code"] == "SUGGESTION_LOCKED"

    tasks_url = f"{API}/projects/{pid}/backlog/{bid}/tasks"
    frontend_task = client.post(
        tasks_url, headers=dave, json={"stack": "frontend", "title": "Reorder button"}
    )
    assert frontend_task.status_code == 201
    assert frontend_task.json()["progress"]["backlog_progress"] == 0

    forbidden = client.post(tasks_url, headers=dave, json={"stack": "backend", "title": "Order API"})
    assert forbidden.status_code == 403
    assert forbidden.json()["error_code"] == "STACK_FORBIDDEN"

    backend_task = client.post(
        tasks_url, headers=admin, json={"stack": "backend", "title": "Order API"}
    )
    assert backend_task.status_code == 201

    done = client.patch(
        f"{tasks_url}/{frontend_task.json()['task']['id']}",
        headers=dave,
        json={"is_done": True},
    )
    assert done.status_code == 200
    assert done.json()["progress"] == {
        "backlog_item_id": bid,
        "backlog_progress": 50,
        "suggestion_id": sid,
        "suggestion_progress": 50,
    }

    suggestion = client.get(f"{API}/projects/{pid}/suggestions/{sid}", headers=alice).json()
    assert suggestion["progress_percent"] == 50
    assert suggestion["status"] == "in_progress"

    item = client.get(f"{API}/projects/{pid}/backlog/{bid}", headers=dave).json()
    assert item["progress_percent"] == 50
    assert [task["stack"] for task in item["tasks"]] == ["frontend", "backend"]

    audit = client.get(f"{API}/admin/audit", headers=admin).json()
    assert any(
        event["action"] == "promote" and event["entity_type"] == "suggestions"
        for event in audit
    )


def test_error_envelope_shape(client):
    admin = _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    pid = client.post(f"{API}/admin/projects", headers=admin, json={"name": "Ops"}).json()["id"]
    sid = client.post(
        f"{API}/projects/{pid}/suggestions",
        headers=admin,
        json={"title": "Status page", "description": "Public uptime page"},
    ).json()["id"]

    client.post(f"{API}/projects/{pid}/suggestions/{sid}/promote", headers=admin)
    conflict = client.post(
        f"{API}/projects/{pid}/suggestions/{sid}/promote",
        headers={**admin, "X-Request-ID": "req-promote-twice"},
    )

    assert conflict.status_code == 409
    body = conflict.json()
    assert body["kind"] == "conflict"
    assert body["error_code"] == "SUGGESTION_ALREADY_PROMOTED"
    assert body["request_id"] == "req-promote-twice"
    assert body["message"]
    assert conflict.headers["X-Request-ID"] == "req-promote-twice"


def test_unauthenticated_and_invalid_requests(client):
    anonymous = client.get(f"{API}/projects")
    assert anonymous.status_code == 401
    assert anonymous.json()["kind"] == "unauthenticated"
    assert anonymous.json()["error_code"] == "AUTH_REQUIRED"

    bad_login = client.post(
        f"{API}/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong-password"}
    )
    assert bad_login.status_code == 401
    assert bad_login.json()["error_code"] == "INVALID_CREDENTIALS"

    admin = _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    pid = client.post(f"{API}/admin/projects", headers=admin, json={"name": "Ops"}).json()["id"]
    invalid_vote = client.put(
        f"{API}/projects/{pid}/suggestions/1/vote", headers=admin, json={"value": 5}
    )
    assert invalid_vote.status_code == 422
    assert invalid_vote.json()["kind"] == "validation"
    assert invalid_vote.json()["error_code"] == "VALIDATION_FAILED"

    missing = client.get(f"{API}/projects/{pid}/suggestions/777", headers=admin)
    assert missing.status_code == 404
    assert missing.json()["kind"] == "not_found"


def test_non_member_is_denied_project_access(client):
    admin = _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    pid = client.post(f"{API}/admin/projects", headers=admin, json={"name": "Private"}).json()["id"]
    other = client.post(f"{API}/admin/projects", headers=admin, json={"name": "Other"}).json()["id"]
    outsider = _create_member(client, admin, other, name="Olivia", role="user")

    response = client.get(f"{API}/projects/{pid}/suggestions", headers=outsider)

    assert response.status_code == 403
    assert response.json()["error_code"] == "PROJECT_ACCESS_DENIED"

    forbidden_admin = client.get(f"{API}/admin/users", headers=outsider)
    assert forbidden_admin.status_code == 403
    assert forbidden_admin.json()["kind"] == "forbidden"


@pytest.mark.parametrize("value", [True, False, 1.0, "1", 2, None])
def test_vote_value_must_be_an_exact_integer(client, value):
    admin = _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    pid = client.post(f"{API}/admin/projects", headers=admin, json={"name": "Votes"}).json()["id"]
    sid = client.post(
        f"{API}/projects/{pid}/suggestions",
        headers=admin,
        json={"title": "Dark mode", "description": "Easier on the eyes"},
    ).json()["id"]

    response = client.put(
        f"{API}/projects/{pid}/suggestions/{sid}/vote", headers=admin, json={"value": value}
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "VALIDATION_FAILED"
    suggestion = client.get(f"{API}/projects/{pid}/suggestions/{sid}", headers=admin).json()
    assert (suggestion["score"], suggestion["upvotes_count"]) == (0, 0)


@pytest.mark.parametrize(
    "body",
    [
        {"is_done": "yes"},
        {"is_done": 1},
        {"order_index": "2"},
        {"order_index": 1.5},
        {"order_index": True},
    ],
)
def test_task_update_rejects_coerced_values(client, body):
    admin = _login(client, ADMIN_EMAIL, ADMIN_PASSWORD)
    pid = client.post(f"{API}/admin/projects", headers=admin, json={"name": "Tasks"}).json()["id"]
    bid = client.post(
        f"{API}/projects/{pid}/backlog", headers=admin, json={"title": "Rotate keys"}
    ).json()["id"]
    tasks_url = f"{API}/projects/{pid}/backlog/{bid}/tasks"
    task = client.post(tasks_url, headers=admin, json={"stack": "infra", "title": "Vault"}).json()

    response = client.patch(f"{tasks_url}/{task['task']['id']}", headers=admin, json=body)

    assert response.status_code == 422
    assert response.json()["kind"] == "validation"
    item = client.get(f"{API}/projects/{pid}/backlog/{bid}", headers=admin).json()
    assert item["tasks"][0]["is_done"] is False
    assert item["tasks"][0]["order_index"] == 0


def test_malformed_request_id_is_replaced(client):
    response = client.get(f"{API}/system/health", headers={"X-Request-ID": "two words"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] != "two words"
    assert len(response.headers["X-Request-ID"]) == 32
