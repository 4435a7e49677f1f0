# tests/test_gateway.py

from __future__ import annotations

import json

import httpx
import pytest

from taskboard.errors import GatewayRejectedError, GatewayTransportError, friendly_error_message
from taskboard.gateway.client import RemoteGateway
from taskboard.tasks.task_models import NewTask, TaskPatch, TaskStatus


class Recorder:
    """httpx.MockTransport handler that records requests and replays canned responses."""

    def __init__(self, responses: dict[tuple[str, str], httpx.Response] | None = None) -> None:
        self.responses = responses or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        resp = self.responses.get((request.method, request.url.path))
        if resp is None:
            return httpx.Response(404, json={"detail": "Not Found"})
        return resp


def make_gateway(handler, token: str | None = None) -> RemoteGateway:
    return RemoteGateway("http://tasks.test/", default_token=token, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_bearer_token_from_argument_or_default() -> None:
    rec = Recorder({("GET", "/tasks/get_assigned_tasks"): httpx.Response(200, json=[])})
    async with make_gateway(rec, token="cached") as gw:
        await gw.list_assigned_tasks()
        await gw.list_assigned_tasks("explicit")
    assert rec.requests[0].headers["Authorization"] == "Bearer cached"
    assert rec.requests[1].headers["Authorization"] == "Bearer explicit"


@pytest.mark.asyncio
async def test_anonymous_call_has_no_authorization_header() -> None:
    rec = Recorder({("GET", "/projects/get_projects"): httpx.Response(200, json=[{"project_id": "P1", "name": "Web"}])})
    async with make_gateway(rec) as gw:
        projects = await gw.list_projects()
    assert "Authorization" not in rec.requests[0].headers
    assert [p.id for p in projects] == ["P1"]


@pytest.mark.asyncio
async def test_tasks_by_project_are_normalized() -> None:
    body = [
        {"task": {"task_id": "T1", "title": "A", "status": "In Progress"}, "assignees": [{"user_id": "U1", "name": "Ann"}]},
        {"id": "T2", "name": "B", "status": "completed"},
    ]
    rec = Recorder({("GET", "/tasks/get_tasks_by_project/P1"): httpx.Response(200, json=body)})
    async with make_gateway(rec) as gw:
        tasks = await gw.list_tasks_by_project("P1")
    assert [(t.id, t.status) for t in tasks] == [("T1", TaskStatus.IN_PROGRESS), ("T2", TaskStatus.DONE)]
    assert all(t.project_id == "P1" for t in tasks)
    assert tasks[0].assignees[0].name == "Ann"


@pytest.mark.asyncio
async def test_rejection_carries_status_and_detail() -> None:
    rec = Recorder(
        {
            ("PATCH", "/tasks/update_task_status/T1"): httpx.Response(403, json={"detail": "Not your task"}),
            ("GET", "/tasks/get_assigned_tasks"): httpx.Response(500, text="<html>oops</html>"),
            ("POST", "/tasks/create_task"): httpx.Response(
                422, json={"detail": [{"msg": "title required"}, {"msg": "project_id required"}]}
            ),
        }
    )
    async with make_gateway(rec) as gw:
        with pytest.raises(GatewayRejectedError) as forbidden:
            await gw.update_task_status("T1", TaskStatus.DONE)
        with pytest.raises(GatewayRejectedError) as crashed:
            await gw.list_assigned_tasks()
        with pytest.raises(GatewayRejectedError) as invalid:
            await gw.create_task(NewTask(title="x", project_id="P1"))

    assert forbidden.value.status == 403
    assert forbidden.value.detail == "Not your task"
    assert forbidden.value.is_auth_error
    assert forbidden.value.operation == "update_task_status"
    assert json.loads(rec.requests[0].content) == {"status": "done"}

    assert crashed.value.detail == "HTTP error! status: 500"
    assert invalid.value.detail == "title required; project_id required"


@pytest.mark.asyncio
async def test_transport_failure_is_distinguished() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with make_gateway(handler) as gw:
        with pytest.raises(GatewayTransportError) as err:
            await gw.list_assigned_tasks()
        assert await gw.check_health() is False

    assert not isinstance(err.value, GatewayRejectedError)
    assert "unreachable" in friendly_error_message(err.value)


@pytest.mark.asyncio
async def test_create_task_accepts_wrapper_response() -> None:
    created = {"task": {"task_id": "T9", "title": "New", "status": "todo", "project_id": "P1"}, "assignees": []}
    rec = Recorder({("POST", "/tasks/create_task"): httpx.Response(201, json=created)})
    async with make_gateway(rec) as gw:
        task = await gw.create_task(NewTask(title="New", project_id="P1", assignee_ids=("U1",)))
    assert task.id == "T9"
    sent = json.loads(rec.requests[0].content)
    assert sent["assignee_ids"] == ["U1"]
    assert sent["project_id"] == "P1"


@pytest.mark.asyncio
async def test_update_details_returns_only_returned_fields() -> None:
    rec = Recorder({("PATCH", "/tasks/update_task_details/T1"): httpx.Response(200, json={"title": "Renamed"})})
    async with make_gateway(rec) as gw:
        changes = await gw.update_task_details("T1", TaskPatch(title="Renamed"))
    assert changes.fields == {"title": "Renamed"}
    sent = json.loads(rec.requests[0].content)
    assert sent["title"] == "Renamed"
    assert "updated_at" in sent
    assert "description" not in sent


@pytest.mark.asyncio
async def test_search_and_assign_wire_format() -> None:
    rec = Recorder(
        {
            ("GET", "/tasks/search_users_to_assign_tasks"): httpx.Response(
                200, json=[{"user_id": "U3", "username": "john", "role_str": "Developer", "department_name": "Eng"}]
            ),
            ("POST", "/tasks/add_assignees_to_task/T1"): httpx.Response(200, json={"message": "ok"}),
        }
    )
    async with make_gateway(rec) as gw:
        users = await gw.search_assignable_users({"username": "jo", "task_id": "T1", "email": ""})
        await gw.add_assignees("T1", ["U3", "U4"])

    params = rec.requests[0].url.params
    assert params["username"] == "jo"
    assert params["task_id"] == "T1"
    assert "email" not in params
    assert users[0].department_name == "Eng"
    assert json.loads(rec.requests[1].content) == {"user_ids": ["U3", "U4"]}


@pytest.mark.asyncio
async def test_health_check() -> None:
    ok = Recorder({("GET", "/health"): httpx.Response(200, json={"status": "ok"})})
    async with make_gateway(ok) as gw:
        assert await gw.check_health() is True
    down = Recorder({("GET", "/health"): httpx.Response(503)})
    async with make_gateway(down) as gw:
        assert await gw.check_health() is False
