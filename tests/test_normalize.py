# tests/test_normalize.py

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from taskboard.gateway import normalize
from taskboard.policy.roles import Role
from taskboard.tasks.task_models import NewTask, TaskPatch, TaskStatus

NOW = datetime(2025, 3, 1, 9, 30, tzinfo=UTC)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("todo", TaskStatus.TODO),
        ("To Do", TaskStatus.TODO),
        ("pending", TaskStatus.TODO),
        ("In Progress", TaskStatus.IN_PROGRESS),
        ("in-progress", TaskStatus.IN_PROGRESS),
        ("IN_PROGRESS", TaskStatus.IN_PROGRESS),
        ("inprogress", TaskStatus.IN_PROGRESS),
        ("Completed", TaskStatus.DONE),
        ("closed", TaskStatus.DONE),
        ("blocked", TaskStatus.TODO),
        ("", TaskStatus.TODO),
        (None, TaskStatus.TODO),
        (3, TaskStatus.TODO),
    ],
)
def test_normalize_status_folds_and_is_idempotent(raw, expected) -> None:
    once = normalize.normalize_status(raw)
    assert once is expected
    assert normalize.normalize_status(once) is once
    assert normalize.normalize_status(once.value) is once


def test_parse_status_is_strict() -> None:
    assert normalize.parse_status("Done") is TaskStatus.DONE
    assert normalize.parse_status("blocked") is None
    assert normalize.parse_status(None) is None


def test_task_from_wrapper_shape() -> None:
    raw = {
        "task": {
            "task_id": 17,
            "name": "Ship it",
            "status": "Completed",
            "projectId": "P1",
            "task_priority": "high",
            "tags": ["release", " ", "ops"],
            "dueDate": "2025-04-01T00:00:00Z",
        },
        "assignees": [
            {"user_id": "U1", "username": "ann", "role_str": "developer"},
            {"user_id": "U1", "username": "ann again"},
            {"id": "U2"},
        ],
    }
    task = normalize.task_from_wire(raw, now=NOW)
    assert task is not None
    assert task.id == "17"
    assert task.title == "Ship it"
    assert task.status is TaskStatus.DONE
    assert task.completed
    assert task.project_id == "P1"
    assert task.priority == "high"
    assert task.labels == "release, ops"
    assert task.due_date == datetime(2025, 4, 1, tzinfo=UTC)
    assert task.start_date is None
    assert task.created_at == NOW and task.updated_at == NOW
    assert [a.id for a in task.assignees] == ["U1", "U2"]
    assert task.assignees[0].role is Role.DEVELOPER
    assert task.assignees[1].name == "Unknown User"


def test_task_from_flat_shape_uses_caller_project_and_defaults() -> None:
    task = normalize.task_from_wire({"id": "T5", "status": "weird"}, project_id="P9", now=NOW)
    assert task is not None
    assert task.title == "Untitled Task"
    assert task.priority == "medium"
    assert task.status is TaskStatus.TODO
    assert task.project_id == "P9"
    assert task.assignees == ()


def test_creation_response_with_only_identity_is_completed_from_submission() -> None:
    submitted = NewTask(
        title="Draft plan",
        project_id="P1",
        description="first pass",
        priority="low",
        labels="docs",
        due_date=datetime(2025, 5, 1, tzinfo=UTC),
    )
    task = normalize.task_from_wire({"task_id": "T77", "message": "created"}, now=NOW, submitted=submitted)
    assert task is not None
    assert (task.id, task.title, task.description) == ("T77", "Draft plan", "first pass")
    assert (task.project_id, task.priority, task.labels) == ("P1", "low", "docs")
    assert task.due_date == submitted.due_date


def test_task_without_identity_is_rejected_and_skipped_in_lists() -> None:
    assert normalize.task_from_wire({"title": "ghost"}) is None
    tasks = normalize.tasks_from_wire([{"title": "ghost"}, {"id": "T1"}], project_id="P1", now=NOW)
    assert [t.id for t in tasks] == ["T1"]
    assert normalize.tasks_from_wire({"tasks": [{"id": "T2"}]}, now=NOW)[0].id == "T2"
    assert normalize.tasks_from_wire("nonsense") == []


def test_parse_instant_variants() -> None:
    assert normalize.parse_instant("2025-01-02T03:04:05Z") == datetime(2025, 1, 2, 3, 4, 5, tzinfo=UTC)
    naive = normalize.parse_instant("2025-01-02T03:04:05")
    assert naive is not None and naive.tzinfo is UTC
    assert normalize.parse_instant("not a date") is None
    assert normalize.parse_instant("") is None
    assert normalize.format_instant(datetime(2025, 1, 2, tzinfo=UTC)) == "2025-01-02T00:00:00Z"


def test_searched_user_defaults() -> None:
    users = normalize.searched_users_from_wire(
        {"users": [{"user_id": "U1", "username": "joanna", "role_str": "Manager"}, {"id": "U2"}, {"no": "id"}]}
    )
    assert [u.id for u in users] == ["U1", "U2"]
    assert users[0].role is Role.MANAGER
    assert users[0].department_name == "Unknown Department"
    assert users[1].role is Role.DEVELOPER
    assert users[1].username == "Unknown User"


def test_project_passthrough_meta() -> None:
    project = normalize.project_from_wire({"project_id": "P1", "title": "Website", "budget": 1200, "client": "ACME"})
    assert project is not None
    assert project.name == "Website"
    assert project.meta == {"budget": 1200, "client": "ACME"}


def test_task_changes_contain_only_returned_fields() -> None:
    changes = normalize.task_changes_from_wire({"title": "Renamed", "status": "done"}, task_id="T1", now=NOW)
    assert changes.task_id == "T1"
    assert changes.fields == {"title": "Renamed", "status": TaskStatus.DONE}
    assert normalize.task_changes_from_wire(None, task_id="T1").fields == {}


def test_write_payloads() -> None:
    body = normalize.new_task_to_wire(NewTask(title="  New  ", project_id="P1", assignee_ids=("U1",)))
    assert body["title"] == "New"
    assert body["status"] == "todo"
    assert body["priority"] == "medium"
    assert body["start_date"] is None
    assert body["assignee_ids"] == ["U1"]

    patch = normalize.task_patch_to_wire(TaskPatch(title="X", labels=""), now=NOW)
    assert patch == {"title": "X", "labels": "", "updated_at": "2025-03-01T09:30:00Z"}


def test_blank_defaulted_fields_are_not_treated_as_returned() -> None:
    changes = normalize.task_changes_from_wire(
        {"title": "", "priority": "  ", "status": "", "description": ""}, task_id="T1", now=NOW
    )
    assert changes.fields == {"description": ""}
