# src/taskboard/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import StrEnum
from typing import Any

from ..policy.roles import Role


class TaskStatus(StrEnum):
    """
    Board column a task lives in.

    Wire values vary between backend versions ("In Progress", "completed", ...);
    gateway.normalize folds all of them into these three.
    """

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


@dataclass(frozen=True, slots=True)
class UserRef:
    """Lightweight assignee reference as it appears on a task."""

    id: str
    name: str
    email: str = ""
    role: Role | None = None
    avatar: str | None = None


@dataclass(frozen=True, slots=True)
class SearchedUser:
    """User returned by the assignable-users search (carries department info)."""

    id: str
    username: str
    email: str
    role: Role | None
    department_name: str
    organization_id: str = ""


@dataclass(frozen=True, slots=True)
class Project:
    id: str
    name: str
    description: str | None = None
    # client, dates, status, urgency, budget... carried for display, never interpreted.
    meta: dict[str, Any] = field(default_factory=dict, compare=False)


@dataclass(frozen=True, slots=True)
class Task:
    id: str
    title: str
    status: TaskStatus
    project_id: str
    created_at: datetime
    updated_at: datetime
    description: str = ""
    assignees: tuple[UserRef, ...] = ()
    start_date: datetime | None = None
    due_date: datetime | None = None
    priority: str = "medium"
    labels: str = ""

    @property
    def completed(self) -> bool:
        return self.status is TaskStatus.DONE

    @property
    def label_list(self) -> list[str]:
        return [p.strip() for p in self.labels.split(",") if p.strip()]

    def with_status(self, status: TaskStatus) -> Task:
        return replace(self, status=status)


@dataclass(frozen=True, slots=True)
class NewTask:
    """Input of TaskStore.create_task."""

    title: str
    project_id: str | None
    description: str = ""
    start_date: datetime | None = None
    due_date: datetime | None = None
    assignee_ids: tuple[str, ...] = ()
    priority: str = "medium"
    labels: str = ""
    status: TaskStatus = TaskStatus.TODO


@dataclass(frozen=True, slots=True)
class TaskPatch:
    """
    Input of TaskStore.update_details.

    None means "leave unchanged"; only the fields that are set go on the wire.
    """

    title: str | None = None
    description: str | None = None
    start_date: datetime | None = None
    due_date: datetime | None = None
    priority: str | None = None
    labels: str | None = None

    def is_empty(self) -> bool:
        return all(
            v is None
            for v in (self.title, self.description, self.start_date, self.due_date, self.priority, self.labels)
        )


def dedupe_assignees(users: list[UserRef] | tuple[UserRef, ...]) -> tuple[UserRef, ...]:
    """Keep the first occurrence of each user id, preserving order."""
    seen: set[str] = set()
    out: list[UserRef] = []
    for u in users:
        if u.id in seen:
            continue
        seen.add(u.id)
        out.append(u)
    return tuple(out)


@dataclass(frozen=True, slots=True)
class TaskChanges:
    """Canonical fields returned by a partial update; absent fields are simply not in `fields`."""

    task_id: str
    fields: dict[str, Any]

    def apply(self, task: Task) -> Task:
        allowed = {k: v for k, v in self.fields.items() if k not in ("id", "completed")}
        if not allowed:
            return task
        return replace(task, **allowed)
