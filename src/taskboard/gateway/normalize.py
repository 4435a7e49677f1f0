# src/taskboard/gateway/normalize.py

"""
Wire <-> domain normalization.

The backend has gone through several field-naming conventions (task_id vs id,
title vs name, nested {task, assignees} wrappers vs flat records, ...).
Everything that knows about those variants lives here, as one explicit
candidate table per field; the rest of the engine only sees the canonical
dataclasses from tasks.task_models.

Rules:
- the first candidate key holding a non-empty value wins,
- unknown status values fold to "todo",
- absent start/due dates stay absent; created/updated default to the call instant.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from ..policy.roles import Role, normalize_role
from ..tasks.task_models import (
    NewTask,
    Project,
    SearchedUser,
    Task,
    TaskChanges,
    TaskPatch,
    TaskStatus,
    UserRef,
    dedupe_assignees,
)

logger = logging.getLogger(__name__)

# ---- field candidate tables ----

TASK_FIELDS: dict[str, tuple[str, ...]] = {
    "id": ("task_id", "id", "taskId"),
    "title": ("title", "name"),
    "description": ("description",),
    "status": ("status",),
    "project_id": ("project_id", "projectId"),
    "priority": ("priority", "task_priority"),
    "labels": ("labels", "task_labels", "tags"),
    "start_date": ("start_date", "startDate"),
    "due_date": ("due_date", "dueDate"),
    "created_at": ("created_at", "createdAt"),
    "updated_at": ("updated_at", "updatedAt"),
    "assignees": ("assignees", "assigned_users"),
}

USER_FIELDS: dict[str, tuple[str, ...]] = {
    "id": ("user_id", "id"),
    "name": ("name", "username", "full_name"),
    "username": ("username", "name", "full_name"),
    "email": ("email",),
    "role": ("role_str", "role"),
    "avatar": ("avatar", "profile_picture"),
    "department_name": ("department_name", "department"),
    "organization_id": ("organization_id",),
}

PROJECT_FIELDS: dict[str, tuple[str, ...]] = {
    "id": ("project_id", "id"),
    "name": ("title", "name"),
    "description": ("description",),
}

STATUS_ALIASES: dict[str, TaskStatus] = {
    "todo": TaskStatus.TODO,
    "to_do": TaskStatus.TODO,
    "pending": TaskStatus.TODO,
    "open": TaskStatus.TODO,
    "new": TaskStatus.TODO,
    "in_progress": TaskStatus.IN_PROGRESS,
    "inprogress": TaskStatus.IN_PROGRESS,
    "working": TaskStatus.IN_PROGRESS,
    "active": TaskStatus.IN_PROGRESS,
    "done": TaskStatus.DONE,
    "completed": TaskStatus.DONE,
    "finished": TaskStatus.DONE,
    "closed": TaskStatus.DONE,
}

DEFAULT_TITLE = "Untitled Task"
DEFAULT_PRIORITY = "medium"
DEFAULT_USER_NAME = "Unknown User"
DEFAULT_DEPARTMENT = "Unknown Department"

_STATUS_SEP_RE = re.compile(r"[_\s\-]+")


def _is_empty(v: Any) -> bool:
    return v is None or (isinstance(v, str) and v.strip() == "")


def pick(record: Mapping[str, Any], keys: Iterable[str], default: Any = None) -> Any:
    """First non-empty value among `keys`."""
    for k in keys:
        v = record.get(k)
        if not _is_empty(v):
            return v
    return default


def _str_or(v: Any, default: str = "") -> str:
    if _is_empty(v):
        return default
    return str(v)


def normalize_status(raw: Any) -> TaskStatus:
    """
    Fold any wire status into todo/in_progress/done.

    Case and separators are ignored ("In Progress", "in-progress", "IN_PROGRESS").
    Idempotent: normalize_status(normalize_status(x)) == normalize_status(x).
    """
    if isinstance(raw, TaskStatus):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return TaskStatus.TODO
    key = _STATUS_SEP_RE.sub("_", raw.strip().lower())
    return STATUS_ALIASES.get(key, TaskStatus.TODO)


def parse_status(raw: Any) -> TaskStatus | None:
    """Strict variant for user input: None instead of folding unknown values to todo."""
    if isinstance(raw, TaskStatus):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    return STATUS_ALIASES.get(_STATUS_SEP_RE.sub("_", raw.strip().lower()))


def parse_instant(raw: Any) -> datetime | None:
    """ISO-8601 string (or datetime) -> aware datetime. Naive values are read as UTC."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        dt = raw
    elif isinstance(raw, str):
        s = raw.strip()
        if not s:
            return None
        if s.endswith(("Z", "z")):
            s = s[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(s)
        except ValueError:
            logger.debug("Unparseable instant on the wire: %r", raw)
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def format_instant(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat().replace("+00:00", "Z")


def _labels(raw: Any) -> str:
    if isinstance(raw, (list, tuple)):
        return ", ".join(str(x).strip() for x in raw if not _is_empty(x))
    return _str_or(raw)


# ---- users ----


def user_ref_from_wire(raw: Any) -> UserRef | None:
    if isinstance(raw, str) and raw.strip():
        return UserRef(id=raw.strip(), name=raw.strip())
    if not isinstance(raw, Mapping):
        return None
    uid = pick(raw, USER_FIELDS["id"])
    if _is_empty(uid):
        return None
    return UserRef(
        id=str(uid),
        name=_str_or(pick(raw, USER_FIELDS["name"]), DEFAULT_USER_NAME),
        email=_str_or(pick(raw, USER_FIELDS["email"])),
        role=normalize_role(pick(raw, USER_FIELDS["role"])),
        avatar=pick(raw, USER_FIELDS["avatar"]),
    )


def assignees_from_wire(raw: Any) -> tuple[UserRef, ...]:
    if not isinstance(raw, (list, tuple)):
        return ()
    refs = [r for r in (user_ref_from_wire(x) for x in raw) if r is not None]
    return dedupe_assignees(refs)


def searched_user_from_wire(raw: Any) -> SearchedUser | None:
    if not isinstance(raw, Mapping):
        return None
    uid = pick(raw, USER_FIELDS["id"])
    if _is_empty(uid):
        return None
    role_raw = pick(raw, USER_FIELDS["role"])
    return SearchedUser(
        id=str(uid),
        username=_str_or(pick(raw, USER_FIELDS["username"]), DEFAULT_USER_NAME),
        email=_str_or(pick(raw, USER_FIELDS["email"])),
        # A missing role means a plain developer account on every backend we know.
        role=Role.DEVELOPER if _is_empty(role_raw) else normalize_role(role_raw),
        department_name=_str_or(pick(raw, USER_FIELDS["department_name"]), DEFAULT_DEPARTMENT),
        organization_id=_str_or(pick(raw, USER_FIELDS["organization_id"])),
    )


def searched_users_from_wire(body: Any) -> list[SearchedUser]:
    if isinstance(body, Mapping):
        body = body.get("users", [])
    if not isinstance(body, list):
        return []
    return [u for u in (searched_user_from_wire(x) for x in body) if u is not None]


# ---- projects ----


def project_from_wire(raw: Any) -> Project | None:
    if not isinstance(raw, Mapping):
        return None
    pid = pick(raw, PROJECT_FIELDS["id"])
    if _is_empty(pid):
        return None
    known = {k for keys in PROJECT_FIELDS.values() for k in keys}
    return Project(
        id=str(pid),
        name=_str_or(pick(raw, PROJECT_FIELDS["name"]), str(pid)),
        description=pick(raw, PROJECT_FIELDS["description"]),
        meta={k: v for k, v in raw.items() if k not in known},
    )


# ---- tasks ----


def _unwrap(raw: Mapping[str, Any]) -> tuple[Mapping[str, Any], Any]:
    """
    Accept both {task: {...}, assignees: [...]} and flat task records.

    Returns (task_record, assignees_raw).
    """
    inner = raw.get("task")
    if isinstance(inner, Mapping):
        assignees = raw.get("assignees")
        if assignees is None:
            assignees = pick(inner, TASK_FIELDS["assignees"])
        return inner, assignees
    return raw, pick(raw, TASK_FIELDS["assignees"])


def task_from_wire(
    raw: Mapping[str, Any],
    *,
    project_id: str | None = None,
    now: datetime | None = None,
    submitted: NewTask | None = None,
) -> Task | None:
    """
    Build a canonical Task from any known wire shape.

    `project_id` fills in records that omit their project (project listings).
    `submitted` fills in fields a creation response leaves out.
    """
    if not isinstance(raw, Mapping):
        return None
    record, assignees_raw = _unwrap(raw)

    tid = pick(record, TASK_FIELDS["id"])
    if _is_empty(tid):
        tid = pick(raw, TASK_FIELDS["id"])
    if _is_empty(tid):
        return None

    now = now or datetime.now(UTC)
    sub = submitted

    title = pick(record, TASK_FIELDS["title"], sub.title if sub else None)
    description = pick(record, TASK_FIELDS["description"], sub.description if sub else None)
    status_raw = pick(record, TASK_FIELDS["status"], sub.status if sub else None)
    proj = pick(record, TASK_FIELDS["project_id"], project_id or (sub.project_id if sub else None))
    priority = pick(record, TASK_FIELDS["priority"], sub.priority if sub else None)
    labels = pick(record, TASK_FIELDS["labels"], sub.labels if sub else None)

    start = parse_instant(pick(record, TASK_FIELDS["start_date"]))
    due = parse_instant(pick(record, TASK_FIELDS["due_date"]))
    if sub is not None:
        start = start or sub.start_date
        due = due or sub.due_date

    return Task(
        id=str(tid),
        title=_str_or(title, DEFAULT_TITLE),
        description=_str_or(description),
        status=normalize_status(status_raw),
        project_id=_str_or(proj),
        created_at=parse_instant(pick(record, TASK_FIELDS["created_at"])) or now,
        updated_at=parse_instant(pick(record, TASK_FIELDS["updated_at"])) or now,
        assignees=assignees_from_wire(assignees_raw),
        start_date=start,
        due_date=due,
        priority=_str_or(priority, DEFAULT_PRIORITY),
        labels=_labels(labels),
    )


def tasks_from_wire(body: Any, *, project_id: str | None = None, now: datetime | None = None) -> list[Task]:
    if isinstance(body, Mapping):
        body = body.get("tasks", body.get("items", []))
    if not isinstance(body, list):
        return []
    now = now or datetime.now(UTC)
    out: list[Task] = []
    for raw in body:
        task = task_from_wire(raw, project_id=project_id, now=now)
        if task is None:
            logger.warning("Skipping task record without identity: %r", raw)
            continue
        out.append(task)
    return out


# Blank values of these read as missing (task_from_wire substitutes a default).
_DEFAULTED_TASK_FIELDS = frozenset({"title", "status", "project_id", "priority", "created_at", "updated_at"})


def task_fields_present(raw: Mapping[str, Any]) -> set[str]:
    """Canonical field names that a (possibly partial) wire record actually carries."""
    record, assignees_raw = _unwrap(raw)
    present: set[str] = set()
    for name, keys in TASK_FIELDS.items():
        if name == "assignees":
            continue
        empty = _is_empty if name in _DEFAULTED_TASK_FIELDS else (lambda v: v is None)
        if any(not empty(record.get(k)) for k in keys):
            present.add(name)
    if isinstance(assignees_raw, (list, tuple)):
        present.add("assignees")
    return present


def task_changes_from_wire(raw: Any, *, task_id: str, now: datetime | None = None) -> TaskChanges:
    """
    Partial update response -> only the canonical fields the server sent back.

    Fields missing from the response are not in the result, so merging it keeps
    the prior local values for them.
    """
    if not isinstance(raw, Mapping):
        return TaskChanges(task_id=task_id, fields={})
    present = task_fields_present(raw) - {"id"}
    full = task_from_wire({"task_id": task_id, **raw}, now=now)
    if full is None:
        return TaskChanges(task_id=task_id, fields={})
    return TaskChanges(task_id=task_id, fields={name: getattr(full, name) for name in sorted(present)})


# ---- writes ----


def new_task_to_wire(data: NewTask) -> dict[str, Any]:
    return {
        "title": data.title.strip(),
        "description": data.description or "",
        "project_id": data.project_id,
        "start_date": format_instant(data.start_date),
        "due_date": format_instant(data.due_date),
        "status": normalize_status(data.status).value,
        "priority": data.priority or DEFAULT_PRIORITY,
        "labels": data.labels or "",
        "assignee_ids": list(data.assignee_ids),
    }


def task_patch_to_wire(patch: TaskPatch, *, now: datetime | None = None) -> dict[str, Any]:
    body: dict[str, Any] = {}
    if patch.title is not None:
        body["title"] = patch.title
    if patch.description is not None:
        body["description"] = patch.description
    if patch.start_date is not None:
        body["start_date"] = format_instant(patch.start_date)
    if patch.due_date is not None:
        body["due_date"] = format_instant(patch.due_date)
    if patch.priority is not None:
        body["priority"] = patch.priority
    if patch.labels is not None:
        body["labels"] = patch.labels
    body["updated_at"] = format_instant(now or datetime.now(UTC))
    return body
