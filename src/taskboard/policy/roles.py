# src/taskboard/policy/roles.py

"""
Role policy.

Pure functions mapping a caller role to:
- a capability set (what the UI may offer),
- a task fetch strategy (whole project vs. tasks assigned to the caller),
- a user-search scope (which departments/roles show up when assigning).

Every function is total: unknown or malformed roles fall back to the most
restrictive answer instead of raising. This is UX policy only; the remote
authority enforces the real rules.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum


class Role(StrEnum):
    """Closed, ordered role hierarchy (highest first)."""

    CEO = "CEO"
    MANAGER = "Manager"
    ASSISTANT_MANAGER = "Assistant Manager"
    DEVELOPER = "Developer"
    INTERN = "Intern"

    @property
    def rank(self) -> int:
        return _HIERARCHY.index(self)


_HIERARCHY: tuple[Role, ...] = (
    Role.CEO,
    Role.MANAGER,
    Role.ASSISTANT_MANAGER,
    Role.DEVELOPER,
    Role.INTERN,
)

_ROLE_ALIASES: dict[str, Role] = {
    "ceo": Role.CEO,
    "manager": Role.MANAGER,
    "assistant_manager": Role.ASSISTANT_MANAGER,
    "asst_manager": Role.ASSISTANT_MANAGER,
    "developer": Role.DEVELOPER,
    "dev": Role.DEVELOPER,
    "intern": Role.INTERN,
}

_SEP_RE = re.compile(r"[_\s\-]+")


class FetchStrategy(StrEnum):
    ASSIGNED = "assigned"
    PROJECT = "project"


class Permission(StrEnum):
    CREATE_TASK = "create_task"
    EDIT_TASK = "edit_task"
    ASSIGN_USERS = "assign_users"
    VIEW_ALL_PROJECTS = "view_all_projects"
    VIEW_ALL_TASKS = "view_all_tasks"
    UPDATE_TASK_STATUS = "update_task_status"
    SEARCH_ALL_USERS = "search_all_users"
    SEARCH_DEPARTMENT_USERS = "search_department_users"


@dataclass(frozen=True, slots=True)
class Capabilities:
    can_create_task: bool = False
    can_edit_task: bool = False
    can_assign_users: bool = False
    can_view_all_projects: bool = False
    can_search_all_users: bool = False
    can_search_department_users: bool = False
    can_view_all_tasks: bool = False
    # Every role may move its own tasks; the server decides which ones.
    can_update_task_status: bool = True

    @property
    def can_access_user_search(self) -> bool:
        return self.can_search_all_users or self.can_search_department_users


@dataclass(frozen=True, slots=True)
class SearchScope:
    can_search_all_departments: bool
    department_restriction: bool
    allowed_roles: tuple[Role, ...]

    def allows(self, role: Role | None) -> bool:
        return role is not None and role in self.allowed_roles


RESTRICTED = Capabilities()

# Unknown roles: nothing at all, not even status moves.
DENY_ALL = Capabilities(can_update_task_status=False)

_CAPABILITIES: dict[Role, Capabilities] = {
    Role.CEO: Capabilities(
        can_create_task=True,
        can_edit_task=True,
        can_assign_users=True,
        can_view_all_projects=True,
        can_search_all_users=True,
        can_search_department_users=True,
        can_view_all_tasks=True,
    ),
    Role.MANAGER: Capabilities(
        can_create_task=True,
        can_edit_task=True,
        can_assign_users=True,
        can_view_all_projects=True,
        can_search_all_users=True,
        can_search_department_users=True,
        can_view_all_tasks=True,
    ),
    # Creation depends on the project being assigned to them, see can_create_task().
    Role.ASSISTANT_MANAGER: Capabilities(
        can_create_task=False,
        can_edit_task=True,
        can_assign_users=True,
        can_search_department_users=True,
        can_view_all_tasks=True,
    ),
    Role.DEVELOPER: RESTRICTED,
    Role.INTERN: RESTRICTED,
}

_NO_SEARCH = SearchScope(can_search_all_departments=False, department_restriction=True, allowed_roles=())

_SEARCH_SCOPES: dict[Role, SearchScope] = {
    Role.CEO: SearchScope(
        can_search_all_departments=True,
        department_restriction=False,
        allowed_roles=(Role.ASSISTANT_MANAGER, Role.DEVELOPER, Role.INTERN),
    ),
    Role.MANAGER: SearchScope(
        can_search_all_departments=True,
        department_restriction=False,
        allowed_roles=(Role.ASSISTANT_MANAGER, Role.DEVELOPER, Role.INTERN),
    ),
    Role.ASSISTANT_MANAGER: SearchScope(
        can_search_all_departments=False,
        department_restriction=True,
        allowed_roles=(Role.DEVELOPER, Role.INTERN),
    ),
    Role.DEVELOPER: _NO_SEARCH,
    Role.INTERN: _NO_SEARCH,
}

_INVITABLE: dict[Role, tuple[Role, ...]] = {
    Role.CEO: (Role.MANAGER, Role.ASSISTANT_MANAGER, Role.DEVELOPER, Role.INTERN),
    Role.MANAGER: (Role.ASSISTANT_MANAGER, Role.DEVELOPER, Role.INTERN),
    Role.ASSISTANT_MANAGER: (Role.DEVELOPER, Role.INTERN),
    Role.DEVELOPER: (),
    Role.INTERN: (),
}


def normalize_role(raw: object) -> Role | None:
    """
    Map any spelling of a role to Role.

    "assistant_manager", "Assistant Manager" and "ASSISTANT-MANAGER" are the same role.
    Returns None for anything unrecognized (including non-strings).
    """
    if isinstance(raw, Role):
        return raw
    if not isinstance(raw, str):
        return None
    key = _SEP_RE.sub("_", raw.strip().lower()).strip("_")
    if not key:
        return None
    return _ROLE_ALIASES.get(key)


def fetch_strategy(role: object) -> FetchStrategy:
    r = normalize_role(role)
    if r in (Role.CEO, Role.MANAGER, Role.ASSISTANT_MANAGER):
        return FetchStrategy.PROJECT
    return FetchStrategy.ASSIGNED


def capabilities(role: object) -> Capabilities:
    r = normalize_role(role)
    if r is None:
        return DENY_ALL
    return _CAPABILITIES[r]


def search_scope(role: object) -> SearchScope:
    r = normalize_role(role)
    if r is None:
        return _NO_SEARCH
    return _SEARCH_SCOPES[r]


def can_create_task(role: object, *, is_assigned_project: bool = False) -> bool:
    """Assistant managers may create tasks only inside projects assigned to them."""
    r = normalize_role(role)
    if r is Role.ASSISTANT_MANAGER:
        return bool(is_assigned_project)
    return capabilities(r).can_create_task


def can_invite_role(role: object, target: object) -> bool:
    r = normalize_role(role)
    t = normalize_role(target)
    if r is None or t is None:
        return False
    return t in _INVITABLE[r]


def invitable_roles(role: object) -> tuple[Role, ...]:
    r = normalize_role(role)
    return _INVITABLE[r] if r is not None else ()


def can_assign_role(role: object, target: object) -> bool:
    """Whether `role` may put a user with role `target` on a task."""
    return search_scope(role).allows(normalize_role(target))


def should_show_project_selector(role: object) -> bool:
    return fetch_strategy(role) is FetchStrategy.PROJECT


def has_permission(role: object, permission: str | Permission, *, is_assigned_project: bool = False) -> bool:
    try:
        perm = Permission(permission)
    except ValueError:
        return False

    caps = capabilities(role)
    if perm is Permission.CREATE_TASK:
        return can_create_task(role, is_assigned_project=is_assigned_project)
    if perm is Permission.EDIT_TASK:
        return caps.can_edit_task
    if perm is Permission.ASSIGN_USERS:
        return caps.can_assign_users
    if perm is Permission.VIEW_ALL_PROJECTS:
        return caps.can_view_all_projects
    if perm is Permission.VIEW_ALL_TASKS:
        return caps.can_view_all_tasks
    if perm is Permission.UPDATE_TASK_STATUS:
        return caps.can_update_task_status
    if perm is Permission.SEARCH_ALL_USERS:
        return caps.can_search_all_users
    return caps.can_search_department_users


def permissions_for(role: object, *, is_assigned_project: bool = False) -> frozenset[Permission]:
    return frozenset(
        p for p in Permission if has_permission(role, p, is_assigned_project=is_assigned_project)
    )

