# src/taskboard/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the engine.

The task store and the search coordinator depend on these Protocols instead of
the concrete HTTP gateway, so tests can plug in-memory fakes.
"""

from collections.abc import Callable, Mapping, Sequence
from typing import Protocol

from ..tasks.task_models import NewTask, Project, SearchedUser, Task, TaskChanges, TaskPatch, TaskStatus, UserRef


class TaskGateway(Protocol):
    """Remote task operations used by TaskStore."""

    async def list_tasks_by_project(self, project_id: str, token: str | None = None) -> list[Task]: ...
    async def list_assigned_tasks(self, token: str | None = None) -> list[Task]: ...
    async def create_task(self, data: NewTask, token: str | None = None) -> Task: ...
    async def update_task_status(self, task_id: str, status: TaskStatus, token: str | None = None) -> None: ...
    async def update_task_details(self, task_id: str, patch: TaskPatch, token: str | None = None) -> TaskChanges: ...
    async def add_assignees(self, task_id: str, user_ids: Sequence[str], token: str | None = None) -> None: ...


class UserSearchGateway(Protocol):
    """Assignable-user lookup used by SearchCoordinator."""

    async def search_assignable_users(
        self,
        params: Mapping[str, str],
        token: str | None = None,
    ) -> list[SearchedUser]: ...


class ProjectGateway(Protocol):
    async def list_projects(self, token: str | None = None) -> list[Project]: ...
    async def list_project_collaborators(self, project_id: str, token: str | None = None) -> list[UserRef]: ...


# Called with no arguments after every published state change.
StateListener = Callable[[], None]
