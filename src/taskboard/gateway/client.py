# src/taskboard/gateway/client.py

"""
Remote gateway: one coroutine per endpoint of the task service.

- Requests carry a bearer credential when one is available (explicit argument,
  else the locally cached token from settings); no credential is a valid,
  anonymous call.
- Responses are normalized (gateway.normalize) before they leave this module.
- Failures are classified, never retried:
    * non-2xx          -> GatewayRejectedError(status, detail)
    * no response      -> GatewayTransportError
- Nothing is cached here; that is the search coordinator's job.

Cancelling the awaiting asyncio task aborts the underlying HTTP request.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

import httpx

from ..config import Settings
from ..errors import GatewayRejectedError, GatewayTransportError
from ..tasks.task_models import NewTask, Project, SearchedUser, Task, TaskChanges, TaskPatch, TaskStatus, UserRef
from . import normalize

logger = logging.getLogger(__name__)


def make_timeout(connect_s: float, read_s: float) -> httpx.Timeout:
    return httpx.Timeout(connect=connect_s, read=read_s, write=10.0, pool=connect_s)


def _error_detail(response: httpx.Response) -> str:
    """
    Human-readable detail from an error body.

    FastAPI-style bodies: {"detail": "..."} or {"detail": [{"msg": "..."}, ...]}.
    """
    fallback = f"HTTP error! status: {response.status_code}"
    try:
        body = response.json()
    except ValueError:
        return fallback
    if not isinstance(body, Mapping):
        return fallback
    detail = body.get("detail")
    if isinstance(detail, str) and detail.strip():
        return detail.strip()
    if isinstance(detail, list):
        msgs = [str(d.get("msg")) for d in detail if isinstance(d, Mapping) and d.get("msg")]
        if msgs:
            return "; ".join(msgs)
    message = body.get("message")
    if isinstance(message, str) and message.strip():
        return message.strip()
    return fallback


class RemoteGateway:
    """Async HTTP client for the task/project/user API."""

    def __init__(
        self,
        base_url: str,
        *,
        default_token: str | None = None,
        timeout: httpx.Timeout | float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._default_token = default_token or None
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout if timeout is not None else make_timeout(5.0, 20.0),
            transport=transport,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    @classmethod
    def from_settings(cls, settings: Settings, **kwargs: Any) -> RemoteGateway:
        return cls(
            settings.api_base_url,
            default_token=settings.api_token,
            timeout=make_timeout(settings.connect_timeout_seconds, settings.read_timeout_seconds),
            **kwargs,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> RemoteGateway:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    # ---- low-level helpers ----

    def _auth_headers(self, token: str | None) -> dict[str, str]:
        token = token or self._default_token
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        token: str | None = None,
        json: Any = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        headers = self._auth_headers(token)
        logger.debug("%s %s op=%s auth=%s", method, path, operation, bool(headers))
        try:
            response = await self._client.request(method, path, json=json, params=params, headers=headers)
        except httpx.TransportError as e:
            logger.info("Gateway: no response op=%s (%s)", operation, e.__class__.__name__)
            raise GatewayTransportError(
                f"Could not reach the task service ({e.__class__.__name__}).", operation=operation
            ) from e

        if not response.is_success:
            detail = _error_detail(response)
            logger.info("Gateway: rejected op=%s status=%s detail=%s", operation, response.status_code, detail)
            raise GatewayRejectedError(response.status_code, detail, operation=operation)

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise GatewayRejectedError(
                response.status_code, "The task service returned an unreadable response.", operation=operation
            ) from e

    # ---- health ----

    async def check_health(self) -> bool:
        try:
            await self._request("GET", "/health", operation="health")
        except (GatewayRejectedError, GatewayTransportError):
            return False
        return True

    # ---- projects ----

    async def list_projects(self, token: str | None = None) -> list[Project]:
        body = await self._request("GET", "/projects/get_projects", operation="list_projects", token=token)
        if not isinstance(body, list):
            return []
        return [p for p in (normalize.project_from_wire(x) for x in body) if p is not None]

    async def list_project_collaborators(self, project_id: str, token: str | None = None) -> list[UserRef]:
        body = await self._request(
            "GET",
            f"/projects/get_project_collaborators/{project_id}",
            operation="list_project_collaborators",
            token=token,
        )
        return list(normalize.assignees_from_wire(body))

    # ---- tasks ----

    async def list_tasks_by_project(self, project_id: str, token: str | None = None) -> list[Task]:
        body = await self._request(
            "GET",
            f"/tasks/get_tasks_by_project/{project_id}",
            operation="list_tasks_by_project",
            token=token,
        )
        return normalize.tasks_from_wire(body, project_id=project_id)

    async def list_assigned_tasks(self, token: str | None = None) -> list[Task]:
        body = await self._request("GET", "/tasks/get_assigned_tasks", operation="list_assigned_tasks", token=token)
        return normalize.tasks_from_wire(body)

    async def create_task(self, data: NewTask, token: str | None = None) -> Task:
        now = datetime.now(UTC)
        body = await self._request(
            "POST",
            "/tasks/create_task",
            operation="create_task",
            token=token,
            json=normalize.new_task_to_wire(data),
        )
        task = normalize.task_from_wire(body, now=now, submitted=data) if isinstance(body, Mapping) else None
        if task is None:
            raise GatewayRejectedError(200, "The task service did not return the created task.", operation="create_task")
        return task

    async def update_task_status(self, task_id: str, status: TaskStatus, token: str | None = None) -> None:
        await self._request(
            "PATCH",
            f"/tasks/update_task_status/{task_id}",
            operation="update_task_status",
            token=token,
            json={"status": normalize.normalize_status(status).value},
        )

    async def update_task_details(self, task_id: str, patch: TaskPatch, token: str | None = None) -> TaskChanges:
        now = datetime.now(UTC)
        body = await self._request(
            "PATCH",
            f"/tasks/update_task_details/{task_id}",
            operation="update_task_details",
            token=token,
            json=normalize.task_patch_to_wire(patch, now=now),
        )
        return normalize.task_changes_from_wire(body, task_id=task_id, now=now)

    async def add_assignees(self, task_id: str, user_ids: Sequence[str], token: str | None = None) -> None:
        await self._request(
            "POST",
            f"/tasks/add_assignees_to_task/{task_id}",
            operation="add_assignees",
            token=token,
            json={"user_ids": list(user_ids)},
        )

    # ---- users ----

    async def search_assignable_users(
        self,
        params: Mapping[str, str],
        token: str | None = None,
    ) -> list[SearchedUser]:
        """`params`: any of username / email / department_id, plus optional task_id to exclude its assignees."""
        clean = {k: str(v) for k, v in params.items() if v not in (None, "")}
        body = await self._request(
            "GET",
            "/tasks/search_users_to_assign_tasks",
            operation="search_assignable_users",
            token=token,
            params=clean,
        )
        return normalize.searched_users_from_wire(body)
