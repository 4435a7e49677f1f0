# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
import pytest_asyncio

from taskboard.core.session import SessionContext
from taskboard.policy.roles import Role
from taskboard.tasks.task_models import Project, TaskStatus
from taskboard.tasks.task_store import TaskStore

from .fakes import FakeGateway, make_task, make_user


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with create_engine().

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated from the environment.
    """
    return SimpleNamespace(
        app_name="taskboard-test",
        data_dir=tmp_path / "data",
        api_base_url="http://tasks.test",
        api_token=None,
        role="Manager",
        user_id="U1",
        department_name="Engineering",
        search_debounce_seconds=0.0,
        search_cache_ttl_seconds=300.0,
        search_cache_max_entries=10,
        console_enabled=False,
    )


@pytest.fixture()
def manager() -> SessionContext:
    return SessionContext(role="Manager", token="tok-manager", user_id="U1")


@pytest.fixture()
def developer() -> SessionContext:
    return SessionContext(role="Developer", token="tok-dev", user_id="U7")


@pytest.fixture()
def gateway() -> FakeGateway:
    """Project P1 with three tasks, P2 with one; the developer is assigned T2."""
    return FakeGateway(
        project_tasks={
            "P1": [
                make_task("T1", TaskStatus.TODO, title="Write login page", labels="frontend, auth"),
                make_task("T2", TaskStatus.IN_PROGRESS, title="Fix API timeout", description="Gateway retries"),
                make_task("T3", TaskStatus.DONE, title="Set up CI", labels="devops"),
            ],
            "P2": [make_task("T9", TaskStatus.TODO, project_id="P2", title="Budget review")],
        },
        assigned=[make_task("T2", TaskStatus.IN_PROGRESS, title="Fix API timeout")],
        projects=[Project(id="P1", name="Website"), Project(id="P2", name="Finance")],
        users=[
            make_user("U2", "Joanna", role=Role.MANAGER),
            make_user("U3", "John"),
            make_user("U4", "Jolene", role=Role.INTERN),
        ],
    )


@pytest_asyncio.fixture()
async def loaded_store(gateway: FakeGateway, manager: SessionContext) -> TaskStore:
    store = TaskStore(gateway, manager, project_id="P1")
    assert await store.refresh()
    gateway.calls.clear()
    return store
