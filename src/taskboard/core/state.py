# src/taskboard/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..board.projection import BoardProjection
from ..search.user_search import SearchCoordinator
from ..tasks.project_catalog import ProjectCatalog
from ..tasks.task_store import TaskStore
from .session import SessionContext


@dataclass
class AppState:
    """Everything one front-end session needs, wired by cli.bootstrap."""

    # Settings object (taskboard.config.Settings or a test stand-in).
    settings: Any
    session: SessionContext

    # Concrete gateway; kept for teardown (aclose) and health checks.
    gateway: Any
    projects: ProjectCatalog
    store: TaskStore
    search: SearchCoordinator
    board: BoardProjection

    async def aclose(self) -> None:
        await self.search.aclose()
        close = getattr(self.gateway, "aclose", None)
        if close is not None:
            await close()
