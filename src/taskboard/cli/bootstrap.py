# src/taskboard/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures the local (gitignored) data directory exists,
- builds the session context and the HTTP gateway,
- wires the task store, project catalog, search coordinator and board into AppState.
"""

from __future__ import annotations

import logging
from typing import Any

from ..board.projection import BoardProjection
from ..config import Settings, get_settings
from ..core.session import SessionContext
from ..core.state import AppState
from ..gateway.client import RemoteGateway
from ..policy.roles import should_show_project_selector
from ..search.search_cache import SearchCache
from ..search.user_search import SearchCoordinator
from ..tasks.project_catalog import ProjectCatalog
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings: Settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)


def create_engine(
    *,
    settings: Settings | None = None,
    session: SessionContext | None = None,
    gateway: Any = None,
) -> AppState:
    """
    Create AppState from the provided settings.

    `session` defaults to the role/token/department from settings; `gateway`
    defaults to a RemoteGateway on settings.api_base_url (tests pass a fake).
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if session is None:
        session = SessionContext.from_settings(settings)
    if gateway is None:
        gateway = RemoteGateway.from_settings(settings)

    store = TaskStore(gateway, session)
    search = SearchCoordinator(
        gateway,
        session,
        debounce_seconds=settings.search_debounce_seconds,
        cache=SearchCache(
            ttl_seconds=settings.search_cache_ttl_seconds,
            max_entries=settings.search_cache_max_entries,
        ),
    )

    state = AppState(
        settings=settings,
        session=session,
        gateway=gateway,
        projects=ProjectCatalog(gateway, session),
        store=store,
        search=search,
        board=BoardProjection(store),
    )
    logger.debug("Engine created: %s api=%s", session.describe(), settings.api_base_url)
    return state


async def load_initial_view(state: AppState) -> None:
    """Load projects (auto-selecting the first one) and the tasks the role should see."""
    if should_show_project_selector(state.session.role):
        await state.projects.refresh_projects()
        if state.projects.selected_id:
            await state.store.select_project(state.projects.selected_id)
            return
    await state.store.refresh()
