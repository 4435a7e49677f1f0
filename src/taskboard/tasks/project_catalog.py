# src/taskboard/tasks/project_catalog.py

from __future__ import annotations

import logging
from collections.abc import Callable

from ..core.listeners import ListenerSet
from ..core.ports import ProjectGateway, StateListener
from ..core.session import SessionContext
from ..errors import GatewayError, friendly_error_message
from .task_models import Project, UserRef

logger = logging.getLogger(__name__)


class ProjectCatalog:
    """
    Projects visible to the caller plus the current selection.

    The selection survives a reload when the project is still listed; otherwise
    the first listed project is selected.
    """

    def __init__(self, gateway: ProjectGateway, session: SessionContext) -> None:
        self._gateway = gateway
        self._session = session
        self._listeners = ListenerSet("Project catalog")

        self.projects: tuple[Project, ...] = ()
        self.selected: Project | None = None
        self.loading = False
        self.error: str | None = None

    @property
    def selected_id(self) -> str | None:
        return self.selected.id if self.selected is not None else None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self._listeners.add(listener)

    def get(self, project_id: str) -> Project | None:
        for p in self.projects:
            if p.id == project_id:
                return p
        return None

    async def refresh_projects(self) -> bool:
        self.loading = True
        self.error = None
        self._listeners.notify()
        try:
            projects = await self._gateway.list_projects(self._session.token)
        except GatewayError as e:
            self.error = friendly_error_message(e, "Failed to load projects")
            logger.info("Project listing failed: %s", self.error)
            return False
        except Exception:
            logger.exception("Project listing crashed.")
            self.error = "Failed to load projects"
            return False
        finally:
            self.loading = False
            self._listeners.notify()

        self.projects = tuple(projects)
        keep = self.get(self.selected.id) if self.selected is not None else None
        self.selected = keep or (self.projects[0] if self.projects else None)
        logger.debug("Projects loaded: count=%d selected=%s", len(self.projects), self.selected_id)
        self._listeners.notify()
        return True

    def select(self, project_id: str | None) -> Project | None:
        """Select a listed project (None clears the selection). Unknown ids leave it unchanged."""
        if project_id is None:
            self.selected = None
            self._listeners.notify()
            return None
        project = self.get(project_id)
        if project is None:
            logger.debug("Ignoring selection of unknown project %s", project_id)
            return self.selected
        self.selected = project
        self._listeners.notify()
        return project

    async def collaborators(self, project_id: str) -> list[UserRef]:
        """Project members; an empty list on any failure."""
        try:
            return await self._gateway.list_project_collaborators(project_id, self._session.token)
        except GatewayError as e:
            logger.info("Collaborator listing failed for project %s: %s", project_id, e)
            return []
        except Exception:
            logger.exception("Collaborator listing crashed for project %s", project_id)
            return []
