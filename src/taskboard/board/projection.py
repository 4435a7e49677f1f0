# src/taskboard/board/projection.py

"""
Read-side views over the task store.

Filtering and column grouping are pure functions of the store's collection.
The only state kept here is the current filter, the free-text query and an
optional presentation-only ordering; none of it is written back to the store.
Drag/drop gestures are translated into at most one TaskStore.update_status call.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from enum import StrEnum

from ..gateway.normalize import parse_status
from ..tasks.task_models import Task, TaskStatus
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


class ViewFilter(StrEnum):
    ALL = "all"
    ACTIVE = "active"
    BACKLOG = "backlog"
    DONE = "done"


FILTER_STATUSES: dict[ViewFilter, frozenset[TaskStatus]] = {
    ViewFilter.ALL: frozenset(TaskStatus),
    ViewFilter.ACTIVE: frozenset({TaskStatus.TODO, TaskStatus.IN_PROGRESS}),
    ViewFilter.BACKLOG: frozenset({TaskStatus.TODO}),
    ViewFilter.DONE: frozenset({TaskStatus.DONE}),
}

COLUMN_ORDER: tuple[TaskStatus, ...] = (TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.DONE)

# Drop zones of the list view map onto statuses: backlog -> todo, active -> in progress.
_ZONE_RULES: tuple[tuple[str, str, TaskStatus], ...] = (
    ("todo-zone", "backlog", TaskStatus.TODO),
    ("in_progress-zone", "active", TaskStatus.IN_PROGRESS),
    ("done-zone", "done", TaskStatus.DONE),
)
_ZONE_SUFFIXES = ("-zone", "-filter")


def parse_filter(raw: str | ViewFilter | None) -> ViewFilter | None:
    if raw is None:
        return ViewFilter.ALL
    try:
        return ViewFilter(str(raw).strip().lower())
    except ValueError:
        return None


def matches_query(task: Task, query: str) -> bool:
    """Case-insensitive substring match over title, description and labels."""
    needle = query.strip().casefold()
    if not needle:
        return True
    return any(needle in (field or "").casefold() for field in (task.title, task.description, task.labels))


def filter_tasks(tasks: Iterable[Task], view_filter: ViewFilter = ViewFilter.ALL, query: str = "") -> list[Task]:
    statuses = FILTER_STATUSES[view_filter]
    return [t for t in tasks if t.status in statuses and matches_query(t, query)]


def group_by_status(tasks: Iterable[Task]) -> dict[TaskStatus, list[Task]]:
    columns: dict[TaskStatus, list[Task]] = {s: [] for s in COLUMN_ORDER}
    for t in tasks:
        columns[t.status].append(t)
    return columns


def count_by_filter(tasks: Sequence[Task]) -> dict[ViewFilter, int]:
    return {f: sum(1 for t in tasks if t.status in FILTER_STATUSES[f]) for f in ViewFilter}


def resolve_drop_target(target: str | TaskStatus) -> TaskStatus | None:
    """
    Status for a drop target: a column status, or a drop-zone id of the list view.

    Zone-style ids ("todo-zone", "backlog-filter", ...) are matched by their
    marker; a bare marker ("backlog", "active") must match exactly. Anything
    else goes through the strict status parser.
    """
    if isinstance(target, TaskStatus):
        return target
    raw = (target or "").strip()
    if not raw:
        return None
    lowered = raw.lower()
    zone_style = lowered.endswith(_ZONE_SUFFIXES)
    for zone_id, marker, status in _ZONE_RULES:
        if lowered in (zone_id, marker) or (zone_style and marker in lowered):
            return status
    return parse_status(raw)


class BoardProjection:
    def __init__(
        self,
        store: TaskStore,
        *,
        view_filter: ViewFilter = ViewFilter.ALL,
        query: str = "",
    ) -> None:
        self._store = store
        self.view_filter = view_filter
        self.query = query
        # Presentation-only ordering: task ids in display order.
        self._order: list[str] = []

    @property
    def store(self) -> TaskStore:
        return self._store

    def set_filter(self, view_filter: ViewFilter | str) -> None:
        parsed = parse_filter(view_filter)
        if parsed is None:
            raise ValueError(f"Unknown view filter: {view_filter!r}")
        self.view_filter = parsed

    def set_query(self, query: str) -> None:
        self.query = query or ""

    def _ordered(self, tasks: list[Task]) -> list[Task]:
        if not self._order:
            return tasks
        rank = {tid: i for i, tid in enumerate(self._order)}
        fallback = len(rank)
        indexed = list(enumerate(tasks))
        indexed.sort(key=lambda it: (rank.get(it[1].id, fallback), it[0]))
        return [t for _, t in indexed]

    def visible(self) -> list[Task]:
        return self._ordered(filter_tasks(self._store.tasks, self.view_filter, self.query))

    def columns(self) -> dict[TaskStatus, list[Task]]:
        """Visible tasks grouped by status (all three columns are always present)."""
        return group_by_status(self.visible())

    def counts(self) -> dict[ViewFilter, int]:
        """Per-filter totals over the whole collection (the query is ignored)."""
        return count_by_filter(self._store.tasks)

    def reorder(self, task_id: str, new_index: int) -> list[Task]:
        """Move a task within the visible list. Display order only; the store is untouched."""
        current = self.visible()
        ids = [t.id for t in current]
        if task_id not in ids:
            return current
        ids.remove(task_id)
        new_index = max(0, min(new_index, len(ids)))
        ids.insert(new_index, task_id)
        # Keep positions of tasks hidden by the current filter after the visible ones.
        self._order = ids + [tid for tid in self._order if tid not in ids]
        return self.visible()

    def reset_order(self) -> None:
        self._order = []

    async def move(self, task_id: str, target: str | TaskStatus) -> bool:
        """
        Drop `task_id` onto `target`.

        Returns True when a status change was issued and succeeded. Same-column
        drops and unknown targets issue no store call.
        """
        status = resolve_drop_target(target)
        if status is None:
            logger.debug("Ignoring drop on unknown target %r", target)
            return False
        task = self._store.get_task(task_id)
        if task is None:
            logger.debug("Ignoring drop of unknown task %s", task_id)
            return False
        if task.status is status:
            return False
        return await self._store.update_status(task_id, status)
