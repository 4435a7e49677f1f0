# src/taskboard/tasks/task_store.py

"""
Client-side task collection kept consistent with the remote task service.

Collection writes are either a full replace (refresh) or a keyed single-record
replace; records are frozen, so readers holding the previous tuple are never
affected.

Errors never escape the public operations: they land in `error` (readable
text) and `last_exception` (the exception itself). Cancellation propagates.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections import Counter
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, replace
from enum import StrEnum

from ..core.listeners import ListenerSet
from ..core.ports import StateListener, TaskGateway
from ..core.session import SessionContext
from ..errors import GatewayError, GatewayTransportError, ValidationError, friendly_error_message
from ..gateway.normalize import parse_status
from ..policy.roles import FetchStrategy
from .task_models import NewTask, Task, TaskChanges, TaskPatch, TaskStatus

logger = logging.getLogger(__name__)


class LoadingKey(StrEnum):
    TASKS = "tasks"
    TASK_CREATE = "task_create"
    TASK_UPDATE = "task_update"


@dataclass(frozen=True, slots=True)
class LoadingFlags:
    tasks: bool = False
    task_create: bool = False
    task_update: bool = False

    @property
    def any(self) -> bool:
        return self.tasks or self.task_create or self.task_update


@dataclass(slots=True, eq=False)
class StatusTransaction:
    """
    One optimistic status change.

    `snapshot` is the whole collection right before the change, `original` and
    `speculative` the task record before and after it, `generation` the
    collection version right after it was applied.
    """

    task_id: str
    snapshot: tuple[Task, ...]
    original: Task
    speculative: Task
    generation: int


class TaskStore:
    def __init__(
        self,
        gateway: TaskGateway,
        session: SessionContext,
        *,
        project_id: str | None = None,
    ) -> None:
        self._gateway = gateway
        self._session = session
        self._project_id = project_id or None

        self._tasks: tuple[Task, ...] = ()
        self._generation = 0
        self._refresh_seq = 0
        self._pending: list[StatusTransaction] = []
        self._loading: Counter[LoadingKey] = Counter()
        self._listeners = ListenerSet("Task store")

        self.error: str | None = None
        self.last_exception: BaseException | None = None
        # Last failure was "no response": the collection on screen may be stale.
        self.degraded = False

    # ---- read side ----

    @property
    def tasks(self) -> tuple[Task, ...]:
        return self._tasks

    @property
    def session(self) -> SessionContext:
        return self._session

    @property
    def project_id(self) -> str | None:
        return self._project_id

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def loading(self) -> LoadingFlags:
        return LoadingFlags(
            tasks=self._loading[LoadingKey.TASKS] > 0,
            task_create=self._loading[LoadingKey.TASK_CREATE] > 0,
            task_update=self._loading[LoadingKey.TASK_UPDATE] > 0,
        )

    def get_task(self, task_id: str) -> Task | None:
        for t in self._tasks:
            if t.id == task_id:
                return t
        return None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self._listeners.add(listener)

    def set_error(self, message: str | None) -> None:
        self.error = message
        self._listeners.notify()

    def clear_error(self) -> None:
        self.error = None
        self.last_exception = None
        self._listeners.notify()

    # ---- collection writes ----

    def _replace_all(self, tasks: Sequence[Task]) -> None:
        self._tasks = tuple(tasks)
        self._generation += 1

    def _replace_one(self, task: Task) -> bool:
        for i, t in enumerate(self._tasks):
            if t.id == task.id:
                self._tasks = (*self._tasks[:i], task, *self._tasks[i + 1 :])
                self._generation += 1
                return True
        return False

    # ---- bookkeeping ----

    @contextlib.contextmanager
    def _busy(self, key: LoadingKey) -> Iterator[None]:
        self._loading[key] += 1
        self._listeners.notify()
        try:
            yield
        finally:
            self._loading[key] -= 1
            self._listeners.notify()

    def _begin(self) -> None:
        self.error = None
        self.last_exception = None

    def _fail(self, err: BaseException, fallback: str) -> None:
        if isinstance(err, ValidationError):
            message = str(err) or fallback
        elif isinstance(err, GatewayError):
            message = friendly_error_message(err, fallback)
        else:
            message = fallback
        self.error = message
        self.last_exception = err
        self.degraded = isinstance(err, GatewayTransportError)
        self._listeners.notify()

    # ---- operations ----

    async def refresh(self, project_id: str | None = None) -> bool:
        """
        Reload the collection with the caller's fetch strategy.

        "assigned" ignores `project_id`; "project" needs one (argument, else the
        selected project). Returns True when the collection was replaced.
        """
        strategy = self._session.fetch_strategy
        target = project_id or self._project_id
        if strategy is FetchStrategy.PROJECT and not target:
            logger.debug("Refresh skipped: no project selected (role=%s).", self._session.role)
            return False

        self._refresh_seq += 1
        seq = self._refresh_seq
        self._begin()
        with self._busy(LoadingKey.TASKS):
            try:
                if strategy is FetchStrategy.PROJECT and target:
                    fetched = await self._gateway.list_tasks_by_project(target, self._session.token)
                else:
                    fetched = await self._gateway.list_assigned_tasks(self._session.token)
            except GatewayError as e:
                if seq == self._refresh_seq:
                    self._fail(e, "Failed to load tasks")
                return False
            except Exception as e:
                logger.exception("Task refresh crashed.")
                if seq == self._refresh_seq:
                    self._fail(e, "Failed to load tasks")
                return False

            if seq != self._refresh_seq:
                logger.debug("Dropping stale refresh result (seq=%s, latest=%s).", seq, self._refresh_seq)
                return False

            self._replace_all(fetched)
            self.degraded = False
            logger.debug("Refreshed tasks: strategy=%s project=%s count=%d", strategy, target, len(fetched))
        return True

    async def select_project(self, project_id: str | None) -> bool:
        """Change the selected project; a real change triggers a refresh."""
        project_id = project_id or None
        if project_id == self._project_id:
            return False
        self._project_id = project_id
        self._listeners.notify()
        if project_id is None:
            return False
        return await self.refresh(project_id)

    async def create_task(self, data: NewTask) -> Task | None:
        """Validate locally, create remotely, append the returned task. None on failure."""
        self._begin()
        try:
            data = self._validated_new_task(data)
        except ValidationError as e:
            self._fail(e, "Failed to create task")
            return None

        with self._busy(LoadingKey.TASK_CREATE):
            try:
                created = await self._gateway.create_task(data, self._session.token)
            except GatewayError as e:
                self._fail(e, "Failed to create task")
                return None
            except Exception as e:
                logger.exception("Task creation crashed.")
                self._fail(e, "Failed to create task")
                return None

            if not self._replace_one(created):
                self._replace_all((*self._tasks, created))
            logger.info("Task created: id=%s project=%s", created.id, created.project_id)
        return created

    def _validated_new_task(self, data: NewTask) -> NewTask:
        if not (data.title or "").strip():
            raise ValidationError("Task title is required.", field="title")
        project_id = data.project_id or self._project_id
        if not project_id:
            raise ValidationError("Select a project before creating a task.", field="project_id")
        if project_id != data.project_id:
            data = replace(data, project_id=project_id)
        return data

    def begin_status_change(self, task_id: str, status: TaskStatus | str) -> StatusTransaction:
        """Apply an optimistic status change locally and return its transaction (no I/O)."""
        new_status = parse_status(status)
        if new_status is None:
            raise ValidationError(f"Unknown status: {status!r}", field="status")
        current = self.get_task(task_id)
        if current is None:
            raise ValidationError(f"Task {task_id} is not on the board.", field="task_id")

        snapshot = self._tasks
        speculative = current.with_status(new_status)
        self._replace_one(speculative)
        txn = StatusTransaction(
            task_id=task_id,
            snapshot=snapshot,
            original=current,
            speculative=speculative,
            generation=self._generation,
        )
        self._pending.append(txn)
        self._listeners.notify()
        return txn

    def _commit(self, txn: StatusTransaction) -> None:
        if txn in self._pending:
            self._pending.remove(txn)

    def _rollback(self, txn: StatusTransaction) -> None:
        """
        Undo a failed optimistic change.

        Untouched collection since the change: restore the snapshot verbatim.
        Otherwise roll back only this task, and only while it still holds our
        speculative record (a newer change or a refresh wins).
        """
        self._commit(txn)

        if self._generation == txn.generation:
            self._tasks = txn.snapshot
            self._generation += 1
            return

        current = self.get_task(txn.task_id)
        if current is txn.speculative:
            self._replace_one(txn.original)
            return

        # A newer change to the same task was stacked on our speculative record:
        # make it roll back to our starting point instead.
        for later in self._pending:
            if later.task_id == txn.task_id and later.original is txn.speculative:
                later.original = txn.original
                later.snapshot = tuple(txn.original if t is txn.speculative else t for t in later.snapshot)
        logger.debug("Rollback of %s skipped: task changed since.", txn.task_id)

    async def update_status(self, task_id: str, status: TaskStatus | str) -> bool:
        """
        Optimistic status change.

        The local record changes before the first suspension point; on failure the
        pre-call state is restored (see _rollback) and the error is published.
        """
        self._begin()
        try:
            txn = self.begin_status_change(task_id, status)
        except ValidationError as e:
            self._fail(e, "Failed to update task status")
            return False

        with self._busy(LoadingKey.TASK_UPDATE):
            try:
                await self._gateway.update_task_status(task_id, txn.speculative.status, self._session.token)
            except asyncio.CancelledError:
                self._rollback(txn)
                self._listeners.notify()
                raise
            except GatewayError as e:
                self._rollback(txn)
                self._fail(e, "Failed to update task status")
                return False
            except Exception as e:
                self._rollback(txn)
                logger.exception("Task status update crashed.")
                self._fail(e, "Failed to update task status")
                return False

            self._commit(txn)
            logger.debug("Task status updated: id=%s status=%s", task_id, txn.speculative.status)
        return True

    async def update_details(self, task_id: str, patch: TaskPatch) -> Task | None:
        """Non-optimistic edit: merge the fields the server returns into the local record."""
        self._begin()
        try:
            self._validate_patch(task_id, patch)
        except ValidationError as e:
            self._fail(e, "Failed to update task")
            return None

        with self._busy(LoadingKey.TASK_UPDATE):
            try:
                changes = await self._gateway.update_task_details(task_id, patch, self._session.token)
            except GatewayError as e:
                self._fail(e, "Failed to update task")
                return None
            except Exception as e:
                logger.exception("Task details update crashed.")
                self._fail(e, "Failed to update task")
                return None

            current = self.get_task(task_id)
            if current is None:
                logger.info("Task %s left the board while its update was in flight.", task_id)
                return None
            merged = changes.apply(current)
            self._replace_one(merged)
            self._carry_into_pending(current, merged, changes)
            logger.debug("Task details merged: id=%s fields=%s", task_id, sorted(changes.fields))
        return merged

    def _carry_into_pending(self, current: Task, merged: Task, changes: TaskChanges) -> None:
        """
        Re-point pending status transactions of a task at its merged record.

        A later rollback then finds its speculative record on the board and
        restores the status only, keeping the merged details.
        """
        carried: dict[int, Task] = {id(current): merged}

        def carry(record: Task) -> Task:
            if id(record) not in carried:
                carried[id(record)] = changes.apply(record)
            return carried[id(record)]

        for txn in self._pending:
            if txn.task_id != current.id:
                continue
            txn.original = carry(txn.original)
            txn.speculative = carry(txn.speculative)
            txn.snapshot = tuple(carry(t) if t.id == current.id else t for t in txn.snapshot)

    def _validate_patch(self, task_id: str, patch: TaskPatch) -> None:
        if self.get_task(task_id) is None:
            raise ValidationError(f"Task {task_id} is not on the board.", field="task_id")
        if patch.is_empty():
            raise ValidationError("Nothing to update.")
        if patch.title is not None and not patch.title.strip():
            raise ValidationError("Task title is required.", field="title")

    async def assign_users(self, task_id: str, user_ids: Sequence[str]) -> bool:
        """
        Add assignees, then reload the task's project once.

        Assignee lists are not reliably part of the mutation response, so the
        store refetches instead of patching the task locally.
        """
        self._begin()
        ids = list(dict.fromkeys(u for u in user_ids if u))
        if not ids:
            self._fail(ValidationError("Select at least one user to assign.", field="user_ids"), "Failed to assign users")
            return False

        task = self.get_task(task_id)
        scope = task.project_id if task is not None and task.project_id else self._project_id

        with self._busy(LoadingKey.TASK_UPDATE):
            try:
                await self._gateway.add_assignees(task_id, ids, self._session.token)
            except GatewayError as e:
                self._fail(e, "Failed to assign users")
                return False
            except Exception as e:
                logger.exception("Assigning users crashed.")
                self._fail(e, "Failed to assign users")
                return False

            logger.info("Assigned %d user(s) to task %s", len(ids), task_id)
            await self.refresh(scope)
        return True
