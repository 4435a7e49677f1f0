# tests/test_board.py

from __future__ import annotations

import pytest

from taskboard.board.projection import (
    BoardProjection,
    ViewFilter,
    filter_tasks,
    parse_filter,
    resolve_drop_target,
)
from taskboard.errors import GatewayRejectedError
from taskboard.tasks.task_models import TaskStatus
from taskboard.tasks.task_store import TaskStore

from .fakes import FakeGateway, make_task


def _ids(tasks) -> list[str]:
    return [t.id for t in tasks]


def test_filters_and_query_are_pure() -> None:
    tasks = [
        make_task("A", TaskStatus.TODO, title="Login form", labels="frontend"),
        make_task("B", TaskStatus.IN_PROGRESS, description="FRONTEND polish"),
        make_task("C", TaskStatus.DONE, title="Release"),
    ]
    assert _ids(filter_tasks(tasks, ViewFilter.ACTIVE)) == ["A", "B"]
    assert _ids(filter_tasks(tasks, ViewFilter.BACKLOG)) == ["A"]
    assert _ids(filter_tasks(tasks, ViewFilter.DONE)) == ["C"]
    assert _ids(filter_tasks(tasks, ViewFilter.ALL, "frontend")) == ["A", "B"]
    assert _ids(filter_tasks(tasks, ViewFilter.ALL, "   ")) == ["A", "B", "C"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [(None, ViewFilter.ALL), ("Active", ViewFilter.ACTIVE), (" done ", ViewFilter.DONE), ("archived", None)],
)
def test_parse_filter(raw, expected) -> None:
    assert parse_filter(raw) is expected


@pytest.mark.parametrize(
    ("target", "expected"),
    [
        (TaskStatus.DONE, TaskStatus.DONE),
        ("todo-zone", TaskStatus.TODO),
        ("backlog-filter", TaskStatus.TODO),
        ("active-filter", TaskStatus.IN_PROGRESS),
        ("done-zone", TaskStatus.DONE),
        ("In Progress", TaskStatus.IN_PROGRESS),
        ("backlog", TaskStatus.TODO),
        ("undone", None),
        ("inactive", None),
        ("trash", None),
        ("", None),
    ],
)
def test_resolve_drop_target(target, expected) -> None:
    assert resolve_drop_target(target) is expected


@pytest.mark.asyncio
async def test_columns_and_counts(loaded_store: TaskStore) -> None:
    board = BoardProjection(loaded_store)
    columns = board.columns()
    assert list(columns) == [TaskStatus.TODO, TaskStatus.IN_PROGRESS, TaskStatus.DONE]
    assert {s: _ids(ts) for s, ts in columns.items()} == {
        TaskStatus.TODO: ["T1"],
        TaskStatus.IN_PROGRESS: ["T2"],
        TaskStatus.DONE: ["T3"],
    }

    board.set_query("login")
    assert _ids(board.visible()) == ["T1"]
    assert board.columns()[TaskStatus.DONE] == []
    # Counts ignore the free-text query.
    assert board.counts() == {ViewFilter.ALL: 3, ViewFilter.ACTIVE: 2, ViewFilter.BACKLOG: 1, ViewFilter.DONE: 1}

    with pytest.raises(ValueError):
        board.set_filter("archived")
    board.set_query("")
    board.set_filter("done")
    assert _ids(board.visible()) == ["T3"]


@pytest.mark.asyncio
async def test_reorder_is_presentation_only(loaded_store: TaskStore, gateway: FakeGateway) -> None:
    before = loaded_store.tasks
    board = BoardProjection(loaded_store)

    assert _ids(board.reorder("T3", 0)) == ["T3", "T1", "T2"]
    assert _ids(board.reorder("T1", 99)) == ["T3", "T2", "T1"]
    assert loaded_store.tasks is before
    assert gateway.calls == []

    # Tasks hidden by the filter are placed after the reordered visible ones.
    board.set_filter(ViewFilter.ACTIVE)
    assert _ids(board.reorder("T1", 0)) == ["T1", "T2"]
    board.set_filter(ViewFilter.ALL)
    assert _ids(board.visible()) == ["T1", "T2", "T3"]

    board.reset_order()
    assert _ids(board.visible()) == ["T1", "T2", "T3"]


@pytest.mark.asyncio
async def test_move_issues_exactly_one_status_update(loaded_store: TaskStore, gateway: FakeGateway) -> None:
    board = BoardProjection(loaded_store)

    assert await board.move("T1", "done-zone")
    assert gateway.calls_named("update_task_status") == [("T1", TaskStatus.DONE, "tok-manager")]
    assert loaded_store.get_task("T1").status is TaskStatus.DONE

    # Same column, unknown target, unknown task: nothing is issued.
    assert await board.move("T1", TaskStatus.DONE) is False
    assert await board.move("T2", "trash") is False
    assert await board.move("T404", "todo") is False
    assert len(gateway.calls_named("update_task_status")) == 1


@pytest.mark.asyncio
async def test_failed_move_rolls_back(loaded_store: TaskStore, gateway: FakeGateway) -> None:
    gateway.fail["update_task_status"] = GatewayRejectedError(500, "Server error")
    board = BoardProjection(loaded_store)
    before = board.columns()

    assert await board.move("T2", "backlog") is False
    assert board.columns() == before
    assert loaded_store.error == "Server error"
