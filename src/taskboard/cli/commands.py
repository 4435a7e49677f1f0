# src/taskboard/cli/commands.py

from __future__ import annotations

import inspect
import logging
import shlex
from collections.abc import Awaitable, Callable
from typing import Any

from ..board.projection import ViewFilter, parse_filter
from ..core.state import AppState
from ..gateway.normalize import parse_instant, parse_status
from ..policy import roles
from ..tasks.task_models import NewTask, Task, TaskPatch

CommandEmitter = Callable[[str], None]
# (state, args) or (state, args, emit); sync or async.
CommandHandler = Callable[..., str | Awaitable[str]]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    async def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError:
            parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        result: Any = handler(state, args, emit) if nparams >= 3 else handler(state, args)
        if inspect.isawaitable(result):
            result = await result
        return str(result)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def format_task(task: Task) -> str:
    who = ", ".join(a.name for a in task.assignees) or "unassigned"
    due = f" due {task.due_date.date().isoformat()}" if task.due_date else ""
    tags = "".join(f" #{label}" for label in task.label_list)
    return f"[{task.status.value:<11}] {task.id}  {task.title}  ({task.priority}){due}{tags}  @ {who}"


def _error_suffix(state: AppState) -> str:
    return f" Error: {state.store.error}" if state.store.error else ""


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_whoami(state: AppState, args: list[str]) -> str:
    caps = state.session.capabilities
    allowed = sorted(p.value for p in roles.permissions_for(state.session.role, is_assigned_project=True))
    scope = state.session.search_scope
    return (
        f"Session: {state.session.describe()}\n"
        f"  Fetch strategy: {state.session.fetch_strategy.value}\n"
        f"  Permissions: {', '.join(allowed) or 'none'}\n"
        f"  User search: {'yes' if caps.can_access_user_search else 'no'}"
        f" (roles: {', '.join(r.value for r in scope.allowed_roles) or '-'})"
    )


async def cmd_projects(state: AppState, args: list[str]) -> str:
    ok = await state.projects.refresh_projects()
    if not ok:
        return f"Could not load projects: {state.projects.error}"
    if not state.projects.projects:
        return "No projects."
    lines = ["Projects:"]
    for p in state.projects.projects:
        mark = "*" if p.id == state.projects.selected_id else " "
        lines.append(f" {mark} {p.id}  {p.name}")
    return "\n".join(lines)


async def cmd_use(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /use <project_id>"
    project_id = args[0]
    if state.projects.projects:
        if state.projects.get(project_id) is None:
            return f"Unknown project: {project_id}. Use /projects to list them."
        state.projects.select(project_id)
    await state.store.select_project(project_id)
    if state.store.error:
        return f"Selected project {project_id}.{_error_suffix(state)}"
    return f"Selected project {project_id} ({len(state.store.tasks)} tasks)."


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks                 -> all tasks
    /tasks active          -> filter (all | active | backlog | done)
    /tasks done login      -> filter + free-text query
    """
    board = state.board
    query_parts = list(args)
    if query_parts:
        parsed = parse_filter(query_parts[0])
        if parsed is not None:
            board.set_filter(parsed)
            query_parts = query_parts[1:]
        else:
            board.set_filter(ViewFilter.ALL)
    else:
        board.set_filter(ViewFilter.ALL)
    board.set_query(" ".join(query_parts))

    counts = board.counts()
    header = "  ".join(f"{f.value}={counts[f]}" for f in ViewFilter)
    visible = board.visible()
    if not visible:
        body = f'No tasks match "{board.query}".' if board.query else "No tasks."
    else:
        body = "\n".join(format_task(t) for t in visible)
    flags = " (degraded: showing last known tasks)" if state.store.degraded else ""
    return f"Tasks [{board.view_filter.value}] {header}{flags}\n{body}"


async def cmd_refresh(state: AppState, args: list[str]) -> str:
    ok = await state.store.refresh()
    if ok:
        return f"Loaded {len(state.store.tasks)} tasks."
    if state.store.error:
        return f"Refresh failed.{_error_suffix(state)}"
    return "Nothing to load: select a project first (/use <project_id>)."


async def cmd_new(state: AppState, args: list[str]) -> str:
    if not roles.can_create_task(state.session.role, is_assigned_project=True):
        return "Your role cannot create tasks."
    created = await state.store.create_task(NewTask(title=" ".join(args), project_id=state.store.project_id))
    if created is None:
        return f"Task not created.{_error_suffix(state)}"
    return f"Created: {format_task(created)}"


async def cmd_move(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return "Usage: /move <task_id> <todo|in_progress|done>"
    task_id, target = args[0], args[1]
    before = state.store.get_task(task_id)
    if before is None:
        return f"Unknown task: {task_id}"
    status = parse_status(target)
    if status is None:
        return f"Unknown status: {target}"
    if status is before.status:
        return f"{task_id} is already {status.value}."
    if await state.board.move(task_id, status):
        return f"Moved {task_id} to {status.value}."
    return f"Move failed, task restored.{_error_suffix(state)}"


_EDITABLE = ("title", "description", "priority", "labels", "start_date", "due_date")


async def cmd_edit(state: AppState, args: list[str]) -> str:
    """/edit <task_id> field=value [field=value ...]"""
    if len(args) < 2:
        return f"Usage: /edit <task_id> field=value ... (fields: {', '.join(_EDITABLE)})"
    task_id = args[0]
    values: dict[str, Any] = {}
    for item in args[1:]:
        key, sep, value = item.partition("=")
        key = key.strip().lower()
        if not sep or key not in _EDITABLE:
            return f"Bad field: {item!r}. Editable: {', '.join(_EDITABLE)}"
        if key in ("start_date", "due_date"):
            parsed = parse_instant(value)
            if parsed is None:
                return f"Bad date for {key}: {value!r} (use ISO-8601, e.g. 2025-01-31)"
            values[key] = parsed
        else:
            values[key] = value
    updated = await state.store.update_details(task_id, TaskPatch(**values))
    if updated is None:
        return f"Task not updated.{_error_suffix(state)}"
    return f"Updated: {format_task(updated)}"


async def cmd_search(state: AppState, args: list[str]) -> str:
    """/search <query> [--task <task_id>]"""
    task_id: str | None = None
    words = list(args)
    if "--task" in words:
        i = words.index("--task")
        if i + 1 >= len(words):
            return "Usage: /search <query> [--task <task_id>]"
        task_id = words[i + 1]
        del words[i : i + 2]

    search = state.search
    search.search_users(" ".join(words), task_id)
    await search.wait()
    if search.error:
        return f"Search failed: {search.error}"
    if not search.users:
        return "No users found."
    lines = [f"Users ({len(search.users)}):"]
    for u in search.users:
        role = u.role.value if u.role is not None else "?"
        lines.append(f"  {u.id}  {u.username} <{u.email}>  {role}, {u.department_name}")
    if search.excluded_count:
        lines.append(f"  ({search.excluded_count} already on task {search.excluded_task_id})")
    return "\n".join(lines)


def cmd_pick(state: AppState, args: list[str]) -> str:
    """
    /pick <user_id>    -> add a user from the last search to the selection
    /pick -<user_id>   -> remove a user from the selection
    /pick clear        -> empty the selection
    """
    search = state.search
    if not args:
        names = ", ".join(u.username for u in search.selected_users) or "nobody"
        return f"Selected: {names}"
    arg = args[0]
    if arg.lower() == "clear":
        search.clear_selected_users()
        return "Selection cleared."
    if arg.startswith("-"):
        search.remove_user(arg[1:])
        return f"Selected: {', '.join(u.username for u in search.selected_users) or 'nobody'}"
    user = next((u for u in search.users if u.id == arg), None)
    if user is None:
        return f"User {arg} is not in the last search results."
    search.select_user(user)
    return f"Selected: {', '.join(u.username for u in search.selected_users)}"


async def cmd_assign(state: AppState, args: list[str]) -> str:
    if not args:
        return "Usage: /assign <task_id> (assigns the users picked with /pick)"
    if not state.session.capabilities.can_assign_users:
        return "Your role cannot assign users."
    ids = state.search.selected_user_ids()
    if not ids:
        return "Pick users first: /search <name>, then /pick <user_id>."
    ok = await state.store.assign_users(args[0], ids)
    if not ok:
        return f"Assignment failed.{_error_suffix(state)}"
    state.search.clear_selected_users()
    task = state.store.get_task(args[0])
    return f"Assigned {len(ids)} user(s)." + (f"\n{format_task(task)}" if task else "")


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("whoami", cmd_whoami, help_text="Show role, permissions and search scope.")
registry.register("projects", cmd_projects, help_text="List projects (* = selected).")
registry.register("use", cmd_use, help_text="Select a project: /use <project_id>.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks [all|active|backlog|done] [query].", aliases=["ls"])
registry.register("refresh", cmd_refresh, help_text="Reload tasks from the server.")
registry.register("new", cmd_new, help_text="Create a task in the selected project: /new <title>.")
registry.register("move", cmd_move, help_text="Change status: /move <task_id> <todo|in_progress|done>.")
registry.register("edit", cmd_edit, help_text="Edit details: /edit <task_id> title=... due_date=2025-01-31.")
registry.register("search", cmd_search, help_text="Find assignable users: /search <query> [--task <task_id>].")
registry.register("pick", cmd_pick, help_text="Pick users for assignment: /pick <user_id> | -<user_id> | clear.")
registry.register("assign", cmd_assign, help_text="Assign picked users: /assign <task_id>.")
