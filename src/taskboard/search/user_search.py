# src/taskboard/search/user_search.py

"""
Search coordinator for the "assign users to a task" flow.

Each call to search_users() starts a new SearchRequest:

    idle -> pending -> resolved | failed | superseded

- the previous request (debouncing or in flight) is cancelled and marked superseded,
- empty queries go straight to idle without touching the network,
- after the debounce delay exactly one gateway request is issued,
- results are role-filtered (and department-filtered for restricted roles)
  before they are cached and published.

A request publishes only while it is still the current one (token check), so a
late answer from a superseded request is dropped silently.

The selection set is independent of searches: it survives new queries and
clear_search() until clear_selected_users() is called.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum

from ..core.listeners import ListenerSet
from ..core.ports import StateListener, UserSearchGateway
from ..core.session import SessionContext
from ..errors import GatewayError, friendly_error_message
from ..policy.roles import SearchScope
from ..tasks.task_models import SearchedUser
from .search_cache import SearchCache, cache_key

logger = logging.getLogger(__name__)

NO_PERMISSION_MESSAGE = "You do not have permission to search for users"
SEARCH_FAILED_MESSAGE = "Failed to search users"

_DEPARTMENT_RE = re.compile(r"^\d+$")

Sleep = Callable[[float], Awaitable[None]]


class QueryKind(StrEnum):
    EMAIL = "email"
    DEPARTMENT = "department"
    USERNAME = "username"


class SearchPhase(StrEnum):
    IDLE = "idle"
    PENDING = "pending"
    RESOLVED = "resolved"
    FAILED = "failed"
    SUPERSEDED = "superseded"


@dataclass(frozen=True, slots=True)
class SearchQuery:
    kind: QueryKind
    value: str
    task_id: str | None = None

    def params(self, *, include_task: bool = True) -> dict[str, str]:
        """Request parameters; the key order is part of the cache key."""
        key = "department_id" if self.kind is QueryKind.DEPARTMENT else self.kind.value
        out = {key: self.value}
        if include_task and self.task_id:
            out["task_id"] = self.task_id
        return out


def classify_query(query: str, task_id: str | None = None) -> SearchQuery | None:
    """email if it contains '@', department if all digits, username otherwise; None when blank."""
    value = (query or "").strip()
    if not value:
        return None
    if "@" in value:
        kind = QueryKind.EMAIL
    elif _DEPARTMENT_RE.match(value):
        kind = QueryKind.DEPARTMENT
    else:
        kind = QueryKind.USERNAME
    return SearchQuery(kind=kind, value=value, task_id=task_id or None)


def filter_by_scope(
    users: list[SearchedUser] | tuple[SearchedUser, ...],
    scope: SearchScope,
    *,
    department_name: str | None = None,
) -> list[SearchedUser]:
    """Keep only users the caller may assign: allowed roles, and own department when restricted."""
    dept = (department_name or "").strip().casefold()
    out: list[SearchedUser] = []
    for u in users:
        if not scope.allows(u.role):
            continue
        if scope.department_restriction and dept and u.department_name.strip().casefold() != dept:
            continue
        out.append(u)
    return out


@dataclass(slots=True, eq=False)
class SearchRequest:
    token: int
    query: SearchQuery | None
    phase: SearchPhase = SearchPhase.PENDING
    task: asyncio.Task[None] | None = field(default=None, repr=False)


class SearchCoordinator:
    def __init__(
        self,
        gateway: UserSearchGateway,
        session: SessionContext,
        *,
        debounce_seconds: float = 0.3,
        cache: SearchCache | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._session = session
        self._debounce = max(0.0, float(debounce_seconds))
        self._cache = cache if cache is not None else SearchCache()
        self._sleep = sleep

        self._token = 0
        self._current: SearchRequest | None = None
        self._listeners = ListenerSet("User search")

        self.users: tuple[SearchedUser, ...] = ()
        self.loading = False
        self.error: str | None = None
        self.selected_users: tuple[SearchedUser, ...] = ()
        self.excluded_task_id: str | None = None
        self.excluded_count = 0

    # ---- read side ----

    @property
    def session(self) -> SessionContext:
        return self._session

    @property
    def cache(self) -> SearchCache:
        return self._cache

    @property
    def can_search(self) -> bool:
        return self._session.capabilities.can_access_user_search

    @property
    def search_scope(self) -> SearchScope:
        return self._session.search_scope

    @property
    def current_request(self) -> SearchRequest | None:
        return self._current

    @property
    def phase(self) -> SearchPhase:
        return self._current.phase if self._current is not None else SearchPhase.IDLE

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        return self._listeners.add(listener)

    def _notify(self) -> None:
        self._listeners.notify()

    # ---- intents ----

    def search_users(self, query: str, exclude_task_id: str | None = None) -> SearchRequest | None:
        """
        Start a new search (must be called from a running event loop).

        Returns the new request, or None when the caller may not search.
        """
        if not self.can_search:
            self.error = NO_PERMISSION_MESSAGE
            self.users = ()
            self.loading = False
            self._notify()
            return None

        self._supersede_current()
        self.error = None

        self._token += 1
        parsed = classify_query(query, exclude_task_id)
        if parsed is None:
            self._current = SearchRequest(token=self._token, query=None, phase=SearchPhase.IDLE)
            self.users = ()
            self.loading = False
            self._notify()
            return self._current

        self.excluded_task_id = exclude_task_id or None
        request = SearchRequest(token=self._token, query=parsed)
        request.task = asyncio.get_running_loop().create_task(
            self._run(request, parsed), name=f"user-search-{request.token}"
        )
        self._current = request
        self._notify()
        return request

    def clear_search(self) -> None:
        self._supersede_current()
        self._current = None
        self.users = ()
        self.error = None
        self.loading = False
        self._notify()

    def select_user(self, user: SearchedUser) -> None:
        if any(u.id == user.id for u in self.selected_users):
            return
        self.selected_users = (*self.selected_users, user)
        self._notify()

    def remove_user(self, user_id: str) -> None:
        kept = tuple(u for u in self.selected_users if u.id != user_id)
        if len(kept) != len(self.selected_users):
            self.selected_users = kept
            self._notify()

    def clear_selected_users(self) -> None:
        if self.selected_users:
            self.selected_users = ()
            self._notify()

    def selected_user_ids(self) -> list[str]:
        return [u.id for u in self.selected_users]

    async def wait(self) -> None:
        """Wait until the current search (if any) has finished, whatever its outcome."""
        while True:
            request = self._current
            task = request.task if request is not None else None
            if task is None or task.done():
                return
            await asyncio.wait({task})

    async def aclose(self) -> None:
        request = self._current
        self._supersede_current()
        self._listeners.clear()
        if request is not None and request.task is not None:
            await asyncio.wait({request.task})

    # ---- internals ----

    def _is_current(self, request: SearchRequest) -> bool:
        return self._current is request and request.token == self._token

    def _supersede_current(self) -> None:
        request = self._current
        if request is None:
            return
        if request.phase is SearchPhase.PENDING:
            request.phase = SearchPhase.SUPERSEDED
            logger.debug("User search superseded: token=%s", request.token)
        if request.task is not None and not request.task.done():
            request.task.cancel()

    def _excluded_hint(self, query: SearchQuery, result_size: int) -> int:
        if not query.task_id:
            return 0
        unexcluded = self._cache.peek(cache_key(query.params(include_task=False)))
        if unexcluded is None:
            return 0
        return max(0, len(unexcluded) - result_size)

    async def _run(self, request: SearchRequest, query: SearchQuery) -> None:
        if self._debounce:
            await self._sleep(self._debounce)
        if not self._is_current(request):
            return

        params = query.params()
        key = cache_key(params)

        cached = self._cache.get(key)
        if cached is not None:
            logger.debug("User search cache hit: %s", key)
            self._resolve(request, cached, query)
            return

        self.loading = True
        self._notify()
        logger.debug("User search request: kind=%s task=%s", query.kind, query.task_id)

        try:
            raw = await self._gateway.search_assignable_users(params, self._session.token)
        except asyncio.CancelledError:
            raise
        except GatewayError as e:
            if self._is_current(request):
                self._fail(request, friendly_error_message(e, SEARCH_FAILED_MESSAGE))
            return
        except Exception:
            logger.exception("User search crashed.")
            if self._is_current(request):
                self._fail(request, SEARCH_FAILED_MESSAGE)
            return

        if not self._is_current(request):
            logger.debug("Dropping late user search result: token=%s", request.token)
            return

        filtered = filter_by_scope(raw, self.search_scope, department_name=self._session.department_name)
        logger.debug("User search results: raw=%d visible=%d", len(raw), len(filtered))
        self._cache.put(key, filtered)
        self._resolve(request, tuple(filtered), query)

    def _resolve(self, request: SearchRequest, users: tuple[SearchedUser, ...], query: SearchQuery) -> None:
        request.phase = SearchPhase.RESOLVED
        self.users = users
        self.error = None
        self.loading = False
        self.excluded_count = self._excluded_hint(query, len(users))
        self._notify()

    def _fail(self, request: SearchRequest, message: str) -> None:
        request.phase = SearchPhase.FAILED
        self.users = ()
        self.error = message
        self.loading = False
        self._notify()
