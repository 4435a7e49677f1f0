# src/taskboard/core/listeners.py

from __future__ import annotations

import logging
from collections.abc import Callable

from .ports import StateListener

logger = logging.getLogger(__name__)


class ListenerSet:
    """State-change listeners of one component. A failing listener is logged and skipped."""

    def __init__(self, owner: str) -> None:
        self._owner = owner
        self._listeners: list[StateListener] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def add(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def notify(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("%s listener failed.", self._owner)

    def clear(self) -> None:
        self._listeners.clear()
