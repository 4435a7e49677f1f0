# src/taskboard/core/session.py

"""
Session context: who is calling and with which credential.

Passed explicitly into the task store, the search coordinator and the role
policy instead of being read from ambient state.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from ..config import Settings
from ..policy import roles
from ..policy.roles import Capabilities, FetchStrategy, Role, SearchScope


@dataclass(frozen=True, slots=True)
class SessionContext:
    role: str | None
    token: str | None = None
    user_id: str | None = None
    department_name: str | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> SessionContext:
        return cls(
            role=settings.role,
            token=settings.api_token,
            user_id=settings.user_id,
            department_name=settings.department_name,
        )

    @property
    def normalized_role(self) -> Role | None:
        return roles.normalize_role(self.role)

    @property
    def capabilities(self) -> Capabilities:
        return roles.capabilities(self.role)

    @property
    def fetch_strategy(self) -> FetchStrategy:
        return roles.fetch_strategy(self.role)

    @property
    def search_scope(self) -> SearchScope:
        return roles.search_scope(self.role)

    def with_role(self, role: str | None) -> SessionContext:
        return replace(self, role=role)

    def describe(self) -> str:
        role = self.normalized_role
        label = role.value if role is not None else f"unknown ({self.role!r})"
        parts = [f"role={label}"]
        if self.user_id:
            parts.append(f"user={self.user_id}")
        if self.department_name:
            parts.append(f"department={self.department_name}")
        parts.append("auth=yes" if self.token else "auth=anonymous")
        return " ".join(parts)
