# src/taskboard/errors.py

"""
Error taxonomy shared by the gateway, the task store and the search coordinator.

- ValidationError: local, raised before any request is made.
- GatewayRejectedError: the server answered with a non-2xx status.
- GatewayTransportError: no response at all (connect/read timeout, DNS, refused).

Cancellation is not part of this hierarchy: superseded searches end with
asyncio.CancelledError and never surface as an error state.
"""

from __future__ import annotations


class TaskboardError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(TaskboardError):
    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.field = field


class GatewayError(TaskboardError):
    """Any failure of a remote call."""

    def __init__(self, message: str, *, operation: str = "") -> None:
        super().__init__(message)
        self.operation = operation


class GatewayRejectedError(GatewayError):
    def __init__(self, status: int, detail: str, *, operation: str = "") -> None:
        super().__init__(detail, operation=operation)
        self.status = int(status)
        self.detail = detail

    @property
    def is_auth_error(self) -> bool:
        return self.status in (401, 403)

    def __repr__(self) -> str:
        return f"GatewayRejectedError(status={self.status}, detail={self.detail!r})"


class GatewayTransportError(GatewayError):
    pass


def friendly_error_message(err: BaseException, fallback: str = "Something went wrong.") -> str:
    """Turn any engine error into the text shown to the user."""
    if isinstance(err, GatewayTransportError):
        return "The task service is unreachable. Check your connection and try again."
    if isinstance(err, GatewayRejectedError):
        if err.is_auth_error:
            return err.detail or "You are not allowed to do that. Try signing in again."
        return err.detail or fallback
    msg = str(err).strip()
    return msg or fallback
