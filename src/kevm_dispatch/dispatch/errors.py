"""Dispatcher error taxonomy."""

from __future__ import annotations


class DispatchError(Exception):
    """Base class for dispatcher failures."""

    exit_code = 1


class RoutingError(DispatchError):
    """No subcommand/backend pair matched; treated as a help request."""

    exit_code = 0


class ConfigurationError(DispatchError):
    """Settings produced an unusable dispatch configuration."""


class TargetNotFoundError(DispatchError, FileNotFoundError):
    """The target program or specification file does not exist."""

    def __init__(self, path: object) -> None:
        super().__init__(f"File does not exist: {path}")
        self.path = path


class UnsupportedBackendError(DispatchError):
    """The requested operation is not defined for the chosen backend."""

    def __init__(self, operation: str, backend: str) -> None:
        super().__init__(f"Bad backend for {operation}: '{backend}'")
        self.operation = operation
        self.backend = backend


class ToolFailure(DispatchError):
    """A wrapped tool exited non-zero, or could not be started at all."""

    def __init__(self, tool: str, status: int, *, started: bool = True) -> None:
        reason = "exited with status" if started else "could not run, status"
        super().__init__(f"{tool} {reason} {status}")
        self.tool = tool
        self.status = status
        self.started = started

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        return self.status
