"""Backend routing and tool invocation package."""

from kevm_dispatch.dispatch.environment import DispatchConfig, build_dispatch_config
from kevm_dispatch.dispatch.errors import (
    ConfigurationError,
    DispatchError,
    RoutingError,
    TargetNotFoundError,
    ToolFailure,
    UnsupportedBackendError,
)
from kevm_dispatch.dispatch.interpret import run_interpret, scratch_files
from kevm_dispatch.dispatch.models import (
    Action,
    Backend,
    ExecutionResult,
    Invocation,
    Subcommand,
    SymbolicConstants,
    TempResource,
)
from kevm_dispatch.dispatch.router import ROUTES, Router, dispatch, parse_invocation, resolve_action
from kevm_dispatch.dispatch.tools import ToolRunner

__all__ = [
    "Action",
    "Backend",
    "ConfigurationError",
    "DispatchConfig",
    "DispatchError",
    "ExecutionResult",
    "Invocation",
    "ROUTES",
    "Router",
    "RoutingError",
    "Subcommand",
    "SymbolicConstants",
    "TargetNotFoundError",
    "TempResource",
    "ToolFailure",
    "ToolRunner",
    "UnsupportedBackendError",
    "build_dispatch_config",
    "dispatch",
    "parse_invocation",
    "resolve_action",
    "run_interpret",
    "scratch_files",
]
