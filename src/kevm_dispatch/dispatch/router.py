"""Backend resolution and the subcommand/backend compatibility matrix."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from kevm_dispatch.dispatch.actions import run_kast, run_klab, run_krun, run_proof
from kevm_dispatch.dispatch.environment import DispatchConfig
from kevm_dispatch.dispatch.errors import RoutingError, TargetNotFoundError, UnsupportedBackendError
from kevm_dispatch.dispatch.interpret import INTERPRETERS, run_interpret
from kevm_dispatch.dispatch.models import Action, Backend, Invocation, Subcommand
from kevm_dispatch.dispatch.tools import ToolRunner

LOGGER = logging.getLogger(__name__)

BACKEND_FLAG = "--backend"
STDIN_TARGET = "-"

ALL_BACKENDS = tuple(Backend)

ROUTES: dict[tuple[Subcommand, Backend], Action] = {
    **{(Subcommand.RUN, backend): Action.RUN for backend in ALL_BACKENDS},
    **{(Subcommand.KAST, backend): Action.KAST for backend in ALL_BACKENDS},
    **{(Subcommand.INTERPRET, backend): Action.INTERPRET for backend in INTERPRETERS},
    (Subcommand.PROVE, Backend.JAVA): Action.PROVE,
    (Subcommand.PROVE, Backend.HASKELL): Action.PROVE,
    (Subcommand.KLAB_RUN, Backend.JAVA): Action.KLAB,
    (Subcommand.KLAB_PROVE, Backend.JAVA): Action.KLAB,
}


def default_backend(subcommand: Subcommand) -> Backend:
    """Backend implied by the subcommand alone."""

    if subcommand is Subcommand.PROVE or subcommand.is_klab:
        return Backend.JAVA
    return Backend.OCAML


def parse_subcommand(token: str) -> Subcommand:
    try:
        return Subcommand(token)
    except ValueError as exc:
        raise RoutingError(f"unknown subcommand: {token!r}") from exc


def parse_backend(token: str) -> Backend:
    try:
        return Backend(token)
    except ValueError as exc:
        raise RoutingError(f"unknown backend: {token!r}") from exc


def parse_invocation(subcommand_token: str, args: Sequence[str]) -> Invocation:
    """Interpret ``<subcommand> [--backend NAME] <file> [args...]``.

    The backend flag is only recognised as the first token after the
    subcommand; anywhere else it is passed through to the tool.
    """

    subcommand = parse_subcommand(subcommand_token)
    remaining = list(args)
    backend = default_backend(subcommand)
    unrecognised_backend: str | None = None
    if remaining and remaining[0] == BACKEND_FLAG:
        if len(remaining) < 2:
            raise RoutingError(f"{BACKEND_FLAG} requires a value")
        try:
            backend = parse_backend(remaining[1])
        except RoutingError:
            # Rejected in resolve_action, after the target has been checked.
            unrecognised_backend = remaining[1]
        remaining = remaining[2:]
    if not remaining:
        raise RoutingError(f"{subcommand.value} requires a target file")
    target, *extra_args = remaining
    return Invocation(
        subcommand=subcommand,
        backend=backend,
        target_path=Path(target),
        extra_args=tuple(extra_args),
        unrecognised_backend=unrecognised_backend,
    )


def resolve_action(invocation: Invocation) -> Action:
    """Look the pair up in the compatibility matrix.

    Unknown backend names are a help request, except for ``interpret``
    where any backend without an interpreter binary is fatal.
    """

    if invocation.unrecognised_backend is not None:
        if invocation.subcommand is Subcommand.INTERPRET:
            raise UnsupportedBackendError("interpreter", invocation.unrecognised_backend)
        raise RoutingError(f"unknown backend: {invocation.unrecognised_backend!r}")
    if invocation.subcommand is Subcommand.INTERPRET and invocation.backend not in INTERPRETERS:
        raise UnsupportedBackendError("interpreter", invocation.backend.value)
    action = ROUTES.get((invocation.subcommand, invocation.backend))
    if action is None:
        raise RoutingError(
            f"no route for subcommand={invocation.subcommand.value} backend={invocation.backend.value}"
        )
    return action


class Router:
    """Validate an invocation and hand it to exactly one action."""

    def __init__(
        self,
        config: DispatchConfig,
        runner: ToolRunner | None = None,
        scratch_dir: Path | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.config = config
        self.runner = runner or ToolRunner()
        self.scratch_dir = scratch_dir
        self.logger = logger or LOGGER

    def dispatch(self, invocation: Invocation) -> int:
        """Return 0 on success; failures surface as ``DispatchError`` subclasses."""

        if not invocation.target_path.is_file():
            raise TargetNotFoundError(invocation.target_path)
        action = resolve_action(invocation)
        self.logger.info(
            "dispatch.route subcommand=%s backend=%s action=%s target=%s",
            invocation.subcommand.value,
            invocation.backend.value,
            action.value,
            invocation.target_path,
        )

        if action is Action.RUN:
            return run_krun(self.config, invocation, self.runner)
        if action is Action.KAST:
            return run_kast(self.config, invocation, self.runner)
        if action is Action.INTERPRET:
            run_interpret(self.config, invocation, self.runner, scratch_dir=self.scratch_dir, logger=self.logger)
            return 0
        if action is Action.PROVE:
            return run_proof(self.config, invocation, self.runner)
        return run_klab(self.config, invocation, self.runner, dispatch_inner=self.dispatch, logger=self.logger)


def dispatch(
    invocation: Invocation,
    config: DispatchConfig,
    runner: ToolRunner | None = None,
) -> int:
    """Convenience wrapper around ``Router.dispatch``."""

    return Router(config, runner=runner).dispatch(invocation)
