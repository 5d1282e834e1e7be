"""Pass-through actions: run, kast, prove and the klab debugging loop."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from kevm_dispatch.dispatch.environment import DispatchConfig
from kevm_dispatch.dispatch.errors import ToolFailure
from kevm_dispatch.dispatch.models import Backend, Invocation, Subcommand
from kevm_dispatch.dispatch.tools import ToolRunner
from kevm_dispatch.utils.paths import ensure_directories

LOGGER = logging.getLogger(__name__)

DEFAULT_KAST_OUTPUT = "kast"
JSON_SUFFIX = ".json"
KLAB_SPEC_SUFFIX = "-spec.k"

KLAB_STATE_LOG_EVENTS = (
    "OPEN",
    "EXECINIT",
    "SEARCHINIT",
    "REACHINIT",
    "REACHTARGET",
    "REACHPROVED",
    "RULE",
    "SRULE",
    "NODE",
    "CLOSE",
)
KLAB_OUTPUT_FLAGS = (
    "--output-flatten",
    "_Map_ #And",
    "--output-tokenize",
    "#And _==K_ <k> #unsigned",
    "--output-omit",
    "<programBytes> <program> <code>",
    "--output-not-tokenize",
    "#mkCall ________EVM #callWithCode_________EVM",
)


def _raise_on_failure(tool: str, status: int) -> int:
    if status != 0:
        raise ToolFailure(tool, status)
    return status


def krun_argv(config: DispatchConfig, invocation: Invocation) -> list[str]:
    """Direct execution with MODE/SCHEDULE bound as parser constants."""

    constants = config.constants
    return [
        config.tools.krun,
        "--directory",
        str(config.backend_dir(invocation.backend)),
        f"-cSCHEDULE={constants.schedule}",
        "-pSCHEDULE=printf %s",
        f"-cMODE={constants.mode}",
        "-pMODE=printf %s",
        str(invocation.target_path),
        *invocation.extra_args,
    ]


def kast_argv(
    config: DispatchConfig,
    backend: Backend,
    target_path: Path,
    output_mode: str = DEFAULT_KAST_OUTPUT,
    extra_args: Sequence[str] = (),
) -> list[str]:
    """Format conversion; JSON test fixtures go through the local translation script."""

    if target_path.suffix == JSON_SUFFIX and output_mode in {"kast", "kore"}:
        script = config.kevm_dir / config.tools.kast_json
        argv = [str(script)]
        if output_mode == "kore":
            argv.append("--kore")
        return [*argv, str(target_path), config.constants.schedule, config.constants.mode]
    return [
        config.tools.kast,
        "--directory",
        str(config.backend_dir(backend)),
        str(target_path),
        "--output",
        output_mode,
        *extra_args,
    ]


def kprove_argv(config: DispatchConfig, invocation: Invocation) -> list[str]:
    return [
        config.tools.kprove,
        "--directory",
        str(config.backend_dir(invocation.backend)),
        "-m",
        config.tools.verification_module,
        str(invocation.target_path),
        *invocation.extra_args,
    ]


def run_krun(config: DispatchConfig, invocation: Invocation, runner: ToolRunner) -> int:
    return _raise_on_failure(config.tools.krun, runner.call(krun_argv(config, invocation), env=config.tool_env()))


def run_kast(config: DispatchConfig, invocation: Invocation, runner: ToolRunner) -> int:
    """Convert the target; the first extra argument, if any, selects the output mode."""

    output_mode = invocation.extra_args[0] if invocation.extra_args else DEFAULT_KAST_OUTPUT
    argv = kast_argv(
        config,
        invocation.backend,
        invocation.target_path,
        output_mode=output_mode,
        extra_args=invocation.extra_args[1:],
    )
    return _raise_on_failure(argv[0], runner.call(argv, env=config.tool_env()))


def run_proof(config: DispatchConfig, invocation: Invocation, runner: ToolRunner) -> int:
    return _raise_on_failure(
        config.tools.kprove,
        runner.call(kprove_argv(config, invocation), env=config.tool_env()),
    )


def klab_log_id(target_path: Path) -> str:
    """State-log identifier: the target's basename without its ``-spec.k`` suffix."""

    return target_path.name.removesuffix(KLAB_SPEC_SUFFIX)


def klab_inner_args(config: DispatchConfig, log_id: str) -> tuple[str, ...]:
    return (
        "--state-log",
        "--state-log-path",
        str(config.klab_out / "data"),
        "--state-log-id",
        log_id,
        "--state-log-events",
        ",".join(KLAB_STATE_LOG_EVENTS),
        *KLAB_OUTPUT_FLAGS,
    )


def best_effort(step: Callable[[], int], *, logger: logging.Logger | None = None) -> int:
    """Run ``step`` and swallow a ``ToolFailure``, returning its status instead.

    Only the klab loop uses this: the debugger must still open whatever
    partial state log the inner run produced.
    """

    effective_logger = logger or LOGGER
    try:
        return step()
    except ToolFailure as exc:
        effective_logger.warning("klab.inner_failed tool=%s status=%s; continuing to debugger", exc.tool, exc.status)
        return exc.status


def run_klab(
    config: DispatchConfig,
    invocation: Invocation,
    runner: ToolRunner,
    dispatch_inner: Callable[[Invocation], int],
    logger: logging.Logger | None = None,
) -> int:
    """Record a java state log via the inner run/prove, then open it in the debugger."""

    effective_logger = logger or LOGGER
    inner_subcommand = Subcommand.RUN if invocation.subcommand is Subcommand.KLAB_RUN else Subcommand.PROVE
    log_id = klab_log_id(invocation.target_path)
    ensure_directories([config.klab_out / "data"])
    inner = Invocation(
        subcommand=inner_subcommand,
        backend=Backend.JAVA,
        target_path=invocation.target_path,
        extra_args=(*klab_inner_args(config, log_id), *invocation.extra_args),
    )
    effective_logger.info("klab.inner subcommand=%s log_id=%s", inner_subcommand.value, log_id)
    best_effort(lambda: dispatch_inner(inner), logger=effective_logger)

    env = config.tool_env(KLAB_OUT=str(config.klab_out), K_OPTS=f"-Xss{config.klab_stack_size}")
    return _raise_on_failure(config.tools.klab, runner.call([config.tools.klab, "debug", "--tty", log_id], env=env))
