"""Direct interpretation through the ocaml and llvm backend interpreters."""

from __future__ import annotations

import logging
import signal
import sys
import tempfile
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from types import FrameType
from typing import Any

from kevm_dispatch.dispatch.actions import kast_argv
from kevm_dispatch.dispatch.environment import DispatchConfig
from kevm_dispatch.dispatch.errors import ToolFailure, UnsupportedBackendError
from kevm_dispatch.dispatch.models import Backend, ExecutionResult, Invocation, TempResource
from kevm_dispatch.dispatch.tools import ToolRunner

LOGGER = logging.getLogger(__name__)

INTERPRETER_BINARY = "interpreter"
OCAML_DEFINITION = "realdef.cma"
OCAML_INITIALIZER = "initKevmCell"
LLVM_RUN_TO_COMPLETION = "-1"
SIGTERM_EXIT_STATUS = 128 + signal.SIGTERM


def _terminate(signum: int, frame: FrameType | None) -> None:
    raise SystemExit(SIGTERM_EXIT_STATUS)


@contextmanager
def scratch_files(
    prefix: str = "kevm_interpret_",
    directory: Path | None = None,
    logger: logging.Logger | None = None,
) -> Iterator[TempResource]:
    """Own an (input, output) scratch pair; both are removed on every exit path.

    SIGINT already surfaces as ``KeyboardInterrupt``. While the pair is held
    SIGTERM is turned into ``SystemExit`` so it unwinds through the same
    release path.
    """

    effective_logger = logger or LOGGER
    previous_handler: Callable[[int, FrameType | None], Any] | int | None = None
    in_main_thread = threading.current_thread() is threading.main_thread()
    if in_main_thread:
        previous_handler = signal.signal(signal.SIGTERM, _terminate)
    try:
        with tempfile.TemporaryDirectory(prefix=prefix, dir=directory) as tmp_dir:
            resource = TempResource(
                input_path=Path(tmp_dir) / "input",
                output_path=Path(tmp_dir) / "output",
            )
            resource.input_path.touch()
            resource.output_path.touch()
            effective_logger.debug("interpret.scratch_acquired dir=%s", tmp_dir)
            yield resource
        effective_logger.debug("interpret.scratch_released dir=%s", tmp_dir)
    finally:
        if in_main_thread:
            signal.signal(signal.SIGTERM, previous_handler if previous_handler is not None else signal.SIG_DFL)


def _ocaml_command(config: DispatchConfig, scratch: TempResource) -> list[str]:
    kompiled = config.interpreter_dir(Backend.OCAML)
    return [
        str(kompiled / INTERPRETER_BINARY),
        str(kompiled / OCAML_DEFINITION),
        "-c",
        "PGM",
        str(scratch.input_path),
        "textfile",
        "-c",
        "SCHEDULE",
        config.constants.schedule,
        "text",
        "-c",
        "MODE",
        config.constants.mode,
        "text",
        "--initializer",
        OCAML_INITIALIZER,
        "--output-file",
        str(scratch.output_path),
    ]


def _llvm_command(config: DispatchConfig, scratch: TempResource) -> list[str]:
    kompiled = config.interpreter_dir(Backend.LLVM)
    return [
        str(kompiled / INTERPRETER_BINARY),
        str(scratch.input_path),
        LLVM_RUN_TO_COMPLETION,
        str(scratch.output_path),
    ]


# backend -> (serialized input format, interpreter command builder)
INTERPRETERS: dict[Backend, tuple[str, Callable[[DispatchConfig, TempResource], list[str]]]] = {
    Backend.OCAML: ("kast", _ocaml_command),
    Backend.LLVM: ("kore", _llvm_command),
}


def run_interpret(
    config: DispatchConfig,
    invocation: Invocation,
    runner: ToolRunner,
    scratch_dir: Path | None = None,
    logger: logging.Logger | None = None,
) -> ExecutionResult:
    """Serialize the target, run the backend interpreter and propagate its status.

    On a non-zero interpreter status the captured output is written to stderr
    once and ``ToolFailure`` carries that exact status to the caller. Scratch
    files are gone before either happens.
    """

    effective_logger = logger or LOGGER
    backend = invocation.backend
    if backend not in INTERPRETERS:
        raise UnsupportedBackendError("interpreter", backend.value)
    input_format, build_command = INTERPRETERS[backend]

    captured_output = ""
    with scratch_files(directory=scratch_dir, logger=effective_logger) as scratch:
        with scratch.input_path.open("wb") as handle:
            runner.check_call(
                kast_argv(config, backend, invocation.target_path, output_mode=input_format),
                env=config.tool_env(),
                stdout=handle,
            )
        command = build_command(config, scratch)
        status = runner.call(command, env=config.tool_env())
        result = ExecutionResult(exit_status=status, output_path=scratch.output_path)
        if not result.succeeded:
            captured_output = scratch.output_path.read_text(encoding="utf-8", errors="replace")

    effective_logger.info("interpret.finished backend=%s status=%s", backend.value, result.exit_status)
    if not result.succeeded:
        sys.stderr.write(captured_output)
        sys.stderr.flush()
        raise ToolFailure(command[0], result.exit_status)
    return result
