"""Blocking subprocess seam for external toolchain binaries."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import IO

from kevm_dispatch.dispatch.errors import ToolFailure

LOGGER = logging.getLogger(__name__)

TOOL_NOT_RUNNABLE_STATUS = 127


class ToolRunner:
    """Run one external tool to completion and report its exit status."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or LOGGER

    def call(
        self,
        argv: Sequence[str | Path],
        *,
        env: Mapping[str, str] | None = None,
        stdout: IO[bytes] | None = None,
    ) -> int:
        """Block until the tool exits and return its status without raising on non-zero."""

        command = [str(part) for part in argv]
        self.logger.info("tool.call argv=%s", command)
        try:
            completed = subprocess.run(command, env=dict(env) if env is not None else None, stdout=stdout, check=False)
        except OSError as exc:
            self.logger.error("tool.not_runnable tool=%s error=%s", command[0], exc)
            raise ToolFailure(command[0], TOOL_NOT_RUNNABLE_STATUS, started=False) from exc
        self.logger.info("tool.exit tool=%s status=%s", command[0], completed.returncode)
        return completed.returncode

    def check_call(
        self,
        argv: Sequence[str | Path],
        *,
        env: Mapping[str, str] | None = None,
        stdout: IO[bytes] | None = None,
    ) -> int:
        """Like ``call`` but a non-zero status becomes ``ToolFailure`` carrying that status."""

        status = self.call(argv, env=env, stdout=stdout)
        if status != 0:
            raise ToolFailure(str(argv[0]), status)
        return status
