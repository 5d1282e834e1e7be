"""Shared fixtures for dispatcher tests."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import IO

import pytest

from kevm_dispatch.config import AppSettings
from kevm_dispatch.dispatch.environment import DispatchConfig, build_dispatch_config
from kevm_dispatch.dispatch.tools import ToolRunner


class RecordingRunner(ToolRunner):
    """ToolRunner double that records argv instead of starting processes."""

    def __init__(
        self,
        statuses: Mapping[str, int] | None = None,
        on_call: Callable[[list[str]], None] | None = None,
        output: bytes = b"",
    ) -> None:
        super().__init__()
        self.statuses = dict(statuses or {})
        self.on_call = on_call
        self.output = output
        self.calls: list[list[str]] = []
        self.envs: list[dict[str, str]] = []

    def call(
        self,
        argv: Sequence[str | Path],
        *,
        env: Mapping[str, str] | None = None,
        stdout: IO[bytes] | None = None,
    ) -> int:
        command = [str(part) for part in argv]
        self.calls.append(command)
        self.envs.append(dict(env or {}))
        if stdout is not None:
            stdout.write(b"serialized-program\n")
        if "--output-file" in command:
            Path(command[command.index("--output-file") + 1]).write_bytes(self.output)
        elif Path(command[0]).name == "interpreter":
            Path(command[-1]).write_bytes(self.output)
        if self.on_call is not None:
            self.on_call(command)
        return self.statuses.get(Path(command[0]).name, 0)

    def tools_called(self) -> list[str]:
        return [Path(command[0]).name for command in self.calls]


@pytest.fixture
def settings(tmp_path: Path) -> AppSettings:
    return AppSettings(
        mode="NORMAL",
        schedule="BYZANTIUM",
        kevm_dir=tmp_path,
        build_dir=tmp_path / ".build",
    ).resolved(project_root=tmp_path)


@pytest.fixture
def dispatch_config(settings: AppSettings) -> DispatchConfig:
    return build_dispatch_config(settings, base_env={"PATH": "/usr/bin"})


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def program(tmp_path: Path) -> Path:
    path = tmp_path / "add0.json"
    path.write_text('{"add0": {}}\n', encoding="utf-8")
    return path


@pytest.fixture
def spec_file(tmp_path: Path) -> Path:
    path = tmp_path / "sum-to-n-spec.k"
    path.write_text("module SUM-TO-N-SPEC\nendmodule\n", encoding="utf-8")
    return path
