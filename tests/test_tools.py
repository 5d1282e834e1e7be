from __future__ import annotations

import sys
from pathlib import Path

import pytest

from kevm_dispatch.dispatch.errors import ToolFailure
from kevm_dispatch.dispatch.tools import TOOL_NOT_RUNNABLE_STATUS, ToolRunner


def test_call_returns_nonzero_status_without_raising() -> None:
    assert ToolRunner().call([sys.executable, "-c", "raise SystemExit(3)"]) == 3


def test_check_call_raises_with_status() -> None:
    with pytest.raises(ToolFailure) as excinfo:
        ToolRunner().check_call([sys.executable, "-c", "raise SystemExit(4)"])
    assert excinfo.value.status == 4
    assert excinfo.value.started


def test_stdout_is_redirected_to_handle(tmp_path: Path) -> None:
    sink = tmp_path / "out.kast"
    with sink.open("wb") as handle:
        ToolRunner().call([sys.executable, "-c", "print('kast')"], stdout=handle)
    assert sink.read_text(encoding="utf-8").strip() == "kast"


def test_env_is_passed_to_tool(tmp_path: Path) -> None:
    sink = tmp_path / "env.txt"
    with sink.open("wb") as handle:
        ToolRunner().call(
            [sys.executable, "-c", "import os; print(os.environ['SCHEDULE_TAG'])"],
            env={"SCHEDULE_TAG": "LONDON_EVM"},
            stdout=handle,
        )
    assert sink.read_text(encoding="utf-8").strip() == "LONDON_EVM"


def test_missing_binary_could_not_run(tmp_path: Path) -> None:
    with pytest.raises(ToolFailure) as excinfo:
        ToolRunner().call([str(tmp_path / "no-such-krun")])
    assert excinfo.value.status == TOOL_NOT_RUNNABLE_STATUS
    assert not excinfo.value.started
