from __future__ import annotations

import os
import signal
from pathlib import Path

import pytest

from conftest import RecordingRunner
from kevm_dispatch.dispatch.environment import DispatchConfig
from kevm_dispatch.dispatch.errors import ToolFailure, UnsupportedBackendError
from kevm_dispatch.dispatch.interpret import SIGTERM_EXIT_STATUS, run_interpret, scratch_files
from kevm_dispatch.dispatch.models import Backend, Invocation, Subcommand


@pytest.fixture
def scratch_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "scratch"
    directory.mkdir()
    return directory


def _interpret(program: Path, backend: Backend = Backend.OCAML) -> Invocation:
    return Invocation(Subcommand.INTERPRET, backend, program)


def test_ocaml_interpreter_command(
    dispatch_config: DispatchConfig, runner: RecordingRunner, program: Path, scratch_dir: Path
) -> None:
    result = run_interpret(dispatch_config, _interpret(program), runner, scratch_dir=scratch_dir)

    assert result.exit_status == 0
    serialize, interpreter = runner.calls
    assert Path(serialize[0]).name == "kast-json.py"
    kompiled = dispatch_config.build_dir / "ocaml" / "driver-kompiled"
    assert interpreter[:5] == [str(kompiled / "interpreter"), str(kompiled / "realdef.cma"), "-c", "PGM", interpreter[4]]
    assert interpreter[5:] == [
        "textfile",
        "-c",
        "SCHEDULE",
        "`BYZANTIUM_EVM`(.KList)",
        "text",
        "-c",
        "MODE",
        "`NORMAL`(.KList)",
        "text",
        "--initializer",
        "initKevmCell",
        "--output-file",
        str(result.output_path),
    ]


def test_llvm_interpreter_runs_to_completion_on_kore_input(
    dispatch_config: DispatchConfig, runner: RecordingRunner, tmp_path: Path, scratch_dir: Path
) -> None:
    source = tmp_path / "pgm.evm"
    source.write_text("", encoding="utf-8")
    result = run_interpret(dispatch_config, _interpret(source, Backend.LLVM), runner, scratch_dir=scratch_dir)

    serialize, interpreter = runner.calls
    assert serialize[-2:] == ["--output", "kore"]
    assert interpreter[0] == str(dispatch_config.build_dir / "llvm" / "driver-kompiled" / "interpreter")
    assert interpreter[2:] == ["-1", str(result.output_path)]


def test_serialized_program_is_fed_to_interpreter(dispatch_config: DispatchConfig, program: Path, scratch_dir: Path) -> None:
    seen: list[bytes] = []

    def capture(command: list[str]) -> None:
        if Path(command[0]).name == "interpreter":
            seen.append(Path(command[4]).read_bytes())

    run_interpret(dispatch_config, _interpret(program), RecordingRunner(on_call=capture), scratch_dir=scratch_dir)
    assert seen == [b"serialized-program\n"]


@pytest.mark.parametrize("backend", [Backend.JAVA, Backend.HASKELL])
def test_unsupported_backend_allocates_nothing(
    dispatch_config: DispatchConfig, runner: RecordingRunner, program: Path, scratch_dir: Path, backend: Backend
) -> None:
    with pytest.raises(UnsupportedBackendError) as excinfo:
        run_interpret(dispatch_config, _interpret(program, backend), runner, scratch_dir=scratch_dir)
    assert excinfo.value.exit_code == 1
    assert runner.calls == []
    assert list(scratch_dir.iterdir()) == []


@pytest.mark.parametrize("status", [0, 1, 2])
def test_scratch_files_removed_for_any_status(
    dispatch_config: DispatchConfig, program: Path, scratch_dir: Path, status: int
) -> None:
    runner = RecordingRunner(statuses={"interpreter": status}, output=b"out")
    if status == 0:
        run_interpret(dispatch_config, _interpret(program), runner, scratch_dir=scratch_dir)
    else:
        with pytest.raises(ToolFailure):
            run_interpret(dispatch_config, _interpret(program), runner, scratch_dir=scratch_dir)
    assert list(scratch_dir.iterdir()) == []


def test_failure_surfaces_output_once_and_preserves_status(
    dispatch_config: DispatchConfig, program: Path, scratch_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    runner = RecordingRunner(statuses={"interpreter": 2}, output=b"<k> #halt </k>\n")

    with pytest.raises(ToolFailure) as excinfo:
        run_interpret(dispatch_config, _interpret(program), runner, scratch_dir=scratch_dir)

    assert excinfo.value.status == 2
    assert excinfo.value.exit_code == 2
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err.count("<k> #halt </k>") == 1


def test_success_prints_nothing(
    dispatch_config: DispatchConfig, program: Path, scratch_dir: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    runner = RecordingRunner(output=b"<k> . </k>\n")
    run_interpret(dispatch_config, _interpret(program), runner, scratch_dir=scratch_dir)
    captured = capsys.readouterr()
    assert captured.out == ""
    assert captured.err == ""


def test_serialization_failure_propagates_its_status(
    dispatch_config: DispatchConfig, program: Path, scratch_dir: Path
) -> None:
    runner = RecordingRunner(statuses={"kast-json.py": 5})
    with pytest.raises(ToolFailure) as excinfo:
        run_interpret(dispatch_config, _interpret(program), runner, scratch_dir=scratch_dir)
    assert excinfo.value.status == 5
    assert runner.tools_called() == ["kast-json.py"]
    assert list(scratch_dir.iterdir()) == []


def test_interrupt_mid_invocation_still_releases(
    dispatch_config: DispatchConfig, program: Path, scratch_dir: Path
) -> None:
    def interrupt(command: list[str]) -> None:
        if Path(command[0]).name == "interpreter":
            assert len(list(scratch_dir.iterdir())) == 1
            raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        run_interpret(dispatch_config, _interpret(program), RecordingRunner(on_call=interrupt), scratch_dir=scratch_dir)
    assert list(scratch_dir.iterdir()) == []


def test_sigterm_mid_invocation_still_releases(
    dispatch_config: DispatchConfig, program: Path, scratch_dir: Path
) -> None:
    def terminate(command: list[str]) -> None:
        if Path(command[0]).name == "interpreter":
            os.kill(os.getpid(), signal.SIGTERM)

    original_handler = signal.getsignal(signal.SIGTERM)
    with pytest.raises(SystemExit) as excinfo:
        run_interpret(dispatch_config, _interpret(program), RecordingRunner(on_call=terminate), scratch_dir=scratch_dir)

    assert excinfo.value.code == SIGTERM_EXIT_STATUS
    assert list(scratch_dir.iterdir()) == []
    assert signal.getsignal(signal.SIGTERM) == original_handler


def test_scratch_files_exist_only_inside_guard(scratch_dir: Path) -> None:
    with scratch_files(directory=scratch_dir) as scratch:
        assert scratch.input_path.is_file()
        assert scratch.output_path.is_file()
        assert scratch.input_path != scratch.output_path
    assert not scratch.input_path.exists()
    assert not scratch.output_path.exists()
    assert list(scratch_dir.iterdir()) == []
