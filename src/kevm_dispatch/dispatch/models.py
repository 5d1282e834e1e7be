"""Typed models for invocations, symbolic constants and interpreter results."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class Subcommand(str, Enum):
    """User-facing dispatcher subcommands."""

    RUN = "run"
    KAST = "kast"
    INTERPRET = "interpret"
    PROVE = "prove"
    KLAB_RUN = "klab-run"
    KLAB_PROVE = "klab-prove"

    @property
    def is_klab(self) -> bool:
        return self.value.startswith("klab")


class Backend(str, Enum):
    """Execution backends of the semantics toolchain."""

    OCAML = "ocaml"
    JAVA = "java"
    LLVM = "llvm"
    HASKELL = "haskell"


class Action(str, Enum):
    """Named dispatch targets selected by the compatibility matrix."""

    RUN = "run"
    KAST = "kast"
    INTERPRET = "interpret"
    PROVE = "prove"
    KLAB = "klab"


@dataclass(frozen=True, slots=True)
class Invocation:
    """One resolved dispatcher invocation."""

    subcommand: Subcommand
    backend: Backend
    target_path: Path
    extra_args: tuple[str, ...] = ()
    unrecognised_backend: str | None = None


@dataclass(frozen=True, slots=True)
class SymbolicConstants:
    """MODE and SCHEDULE tokens in the parser's constructor-application syntax."""

    mode: str
    schedule: str

    @classmethod
    def from_names(cls, mode: str, schedule: str) -> "SymbolicConstants":
        """Wrap raw names; schedules carry the ``_EVM`` tag."""

        return cls(mode=wrap_constant(mode), schedule=wrap_constant(f"{schedule}_EVM"))


@dataclass(frozen=True, slots=True)
class TempResource:
    """Input/output scratch files owned by one interpreter invocation."""

    input_path: Path
    output_path: Path


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Exit status and output sink of one interpreter run."""

    exit_status: int
    output_path: Path

    @property
    def succeeded(self) -> bool:
        return self.exit_status == 0


def wrap_constant(name: str) -> str:
    """Render ``name`` as a nullary constructor application, e.g. ```NORMAL`(.KList)``."""

    return f"`{name}`(.KList)"
