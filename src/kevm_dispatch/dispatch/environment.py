"""Explicit dispatch configuration built once at startup."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import cast

from kevm_dispatch.config import AppSettings, ToolsConfig
from kevm_dispatch.dispatch.errors import ConfigurationError
from kevm_dispatch.dispatch.models import Backend, SymbolicConstants

LOGGER = logging.getLogger(__name__)

SYSTEM_LIBRARY_DIR = Path("/usr/local/lib")


@dataclass(frozen=True, slots=True)
class DispatchConfig:
    """Resolved directories, constants and subprocess environment for the router."""

    kevm_dir: Path
    build_dir: Path
    defn_dir: Path
    release_dir: Path
    klab_out: Path
    klab_stack_size: str
    constants: SymbolicConstants
    tools: ToolsConfig
    env: Mapping[str, str] = field(default_factory=dict)

    def backend_dir(self, backend: Backend) -> Path:
        """Kompiled definition directory consumed by krun/kast/kprove."""

        return self.defn_dir / backend.value

    def interpreter_dir(self, backend: Backend) -> Path:
        return self.build_dir / backend.value / "driver-kompiled"

    def tool_env(self, **overrides: str) -> dict[str, str]:
        """Copy of the subprocess environment with per-call overrides applied."""

        merged = dict(self.env)
        merged.update(overrides)
        return merged


def _prepend_search_path(existing: str | None, entries: list[Path]) -> str:
    parts = [str(entry) for entry in entries]
    if existing:
        parts.append(existing)
    return os.pathsep.join(parts)


def build_tool_env(
    base_env: Mapping[str, str],
    *,
    release_dir: Path,
    build_dir: Path,
) -> dict[str, str]:
    """Extend PATH and LD_LIBRARY_PATH with toolchain subdirectories."""

    env = dict(base_env)
    native = release_dir / "lib" / "native"
    env["PATH"] = _prepend_search_path(
        base_env.get("PATH"),
        [native / "linux", native / "linux64", release_dir / "bin"],
    )
    env["LD_LIBRARY_PATH"] = _prepend_search_path(
        base_env.get("LD_LIBRARY_PATH"),
        [native / "linux64", build_dir / "local" / "lib", SYSTEM_LIBRARY_DIR],
    )
    return env


def build_dispatch_config(
    settings: AppSettings,
    base_env: Mapping[str, str] | None = None,
) -> DispatchConfig:
    """Freeze resolved settings into the configuration passed to the router."""

    if not settings.mode:
        raise ConfigurationError("MODE must be a non-empty constant name")
    if not settings.schedule:
        raise ConfigurationError("SCHEDULE must be a non-empty constant name")

    # No-op for settings already resolved by load_settings.
    settings = settings.resolved(project_root=Path.cwd())
    release_dir = cast(Path, settings.release_dir)

    env = build_tool_env(
        os.environ if base_env is None else base_env,
        release_dir=release_dir,
        build_dir=settings.build_dir,
    )
    config = DispatchConfig(
        kevm_dir=settings.kevm_dir,
        build_dir=settings.build_dir,
        defn_dir=cast(Path, settings.defn_dir),
        release_dir=release_dir,
        klab_out=cast(Path, settings.klab_out),
        klab_stack_size=settings.klab_stack_size,
        constants=SymbolicConstants.from_names(settings.mode, settings.schedule),
        tools=settings.tools,
        env=env,
    )
    LOGGER.debug(
        "dispatch_config.built build_dir=%s defn_dir=%s release_dir=%s mode=%s schedule=%s",
        config.build_dir,
        config.defn_dir,
        config.release_dir,
        config.constants.mode,
        config.constants.schedule,
    )
    return config
