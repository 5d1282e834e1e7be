"""Dispatcher settings: toolchain directories, MODE/SCHEDULE names, tool binaries.

Values come from `configs/settings.yaml`, overridden by `KEVM_*` variables
and the unprefixed toolchain variables (MODE, SCHEDULE, K_RELEASE, KLAB_OUT).
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import ClassVar, Literal

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_SETTINGS_FILE = Path("configs/settings.yaml")
SETTINGS_FILE_ENV = "KEVM_SETTINGS_FILE"


class ToolsConfig(BaseModel):
    """Executable names of the external toolchain collaborators."""

    krun: str = "krun"
    kast: str = "kast"
    kprove: str = "kprove"
    klab: str = "klab"
    kast_json: str = "kast-json.py"
    verification_module: str = "VERIFICATION"


class LoggingConfig(BaseModel):
    """Console and file logging switches."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    file: Path | None = None


class AppSettings(BaseSettings):
    """Settings read once per `kevm` invocation and frozen into a DispatchConfig."""

    _yaml_file_override: ClassVar[Path | None] = None

    mode: str = Field(default="NORMAL", validation_alias=AliasChoices("MODE", "mode"))
    schedule: str = Field(default="BYZANTIUM", validation_alias=AliasChoices("SCHEDULE", "schedule"))
    kevm_dir: Path = Field(default=Path("."), validation_alias=AliasChoices("KEVM_DIR", "kevm_dir"))
    build_dir: Path = Path(".build")
    defn_dir: Path | None = None
    release_dir: Path | None = Field(
        default=None,
        validation_alias=AliasChoices("K_RELEASE", "KEVM_RELEASE_DIR", "release_dir"),
    )
    klab_out: Path | None = Field(default=None, validation_alias=AliasChoices("KLAB_OUT", "klab_out"))
    klab_stack_size: str = "500m"
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="KEVM_",
        env_nested_delimiter="__",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("mode", "schedule")
    @classmethod
    def _strip_token(cls, value: str) -> str:
        return value.strip()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Layer order: init kwargs, environment, .env, settings YAML."""

        yaml_file = resolve_settings_file(cls._yaml_file_override)
        yaml_settings = YamlConfigSettingsSource(settings_cls, yaml_file=yaml_file)
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            yaml_settings,
            file_secret_settings,
        )

    def resolved(self, project_root: Path) -> "AppSettings":
        """Anchor relative directories at the checkout and derive defn, release, klab and log paths.

        Applying it twice is a no-op, so settings built directly (tests,
        library callers) can be passed through it again.
        """

        def anchor(path: Path, base: Path) -> Path:
            return path if path.is_absolute() else (base / path).resolve()

        kevm_dir = anchor(self.kevm_dir, project_root)
        build_dir = anchor(self.build_dir, kevm_dir)
        defn_dir = anchor(self.defn_dir, kevm_dir) if self.defn_dir is not None else build_dir / "defn"
        release_dir = (
            anchor(self.release_dir, kevm_dir)
            if self.release_dir is not None
            else build_dir / "k" / "k-distribution" / "target" / "release" / "k"
        )
        klab_out = anchor(self.klab_out, kevm_dir) if self.klab_out is not None else build_dir / "klab"
        log_file = self.logging.file
        log_file = anchor(log_file, kevm_dir) if log_file is not None else build_dir / "logs" / "kevm.log"
        return self.model_copy(
            update={
                "kevm_dir": kevm_dir,
                "build_dir": build_dir,
                "defn_dir": defn_dir,
                "release_dir": release_dir,
                "klab_out": klab_out,
                "logging": self.logging.model_copy(update={"file": log_file}),
            }
        )

    def as_dict(self) -> dict[str, object]:
        """JSON-friendly dump rendered by `kevm show-config`."""

        return self.model_dump(mode="json")


def find_project_root(start: Path | None = None) -> Path:
    """Walk upward from the working directory to the checkout holding `configs/settings.yaml`."""

    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / DEFAULT_SETTINGS_FILE).exists():
            return candidate
    return current


def resolve_settings_file(override: Path | None = None) -> Path:
    """Pick the settings YAML: `--config-file`, then `KEVM_SETTINGS_FILE`, then the checkout default."""

    chosen = override
    if chosen is None:
        env_value = os.getenv(SETTINGS_FILE_ENV)
        if env_value:
            chosen = Path(env_value)
    if chosen is None:
        chosen = DEFAULT_SETTINGS_FILE

    if not chosen.is_absolute():
        chosen = (find_project_root() / chosen).resolve()
    return chosen


def load_settings(config_file: Path | None = None) -> AppSettings:
    """Load dispatcher settings with directories anchored at the checkout holding the YAML."""

    settings_file = resolve_settings_file(config_file)
    project_root = settings_file.parent.parent.resolve()
    AppSettings._yaml_file_override = settings_file
    try:
        settings = AppSettings()
    finally:
        AppSettings._yaml_file_override = None
    return settings.resolved(project_root=project_root)
