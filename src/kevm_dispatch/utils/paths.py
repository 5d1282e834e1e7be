"""Path and filesystem helper functions."""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO, Iterable


def ensure_directories(paths: Iterable[Path]) -> list[Path]:
    """Create all directories in the iterable if they do not exist."""

    created_or_existing: list[Path] = []
    for directory in paths:
        directory.mkdir(parents=True, exist_ok=True)
        created_or_existing.append(directory)
    return created_or_existing


@contextmanager
def spooled_stdin(stream: BinaryIO, directory: Path | None = None) -> Iterator[Path]:
    """Copy a program read from ``stream`` into a temporary file removed on exit."""

    with tempfile.TemporaryDirectory(prefix="kevm_stdin_", dir=directory) as tmp_dir:
        target = Path(tmp_dir) / "stdin"
        with target.open("wb") as handle:
            shutil.copyfileobj(stream, handle)
        yield target
