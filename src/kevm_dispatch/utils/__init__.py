"""Shared utility helpers."""

from kevm_dispatch.utils.paths import ensure_directories, spooled_stdin

__all__ = [
    "ensure_directories",
    "spooled_stdin",
]
