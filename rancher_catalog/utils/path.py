"""Filesystem path helpers."""

from __future__ import annotations

from pathlib import Path


def normalise_directory(value: Path | str | None) -> Path:
    """Return ``value`` as an absolute path, defaulting to the current directory."""
    if value is None:
        return Path.cwd().resolve()
    return Path(value).expanduser().resolve(strict=False)


__all__ = ["normalise_directory"]
