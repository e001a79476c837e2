"""Utility helpers for the :mod:`rancher_catalog` package."""

from __future__ import annotations

from .path import normalise_directory
from .process import format_command, redact

__all__ = ["format_command", "normalise_directory", "redact"]
