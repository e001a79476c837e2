"""Command implementations for :mod:`rancher_catalog`."""

from __future__ import annotations

from . import git, publish, render

__all__ = ["git", "publish", "render"]
