"""Template rendering for catalog entries."""

from __future__ import annotations

import logging
import os
import tempfile
import typing as typ
from pathlib import Path

from jinja2 import (
    Environment,
    FileSystemLoader,
    StrictUndefined,
    Template,
    TemplateError,
    TemplateNotFound,
)

LOGGER = logging.getLogger(__name__)


class TemplateRenderError(RuntimeError):
    """Raised when a template cannot be loaded, rendered, or written."""


def load_template(template_path: Path) -> Template:
    """Load the Jinja2 template stored at ``template_path``."""
    if not template_path.is_file():
        message = f"Template not found: {template_path}"
        raise TemplateRenderError(message)
    environment = Environment(
        loader=FileSystemLoader(str(template_path.parent)),
        undefined=StrictUndefined,
        autoescape=False,
        keep_trailing_newline=True,
    )
    try:
        return environment.get_template(template_path.name)
    except TemplateNotFound as exc:  # pragma: no cover - checked above
        message = f"Template not found: {template_path}"
        raise TemplateRenderError(message) from exc
    except TemplateError as exc:
        message = f"Failed to parse template {template_path}: {exc}"
        raise TemplateRenderError(message) from exc


def atomic_write_text(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` through a temporary file in the same directory."""
    descriptor, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(descriptor, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        Path(tmp_name).chmod(0o644)
        Path(tmp_name).replace(path)
    finally:
        Path(tmp_name).unlink(missing_ok=True)


def render_to_file(
    template_path: Path,
    destination: Path,
    variables: typ.Mapping[str, typ.Any],
) -> Path:
    """Render ``template_path`` with ``variables`` and overwrite ``destination``."""
    template = load_template(template_path)
    try:
        rendered = template.render(**variables)
    except TemplateError as exc:
        message = f"Failed to render template {template_path}: {exc}"
        raise TemplateRenderError(message) from exc
    try:
        atomic_write_text(destination, rendered)
    except OSError as exc:
        message = f"Failed to write {destination}: {exc}"
        raise TemplateRenderError(message) from exc
    LOGGER.info("Rendered %s to %s", template_path.name, destination)
    return destination


__all__ = [
    "TemplateRenderError",
    "atomic_write_text",
    "load_template",
    "render_to_file",
]
