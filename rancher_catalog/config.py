"""Configuration loading for the :mod:`rancher_catalog` plugin."""

from __future__ import annotations

import dataclasses as dc
import re
import typing as typ
from collections import abc as cabc

from cyclopts.config import Toml

from rancher_catalog.utils import normalise_directory

if typ.TYPE_CHECKING:  # pragma: no cover - type checking only
    from pathlib import Path

CONFIG_FILENAME = "rancher-catalog.toml"
DEFAULT_GIT_HOST = "github.com"
DEFAULT_BRANCH = "HEAD"

REQUIRED_KEYS: typ.Final[tuple[str, ...]] = (
    "catalog_repo",
    "github_token",
    "github_user",
    "github_email",
    "template_name",
    "template_version",
)
# The access token is only read from flags or the environment.
CONFIG_TOML_KEYS: typ.Final[frozenset[str]] = frozenset(
    {
        "catalog_repo",
        "github_user",
        "github_email",
        "template_name",
        "template_version",
        "git_host",
        "branch",
        "command_timeout",
    }
)
_CATALOG_REPO_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")
_PATH_SEGMENT_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


class ConfigurationError(RuntimeError):
    """Raised when the plugin configuration is invalid."""


@dc.dataclass(frozen=True, slots=True)
class CatalogConfig:
    """Settings describing where and what to publish."""

    catalog_repo: str
    github_token: str
    github_user: str
    github_email: str
    template_name: str
    template_version: str
    git_host: str = DEFAULT_GIT_HOST
    branch: str = DEFAULT_BRANCH
    command_timeout: float | None = None

    def __post_init__(self) -> None:
        """Validate the combination of settings."""
        if not _CATALOG_REPO_PATTERN.fullmatch(self.catalog_repo):
            message = (
                f"catalog_repo must use the form 'owner/name'; "
                f"received {self.catalog_repo!r}."
            )
            raise ConfigurationError(message)
        if not _PATH_SEGMENT_PATTERN.fullmatch(self.template_name) or set(
            self.template_name
        ) == {"."}:
            message = (
                "template_name must be a single directory name; "
                f"received {self.template_name!r}."
            )
            raise ConfigurationError(message)
        if self.command_timeout is not None and self.command_timeout <= 0:
            message = "command_timeout must be positive."
            raise ConfigurationError(message)

    @property
    def catalog_owner(self) -> str:
        """Return the owner part of :attr:`catalog_repo`."""
        return self.catalog_repo.partition("/")[0]

    @property
    def catalog_name(self) -> str:
        """Return the repository part of :attr:`catalog_repo`."""
        return self.catalog_repo.partition("/")[2]

    @property
    def secrets(self) -> tuple[str, ...]:
        """Return values that must never appear in logs or error messages."""
        return (self.github_token,) if self.github_token else ()

    def clone_url(self) -> str:
        """Return the authenticated HTTPS URL of the catalog repository."""
        return f"https://{self.github_token}@{self.git_host}/{self.catalog_repo}.git"

    def template_variables(self) -> dict[str, typ.Any]:
        """Return the configuration as a plain mapping for templates."""
        return dc.asdict(self)

    @classmethod
    def from_mapping(cls, mapping: cabc.Mapping[str, typ.Any]) -> CatalogConfig:
        """Create a :class:`CatalogConfig` from merged settings."""
        missing = [key for key in REQUIRED_KEYS if not _string(mapping.get(key), key)]
        if missing:
            joined = ", ".join(missing)
            message = f"Missing required setting(s): {joined}."
            raise ConfigurationError(message)
        return cls(
            catalog_repo=_string(mapping["catalog_repo"], "catalog_repo"),
            github_token=_string(mapping["github_token"], "github_token"),
            github_user=_string(mapping["github_user"], "github_user"),
            github_email=_string(mapping["github_email"], "github_email"),
            template_name=_string(mapping["template_name"], "template_name"),
            template_version=_string(mapping["template_version"], "template_version"),
            git_host=_string(mapping.get("git_host"), "git_host") or DEFAULT_GIT_HOST,
            branch=_string(mapping.get("branch"), "branch") or DEFAULT_BRANCH,
            command_timeout=_optional_float(
                mapping.get("command_timeout"), "command_timeout"
            ),
        )


def _validate_mapping_keys(
    mapping: cabc.Mapping[str, typ.Any], allowed_keys: cabc.Set[str]
) -> None:
    """Reject keys in ``mapping`` that are not part of ``allowed_keys``."""
    unknown = set(mapping) - set(allowed_keys)
    if unknown:
        joined = ", ".join(sorted(unknown))
        message = f"Unknown configuration option(s): {joined}."
        raise ConfigurationError(message)


def build_loader(base_dir: Path | str | None) -> Toml:
    """Return a Cyclopts loader for ``rancher-catalog.toml`` in ``base_dir``."""
    resolved = normalise_directory(base_dir)
    return Toml(
        path=resolved / CONFIG_FILENAME,
        must_exist=False,
        search_parents=False,
        allow_unknown=True,
    )


def load_file_settings(loader: Toml) -> dict[str, typ.Any]:
    """Return the validated settings stored in the configuration file."""
    try:
        raw = loader.config
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc
    if not isinstance(raw, cabc.Mapping):
        message = "Configuration root must be a TOML table."
        raise ConfigurationError(message)
    _validate_mapping_keys(raw, CONFIG_TOML_KEYS)
    return dict(raw)


def load_configuration(
    base_dir: Path | str | None,
    overrides: cabc.Mapping[str, typ.Any] | None = None,
) -> CatalogConfig:
    """Merge file settings for ``base_dir`` with ``overrides``.

    ``overrides`` holds values from command-line flags and ``PLUGIN_*``
    environment variables; ``None`` or empty values do not replace file
    settings.
    """
    settings = load_file_settings(build_loader(base_dir))
    for key, value in (overrides or {}).items():
        if value is None or value == "":
            continue
        settings[key] = value
    return CatalogConfig.from_mapping(settings)


def _string(value: object, field_name: str) -> str:
    """Return ``value`` as a stripped string, treating ``None`` as empty."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    message = f"{field_name} must be a string; received {type(value).__name__}."
    raise ConfigurationError(message)


def _optional_float(value: object, field_name: str) -> float | None:
    """Return ``value`` as a float or ``None`` when unset."""
    if isinstance(value, str):
        value = value.strip()
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        message = f"{field_name} must be a number; received bool."
        raise ConfigurationError(message)
    try:
        return float(typ.cast("typ.Any", value))
    except (TypeError, ValueError) as exc:
        message = f"{field_name} must be a number; received {value!r}."
        raise ConfigurationError(message) from exc


__all__ = [
    "CONFIG_FILENAME",
    "CatalogConfig",
    "ConfigurationError",
    "build_loader",
    "load_configuration",
    "load_file_settings",
]
