"""Build metadata and execution context models for :mod:`rancher_catalog`."""

from __future__ import annotations

import typing as typ
from collections import abc as cabc
from pathlib import Path

import msgspec

from rancher_catalog.config import CatalogConfig

TEMPLATES_DIRECTORY = "templates"
_TRUE_VALUES: typ.Final[frozenset[str]] = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES: typ.Final[frozenset[str]] = frozenset({"", "0", "false", "no", "off"})


class ContextAssemblyError(RuntimeError):
    """Raised when build metadata cannot be assembled into a context."""


class RepositoryInfo(msgspec.Struct, frozen=True, kw_only=True):
    """The source repository being built."""

    owner: str = ""
    name: str = ""
    link: str = ""
    avatar: str = ""
    branch: str = ""
    private: bool = False
    trusted: bool = False


class BuildInfo(msgspec.Struct, frozen=True, kw_only=True):
    """The build that triggered the plugin."""

    number: int
    event: str = ""
    status: str = ""
    deploy: str = ""
    created: int = 0
    started: int = 0
    finished: int = 0
    link: str = ""


class CommitAuthor(msgspec.Struct, frozen=True, kw_only=True):
    """Author details attached to a commit."""

    name: str = ""
    email: str = ""
    avatar: str = ""


class CommitInfo(msgspec.Struct, frozen=True, kw_only=True):
    """The commit being built."""

    remote: str = ""
    sha: str = ""
    ref: str = ""
    link: str = ""
    branch: str = ""
    message: str = ""
    author: CommitAuthor = msgspec.field(default_factory=CommitAuthor)


class ExecutionContext(msgspec.Struct, frozen=True, kw_only=True):
    """Everything a single catalog publication run knows about.

    ``repo_dir`` stays ``None`` until the catalog repository has been cloned;
    :meth:`with_repo_dir` returns the updated context.
    """

    repository: RepositoryInfo
    build: BuildInfo
    commit: CommitInfo
    configuration: CatalogConfig
    working_dir: Path
    repo_dir: Path | None = None

    @property
    def template_name(self) -> str:
        """Return the catalog template name being published."""
        return self.configuration.template_name

    @property
    def template_version(self) -> str:
        """Return the catalog template version being published."""
        return self.configuration.template_version

    @property
    def template_root(self) -> Path:
        """Return ``templates/<template_name>`` inside the cloned repository."""
        return self._require_repo_dir() / TEMPLATES_DIRECTORY / self.template_name

    @property
    def target_dir(self) -> Path:
        """Return the per-build directory every generated file is written to."""
        return self.template_root / str(self.build.number)

    def with_repo_dir(self, repo_dir: Path) -> ExecutionContext:
        """Return a copy of this context recording the cloned repository path."""
        return msgspec.structs.replace(self, repo_dir=Path(repo_dir).resolve())

    def template_variables(self) -> dict[str, typ.Any]:
        """Return the mapping exposed to templates during rendering."""
        return {
            "repo": msgspec.structs.asdict(self.repository),
            "build": msgspec.structs.asdict(self.build),
            "commit": {
                **msgspec.structs.asdict(self.commit),
                "author": msgspec.structs.asdict(self.commit.author),
            },
            "config": self.configuration.template_variables(),
            "template_name": self.template_name,
            "template_version": self.template_version,
            "working_dir": str(self.working_dir),
            "repo_dir": "" if self.repo_dir is None else str(self.repo_dir),
        }

    def _require_repo_dir(self) -> Path:
        if self.repo_dir is None:
            message = "Catalog repository has not been cloned yet"
            raise ContextAssemblyError(message)
        return self.repo_dir


def _text(environ: cabc.Mapping[str, str], key: str) -> str:
    return environ.get(key, "").strip()


def _integer(
    environ: cabc.Mapping[str, str], key: str, *, required: bool = False
) -> int:
    """Return ``environ[key]`` parsed as an integer."""
    raw = _text(environ, key)
    if not raw:
        if required:
            message = f"{key} must be set"
            raise ContextAssemblyError(message)
        return 0
    try:
        return int(raw)
    except ValueError as exc:
        message = f"{key} must be an integer; received {raw!r}"
        raise ContextAssemblyError(message) from exc


def _boolean(environ: cabc.Mapping[str, str], key: str) -> bool:
    """Return ``environ[key]`` parsed as a boolean flag."""
    raw = _text(environ, key).lower()
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    message = f"{key} must be a boolean; received {raw!r}"
    raise ContextAssemblyError(message)


def repository_from_environ(environ: cabc.Mapping[str, str]) -> RepositoryInfo:
    """Build :class:`RepositoryInfo` from Drone ``DRONE_REPO_*`` variables."""
    return RepositoryInfo(
        owner=_text(environ, "DRONE_REPO_OWNER"),
        name=_text(environ, "DRONE_REPO_NAME"),
        link=_text(environ, "DRONE_REPO_LINK"),
        avatar=_text(environ, "DRONE_REPO_AVATAR"),
        branch=_text(environ, "DRONE_REPO_BRANCH"),
        private=_boolean(environ, "DRONE_REPO_PRIVATE"),
        trusted=_boolean(environ, "DRONE_REPO_TRUSTED"),
    )


def build_from_environ(environ: cabc.Mapping[str, str]) -> BuildInfo:
    """Build :class:`BuildInfo` from Drone ``DRONE_BUILD_*`` variables."""
    number = _integer(environ, "DRONE_BUILD_NUMBER", required=True)
    if number < 0:
        message = "DRONE_BUILD_NUMBER must be non-negative"
        raise ContextAssemblyError(message)
    return BuildInfo(
        number=number,
        event=_text(environ, "DRONE_BUILD_EVENT"),
        status=_text(environ, "DRONE_BUILD_STATUS"),
        deploy=_text(environ, "DRONE_DEPLOY_TO"),
        created=_integer(environ, "DRONE_BUILD_CREATED"),
        started=_integer(environ, "DRONE_BUILD_STARTED"),
        finished=_integer(environ, "DRONE_BUILD_FINISHED"),
        link=_text(environ, "DRONE_BUILD_LINK"),
    )


def commit_from_environ(environ: cabc.Mapping[str, str]) -> CommitInfo:
    """Build :class:`CommitInfo` from Drone ``DRONE_COMMIT_*`` variables."""
    return CommitInfo(
        remote=_text(environ, "DRONE_REMOTE_URL"),
        sha=_text(environ, "DRONE_COMMIT_SHA"),
        ref=_text(environ, "DRONE_COMMIT_REF"),
        link=_text(environ, "DRONE_COMMIT_LINK"),
        branch=_text(environ, "DRONE_COMMIT_BRANCH"),
        # Commit messages keep their original whitespace.
        message=environ.get("DRONE_COMMIT_MESSAGE", ""),
        author=CommitAuthor(
            name=_text(environ, "DRONE_COMMIT_AUTHOR"),
            email=_text(environ, "DRONE_COMMIT_AUTHOR_EMAIL"),
            avatar=_text(environ, "DRONE_COMMIT_AUTHOR_AVATAR"),
        ),
    )


def assemble_context(
    environ: cabc.Mapping[str, str],
    configuration: CatalogConfig,
    *,
    working_dir: Path,
) -> ExecutionContext:
    """Collect build metadata and ``configuration`` into an execution context."""
    return ExecutionContext(
        repository=repository_from_environ(environ),
        build=build_from_environ(environ),
        commit=commit_from_environ(environ),
        configuration=configuration,
        working_dir=Path(working_dir).resolve(),
    )


__all__ = [
    "TEMPLATES_DIRECTORY",
    "BuildInfo",
    "CommitAuthor",
    "CommitInfo",
    "ContextAssemblyError",
    "ExecutionContext",
    "RepositoryInfo",
    "assemble_context",
    "build_from_environ",
    "commit_from_environ",
    "repository_from_environ",
]
