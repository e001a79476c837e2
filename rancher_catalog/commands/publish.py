"""Clone the catalog repository, render the entry, and publish changes."""

from __future__ import annotations

import dataclasses as dc
import logging
import shutil
import tempfile
import typing as typ
from pathlib import Path

from rancher_catalog.commands.git import CommandRunner, Git, GitCommandError
from rancher_catalog.commands.render import TemplateRenderError, render_to_file
from rancher_catalog.utils.process import redact

if typ.TYPE_CHECKING:
    from rancher_catalog.models import ExecutionContext

LOGGER = logging.getLogger(__name__)

BASE_DIRECTORY = "rancher_base"
ICON_FILENAME = "catalogIcon.png"
CONFIG_FILENAME = "config.yml"
_CLONE_PREFIX = "rancher-catalog-"


class CatalogPublishError(RuntimeError):
    """Base class for failures that abort a catalog publication run."""


class RepositoryAcquisitionError(CatalogPublishError):
    """Raised when the catalog repository cannot be cloned."""


class AssetCopyError(CatalogPublishError):
    """Raised when the catalog icon cannot be copied."""


class PublishStepError(CatalogPublishError):
    """Raised when a git step after cloning fails."""


@dc.dataclass(frozen=True, slots=True)
class TemplateSpec:
    """A template shipped in ``rancher_base`` and where its output lands."""

    source: str
    destination: str
    shared: bool = False


TEMPLATES: typ.Final[tuple[TemplateSpec, ...]] = (
    TemplateSpec("docker-compose.yml.tmpl", "docker-compose.yml"),
    TemplateSpec("rancher-compose.yml.tmpl", "rancher-compose.yml"),
    # config.yml sits next to the build directories and is shared by them.
    TemplateSpec("config.yml.tmpl", CONFIG_FILENAME, shared=True),
)


@dc.dataclass(frozen=True, slots=True)
class PublishOptions:
    """Runtime options for a publication run.

    Parameters
    ----------
    command_runner:
        Optional callable used to execute git commands. Primarily intended
        for tests and dependency injection.
    clone_parent:
        Directory in which the temporary clone directory is created. Defaults
        to the system temporary directory.

    """

    command_runner: CommandRunner | None = None
    clone_parent: Path | None = None


@dc.dataclass(frozen=True, slots=True)
class PublishResult:
    """Outcome of a successful publication run."""

    repo_dir: Path
    target_dir: Path
    rendered: tuple[Path, ...]
    icons: tuple[Path, ...]
    published: bool


def _git_for(context: ExecutionContext, runner: CommandRunner | None) -> Git:
    configuration = context.configuration
    return Git(
        runner,
        secrets=configuration.secrets,
        timeout=configuration.command_timeout,
    )


def _repo_dir(context: ExecutionContext) -> Path:
    if context.repo_dir is None:
        message = "Catalog repository has not been cloned yet"
        raise CatalogPublishError(message)
    return context.repo_dir


def acquire_repository(
    context: ExecutionContext,
    *,
    runner: CommandRunner | None = None,
    clone_parent: Path | None = None,
) -> ExecutionContext:
    """Clone the catalog repository into a fresh temporary directory.

    Returns a context whose ``repo_dir`` points at the new working tree. The
    temporary directory is left in place when cloning fails.
    """
    configuration = context.configuration
    try:
        workspace = Path(
            tempfile.mkdtemp(
                prefix=_CLONE_PREFIX,
                dir=None if clone_parent is None else str(clone_parent),
            )
        )
    except OSError as exc:
        message = f"Failed to create a directory for the catalog clone: {exc}"
        raise RepositoryAcquisitionError(message) from exc
    clone_dir = workspace / configuration.catalog_name
    LOGGER.info("Cloning %s into %s", configuration.catalog_repo, clone_dir)
    try:
        _git_for(context, runner).run(
            workspace, "clone", configuration.clone_url(), str(clone_dir)
        )
    except GitCommandError as exc:
        message = redact(
            f"Failed to clone {configuration.catalog_repo}: {exc}",
            configuration.secrets,
        )
        raise RepositoryAcquisitionError(message) from exc
    return context.with_repo_dir(clone_dir)


def configure_identity(
    context: ExecutionContext, *, runner: CommandRunner | None = None
) -> None:
    """Set the committer email and name in the cloned repository."""
    repo_dir = _repo_dir(context)
    configuration = context.configuration
    git = _git_for(context, runner)
    try:
        git.run(repo_dir, "config", "user.email", configuration.github_email)
        git.run(repo_dir, "config", "user.name", configuration.github_user)
    except GitCommandError as exc:
        message = f"Failed to configure git identity: {exc}"
        raise PublishStepError(message) from exc


def prepare_target_directory(context: ExecutionContext) -> Path:
    """Create ``templates/<template>/<build>`` inside the clone if needed."""
    target = context.target_dir
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        message = f"Failed to create {target}: {exc}"
        raise CatalogPublishError(message) from exc
    return target


def render_template(
    context: ExecutionContext, template: str, destination: Path
) -> Path:
    """Render ``rancher_base/<template>`` from the working directory to ``destination``.

    Templates are always read relative to the directory the run started in,
    never from the cloned repository.
    """
    source = context.working_dir / BASE_DIRECTORY / template
    return render_to_file(source, destination, context.template_variables())


def render_templates(context: ExecutionContext) -> tuple[Path, ...]:
    """Render every catalog template into the target directory."""
    target = context.target_dir
    rendered: list[Path] = []
    for spec in TEMPLATES:
        directory = target.parent if spec.shared else target
        destination = directory / spec.destination
        rendered.append(render_template(context, spec.source, destination))
    return tuple(rendered)


def copy_icon_asset(source: Path, destination: Path) -> tuple[Path, ...]:
    """Copy ``source`` and every sibling sharing its stem into ``destination``.

    ``catalogIcon.png`` therefore also copies ``catalogIcon.ico`` or
    ``catalogIcon.svg`` when they exist.
    """
    prefix = source.stem
    try:
        candidates = sorted(
            entry
            for entry in source.parent.iterdir()
            if entry.is_file() and entry.name.startswith(prefix)
        )
    except OSError as exc:
        message = f"Failed to list icon directory {source.parent}: {exc}"
        raise AssetCopyError(message) from exc
    if not candidates:
        message = f"No icon files matching {prefix}* found in {source.parent}"
        raise AssetCopyError(message)
    copied: list[Path] = []
    for candidate in candidates:
        try:
            copied.append(Path(shutil.copy2(candidate, destination / candidate.name)))
        except OSError as exc:
            message = f"Failed to copy {candidate} to {destination}: {exc}"
            raise AssetCopyError(message) from exc
    return tuple(copied)


def detect_change(
    context: ExecutionContext, *, runner: CommandRunner | None = None
) -> bool:
    """Return ``True`` when the cloned working tree has uncommitted changes."""
    repo_dir = _repo_dir(context)
    try:
        status = _git_for(context, runner).run(repo_dir, "status", "--porcelain")
    except GitCommandError as exc:
        message = f"Failed to inspect catalog working tree: {exc}"
        raise PublishStepError(message) from exc
    return bool(status.strip())


def commit_message(context: ExecutionContext) -> str:
    """Return the commit message recorded for this build."""
    return (
        f"Update {context.template_name} catalog entry for build "
        f"{context.build.number}"
    )


def publish_changes(
    context: ExecutionContext, *, runner: CommandRunner | None = None
) -> None:
    """Stage, commit, and push every change in the cloned repository.

    Commit and push output is never logged or reported because git may echo
    the authenticated remote URL.
    """
    repo_dir = _repo_dir(context)
    git = _git_for(context, runner)
    steps: tuple[tuple[str, tuple[str, ...], bool], ...] = (
        ("stage", ("add", "--all"), False),
        ("commit", ("commit", "-m", commit_message(context)), True),
        ("push", ("push", "origin", context.configuration.branch), True),
    )
    for label, arguments, quiet in steps:
        try:
            git.run(repo_dir, *arguments, quiet=quiet)
        except GitCommandError as exc:
            message = f"Failed to {label} catalog changes: {exc}"
            raise PublishStepError(message) from exc


def run(
    context: ExecutionContext,
    *,
    options: PublishOptions | None = None,
) -> PublishResult:
    """Publish the catalog entry described by ``context``.

    Every step must succeed before the next one starts; the first failure
    raises a :class:`CatalogPublishError` and nothing is pushed.
    """
    active_options = PublishOptions() if options is None else options
    runner = active_options.command_runner

    cloned = acquire_repository(
        context, runner=runner, clone_parent=active_options.clone_parent
    )
    configure_identity(cloned, runner=runner)
    target = prepare_target_directory(cloned)
    rendered = render_templates(cloned)
    icon_source = cloned.working_dir / BASE_DIRECTORY / ICON_FILENAME
    icons = copy_icon_asset(icon_source, target)

    published = detect_change(cloned, runner=runner)
    if published:
        publish_changes(cloned, runner=runner)
        LOGGER.info(
            "Published %s build %s to %s",
            cloned.template_name,
            cloned.build.number,
            cloned.configuration.catalog_repo,
        )
    else:
        LOGGER.info("No files changed; nothing to publish")
    return PublishResult(
        repo_dir=_repo_dir(cloned),
        target_dir=target,
        rendered=rendered,
        icons=icons,
        published=published,
    )


def format_result(result: PublishResult) -> str:
    """Return a human-readable summary of ``result``."""
    lines = [f"Catalog entry written to: {result.target_dir}"]
    lines.extend(
        f"- {path.relative_to(result.repo_dir)}"
        for path in (*result.rendered, *result.icons)
    )
    if result.published:
        lines.append("Changes committed and pushed.")
    else:
        lines.append("No files changed; nothing was pushed.")
    return "\n".join(lines)


__all__ = [
    "BASE_DIRECTORY",
    "ICON_FILENAME",
    "TEMPLATES",
    "AssetCopyError",
    "CatalogPublishError",
    "PublishOptions",
    "PublishResult",
    "PublishStepError",
    "RepositoryAcquisitionError",
    "TemplateRenderError",
    "TemplateSpec",
    "acquire_repository",
    "commit_message",
    "configure_identity",
    "copy_icon_asset",
    "detect_change",
    "format_result",
    "prepare_target_directory",
    "publish_changes",
    "render_template",
    "render_templates",
    "run",
]
