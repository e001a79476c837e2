"""Command-line interface for the :mod:`rancher_catalog` plugin."""

from __future__ import annotations

import logging
import os
import sys
import typing as typ
from pathlib import Path

from cyclopts import App, Parameter

from . import config, models
from .commands import publish as publish_command
from .commands.git import GitCommandError
from .commands.render import TemplateRenderError
from .utils import normalise_directory, redact

LOGGER = logging.getLogger(__name__)

_BASE_DIR_PARAMETER = Parameter(
    name="--base-dir",
    env_var="PLUGIN_BASE_DIR",
    help="Directory containing rancher_base/ and rancher-catalog.toml.",
)
BaseDirOption = typ.Annotated[Path, _BASE_DIR_PARAMETER]


def _setting(name: str, env_var: str, help_text: str) -> Parameter:
    return Parameter(name=f"--{name}", env_var=env_var, help=help_text)


CatalogRepoOption = typ.Annotated[
    str,
    _setting(
        "catalog-repo",
        "PLUGIN_CATALOG_REPO",
        "Catalog repository in owner/name form.",
    ),
]
GithubTokenOption = typ.Annotated[
    str,
    _setting(
        "github-token",
        "PLUGIN_GITHUB_TOKEN",
        "Access token used to clone and push the catalog repository.",
    ),
]
GithubUserOption = typ.Annotated[
    str, _setting("github-user", "PLUGIN_GITHUB_USER", "Committer name.")
]
GithubEmailOption = typ.Annotated[
    str, _setting("github-email", "PLUGIN_GITHUB_EMAIL", "Committer email.")
]
TemplateNameOption = typ.Annotated[
    str,
    _setting("template-name", "PLUGIN_TEMPLATE_NAME", "Catalog template name."),
]
TemplateVersionOption = typ.Annotated[
    str,
    _setting(
        "template-version", "PLUGIN_TEMPLATE_VERSION", "Catalog template version."
    ),
]
GitHostOption = typ.Annotated[
    str, _setting("git-host", "PLUGIN_GIT_HOST", "Host serving the catalog.")
]
BranchOption = typ.Annotated[
    str, _setting("branch", "PLUGIN_BRANCH", "Branch or ref to push to.")
]
TimeoutOption = typ.Annotated[
    str,
    _setting(
        "command-timeout",
        "PLUGIN_COMMAND_TIMEOUT",
        "Seconds to wait for each git command before giving up.",
    ),
]

LOG_LEVEL_ENV_VAR = "PLUGIN_LOG_LEVEL"
_DEFAULT_LOG_LEVEL = logging.INFO
_LOG_FORMAT = "%(levelname)s: %(message)s"
_HANDLER_NAME = "rancher-catalog-cli-handler"
_LOG_LEVEL_ALIASES: dict[str, int] = {
    "CRITICAL": logging.CRITICAL,
    "FATAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}
_FATAL_ERRORS: tuple[type[BaseException], ...] = (
    config.ConfigurationError,
    models.ContextAssemblyError,
    publish_command.CatalogPublishError,
    TemplateRenderError,
    GitCommandError,
)

app = App(help="Publish a rendered Rancher catalog entry for the current build.")


def _resolve_log_level(value: str | None) -> int:
    """Return the configured log level or :data:`_DEFAULT_LOG_LEVEL`."""
    if value is None:
        return _DEFAULT_LOG_LEVEL
    candidate = value.strip()
    if not candidate:
        return _DEFAULT_LOG_LEVEL
    level = _LOG_LEVEL_ALIASES.get(candidate.upper())
    if level is None:
        choices = ", ".join(sorted(_LOG_LEVEL_ALIASES))
        message = (
            f"Invalid {LOG_LEVEL_ENV_VAR} value {value!r}; expected one of: {choices}"
        )
        raise SystemExit(message)
    return level


def _configure_logging(stream: typ.TextIO | None = None) -> None:
    """Configure root logging so progress and failures are visible."""
    level = _resolve_log_level(os.environ.get(LOG_LEVEL_ENV_VAR))
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    handler = next(
        (
            existing
            for existing in root_logger.handlers
            if getattr(existing, "name", "") == _HANDLER_NAME
        ),
        None,
    )
    if handler is None:
        handler = logging.StreamHandler(stream)
        handler.name = _HANDLER_NAME
        root_logger.addHandler(handler)
    elif stream is not None:
        handler.stream = stream
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT))


def _dispatch_and_print(tokens: typ.Sequence[str]) -> int:
    """Execute the Cyclopts app and print command results."""
    try:
        result = app(tokens)
    except SystemExit as err:
        code = err.code
        if code is None:
            return 0
        if isinstance(code, int):
            return code
        print(code, file=sys.stderr)
        return 1
    if isinstance(result, int):
        return result
    if result is not None:
        print(result)
    return 0


def main(argv: typ.Sequence[str] | None = None) -> int:
    """Entry point for ``python -m rancher_catalog.cli``."""
    try:
        if argv is None:
            argv = sys.argv[1:]
        _configure_logging()
        LOGGER.info("Starting rancher-catalog")
        try:
            return _dispatch_and_print(list(argv))
        except _FATAL_ERRORS as exc:
            # Scrub the token from the message before it reaches the console.
            token = os.environ.get("PLUGIN_GITHUB_TOKEN", "")
            LOGGER.error("%s", redact(str(exc), (token,)))  # noqa: TRY400
            return 1
    except KeyboardInterrupt:
        print("\nOperation cancelled by user.", file=sys.stderr)
        return 130
    except Exception as exc:  # noqa: BLE001 - fallback guard for CLI entry point
        print(f"Unexpected error: {redact(str(exc))}", file=sys.stderr)
        return 1


@app.default
def publish(  # noqa: PLR0913 - one parameter per plugin setting
    *,
    catalog_repo: CatalogRepoOption = "",
    github_token: GithubTokenOption = "",
    github_user: GithubUserOption = "",
    github_email: GithubEmailOption = "",
    template_name: TemplateNameOption = "",
    template_version: TemplateVersionOption = "",
    git_host: GitHostOption = "",
    branch: BranchOption = "",
    command_timeout: TimeoutOption = "",
    base_dir: BaseDirOption | None = None,
) -> str:
    """Render the catalog entry for this build and push it when it changed."""
    working_dir = normalise_directory(base_dir)
    configuration = config.load_configuration(
        working_dir,
        {
            "catalog_repo": catalog_repo,
            "github_token": github_token,
            "github_user": github_user,
            "github_email": github_email,
            "template_name": template_name,
            "template_version": template_version,
            "git_host": git_host,
            "branch": branch,
            "command_timeout": command_timeout,
        },
    )
    context = models.assemble_context(
        os.environ, configuration, working_dir=working_dir
    )
    result = publish_command.run(context)
    return publish_command.format_result(result)


if __name__ == "__main__":  # pragma: no cover - convenience entry point
    raise SystemExit(main())
