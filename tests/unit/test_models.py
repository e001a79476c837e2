"""Unit tests for :mod:`rancher_catalog.models`."""

from __future__ import annotations

import typing as typ
from pathlib import Path

import msgspec
import pytest

from rancher_catalog import models

if typ.TYPE_CHECKING:
    from rancher_catalog.config import CatalogConfig

_DRONE_ENVIRONMENT: dict[str, str] = {
    "DRONE_REPO_OWNER": "acme",
    "DRONE_REPO_NAME": "webapp",
    "DRONE_REPO_LINK": "https://github.com/acme/webapp",
    "DRONE_REPO_AVATAR": "https://avatars.example/acme",
    "DRONE_REPO_BRANCH": "main",
    "DRONE_REPO_PRIVATE": "true",
    "DRONE_REPO_TRUSTED": "false",
    "DRONE_BUILD_NUMBER": "42",
    "DRONE_BUILD_EVENT": "push",
    "DRONE_BUILD_STATUS": "success",
    "DRONE_DEPLOY_TO": "production",
    "DRONE_BUILD_CREATED": "1700000000",
    "DRONE_BUILD_STARTED": "1700000010",
    "DRONE_BUILD_FINISHED": "1700000100",
    "DRONE_BUILD_LINK": "https://ci.example/acme/webapp/42",
    "DRONE_REMOTE_URL": "https://github.com/acme/webapp.git",
    "DRONE_COMMIT_SHA": "abc123",
    "DRONE_COMMIT_REF": "refs/heads/main",
    "DRONE_COMMIT_LINK": "https://github.com/acme/webapp/commit/abc123",
    "DRONE_COMMIT_BRANCH": "main",
    "DRONE_COMMIT_MESSAGE": "Fix the thing\n\nDetails follow.\n",
    "DRONE_COMMIT_AUTHOR": "ada",
    "DRONE_COMMIT_AUTHOR_EMAIL": "ada@example.invalid",
    "DRONE_COMMIT_AUTHOR_AVATAR": "https://avatars.example/ada",
}


def test_assemble_context_maps_drone_environment(
    tmp_path: Path, make_configuration: typ.Callable[..., CatalogConfig]
) -> None:
    """Every Drone variable lands on the matching model field."""
    context = models.assemble_context(
        _DRONE_ENVIRONMENT, make_configuration(), working_dir=tmp_path
    )

    assert context.repository == models.RepositoryInfo(
        owner="acme",
        name="webapp",
        link="https://github.com/acme/webapp",
        avatar="https://avatars.example/acme",
        branch="main",
        private=True,
        trusted=False,
    )
    assert context.build == models.BuildInfo(
        number=42,
        event="push",
        status="success",
        deploy="production",
        created=1700000000,
        started=1700000010,
        finished=1700000100,
        link="https://ci.example/acme/webapp/42",
    )
    assert context.commit.author == models.CommitAuthor(
        name="ada",
        email="ada@example.invalid",
        avatar="https://avatars.example/ada",
    )
    assert context.commit.message == "Fix the thing\n\nDetails follow.\n"
    assert context.commit.ref == "refs/heads/main"
    assert context.working_dir == tmp_path.resolve()
    assert context.repo_dir is None


def test_assemble_context_defaults_optional_fields(
    tmp_path: Path, make_configuration: typ.Callable[..., CatalogConfig]
) -> None:
    """Only the build number is mandatory."""
    context = models.assemble_context(
        {"DRONE_BUILD_NUMBER": "1"}, make_configuration(), working_dir=tmp_path
    )

    assert context.repository == models.RepositoryInfo()
    assert context.build.created == 0
    assert context.commit.author == models.CommitAuthor()


@pytest.mark.parametrize(
    ("environment", "fragment"),
    [
        ({}, "DRONE_BUILD_NUMBER must be set"),
        ({"DRONE_BUILD_NUMBER": "seven"}, "must be an integer"),
        ({"DRONE_BUILD_NUMBER": "-1"}, "non-negative"),
        (
            {"DRONE_BUILD_NUMBER": "1", "DRONE_REPO_PRIVATE": "maybe"},
            "DRONE_REPO_PRIVATE must be a boolean",
        ),
        (
            {"DRONE_BUILD_NUMBER": "1", "DRONE_BUILD_STARTED": "soon"},
            "DRONE_BUILD_STARTED must be an integer",
        ),
    ],
)
def test_assemble_context_rejects_malformed_values(
    tmp_path: Path,
    make_configuration: typ.Callable[..., CatalogConfig],
    environment: dict[str, str],
    fragment: str,
) -> None:
    """Malformed platform metadata raises :class:`ContextAssemblyError`."""
    with pytest.raises(models.ContextAssemblyError) as excinfo:
        models.assemble_context(
            environment, make_configuration(), working_dir=tmp_path
        )

    assert fragment in str(excinfo.value)


def test_target_dir_is_deterministic(
    tmp_path: Path, make_context: typ.Callable[..., models.ExecutionContext]
) -> None:
    """The per-build directory is ``<repo>/templates/<name>/<build>``."""
    repo_dir = tmp_path / "clone"
    context = make_context(build_number=42, template_name="mystack").with_repo_dir(
        repo_dir
    )

    assert context.target_dir == repo_dir.resolve() / "templates" / "mystack" / "42"
    assert context.template_root == repo_dir.resolve() / "templates" / "mystack"


def test_target_dir_requires_clone(
    make_context: typ.Callable[..., models.ExecutionContext],
) -> None:
    """Asking for the target directory before cloning is an error."""
    with pytest.raises(models.ContextAssemblyError):
        _ = make_context().target_dir


def test_with_repo_dir_returns_new_context(
    tmp_path: Path, make_context: typ.Callable[..., models.ExecutionContext]
) -> None:
    """Recording the clone path leaves the original context untouched."""
    original = make_context()

    updated = original.with_repo_dir(tmp_path)

    assert original.repo_dir is None
    assert updated.repo_dir == tmp_path.resolve()
    assert updated.build == original.build
    with pytest.raises(AttributeError):
        updated.repo_dir = None  # type: ignore[misc]


def test_template_variables_expose_every_section(
    tmp_path: Path, make_context: typ.Callable[..., models.ExecutionContext]
) -> None:
    """Templates can reach repository, build, commit, and configuration data."""
    context = make_context(build_number=9).with_repo_dir(tmp_path)

    variables = context.template_variables()

    assert variables["repo"]["owner"] == "acme"
    assert variables["build"]["number"] == 9
    assert variables["commit"]["author"] == {
        "name": "Ada",
        "email": "ada@example.invalid",
        "avatar": "",
    }
    assert variables["config"]["catalog_repo"] == "acme/catalog"
    assert variables["template_name"] == "demo"
    assert variables["template_version"] == "1.0.0"
    assert variables["repo_dir"] == str(tmp_path.resolve())


def test_models_are_frozen() -> None:
    """Input models cannot be mutated after construction."""
    build = models.BuildInfo(number=1)

    with pytest.raises(AttributeError):
        build.number = 2  # type: ignore[misc]
    assert msgspec.structs.replace(build, number=2).number == 2
