"""Pytest configuration for the rancher-catalog test-suite."""

from __future__ import annotations

import os
import shutil
import typing as typ
from pathlib import Path

import pytest

from rancher_catalog.config import CatalogConfig
from rancher_catalog.models import (
    BuildInfo,
    CommitAuthor,
    CommitInfo,
    ExecutionContext,
    RepositoryInfo,
)
from tests.helpers.fakes import TEST_TOKEN, RecordingRunner

DOCKER_COMPOSE_TEMPLATE = (
    "services:\n"
    "  {{ repo.name }}:\n"
    "    image: {{ repo.owner }}/{{ repo.name }}:{{ build.number }}\n"
    "    labels:\n"
    "      commit: {{ commit.sha }}\n"
)
RANCHER_COMPOSE_TEMPLATE = (
    "catalog:\n"
    "  name: {{ template_name }}\n"
    "  version: {{ template_version }}-{{ build.number }}\n"
)
CONFIG_TEMPLATE = (
    "name: {{ config.template_name }}\n"
    "maintainer: {{ commit.author.name }} <{{ commit.author.email }}>\n"
)
_PLUGIN_ENV_PREFIXES = ("PLUGIN_", "DRONE_")


@pytest.fixture(autouse=True)
def _isolate_plugin_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Ensure ambient ``PLUGIN_*``/``DRONE_*`` variables never leak into tests."""
    for key in list(os.environ):
        if key.startswith(_PLUGIN_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)


@pytest.fixture
def repo_root() -> Path:
    """Return the repository root directory."""
    return Path(__file__).resolve().parent.parent


@pytest.fixture
def base_dir(tmp_path: Path) -> Path:
    """Create a working directory holding ``rancher_base`` templates and icons."""
    working_dir = tmp_path / "workspace"
    templates = working_dir / "rancher_base"
    templates.mkdir(parents=True)
    (templates / "docker-compose.yml.tmpl").write_text(
        DOCKER_COMPOSE_TEMPLATE, encoding="utf-8"
    )
    (templates / "rancher-compose.yml.tmpl").write_text(
        RANCHER_COMPOSE_TEMPLATE, encoding="utf-8"
    )
    (templates / "config.yml.tmpl").write_text(CONFIG_TEMPLATE, encoding="utf-8")
    (templates / "catalogIcon.png").write_bytes(b"\x89PNG icon")
    (templates / "catalogIcon.ico").write_bytes(b"ico icon")
    (templates / "unrelated.txt").write_text("ignore me", encoding="utf-8")
    return working_dir


@pytest.fixture
def make_configuration() -> typ.Callable[..., CatalogConfig]:
    """Return a factory for valid :class:`CatalogConfig` instances."""

    def _make(**overrides: object) -> CatalogConfig:
        values: dict[str, typ.Any] = {
            "catalog_repo": "acme/catalog",
            "github_token": TEST_TOKEN,
            "github_user": "Catalog Bot",
            "github_email": "bot@example.invalid",
            "template_name": "demo",
            "template_version": "1.0.0",
        }
        values.update(overrides)
        return CatalogConfig(**values)

    return _make


@pytest.fixture
def make_context(
    base_dir: Path, make_configuration: typ.Callable[..., CatalogConfig]
) -> typ.Callable[..., ExecutionContext]:
    """Return a factory for execution contexts rooted at ``base_dir``."""

    def _make(
        *, build_number: int = 7, **config_overrides: object
    ) -> ExecutionContext:
        return ExecutionContext(
            repository=RepositoryInfo(owner="acme", name="webapp", link="https://x"),
            build=BuildInfo(number=build_number, event="push", status="success"),
            commit=CommitInfo(
                sha="abc123",
                branch="main",
                message="Add feature",
                author=CommitAuthor(name="Ada", email="ada@example.invalid"),
            ),
            configuration=make_configuration(**config_overrides),
            working_dir=base_dir,
        )

    return _make


@pytest.fixture
def recording_runner() -> RecordingRunner:
    """Return a git stand-in reporting a dirty working tree."""
    return RecordingRunner(responses={"status": (0, "?? templates/\n", "")})


@pytest.fixture
def clone_parent(tmp_path: Path) -> Path:
    """Return the directory temporary clones are created in."""
    parent = tmp_path / "clones"
    parent.mkdir()
    return parent


@pytest.fixture
def requires_git() -> None:
    """Skip the test when the git executable is unavailable."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")
