"""Git command execution for catalog publication."""

from __future__ import annotations

import logging
import os
import typing as typ

from plumbum import local
from plumbum.commands.processes import CommandNotFound, ProcessTimedOut

from rancher_catalog.utils.process import format_command, log_command_invocation, redact

if typ.TYPE_CHECKING:
    from pathlib import Path

LOGGER = logging.getLogger(__name__)

GIT_PROGRAM = "git"
# Never let git wait for interactive credentials.
_GIT_ENV_OVERRIDES: typ.Final[dict[str, str]] = {"GIT_TERMINAL_PROMPT": "0"}


class CommandRunner(typ.Protocol):
    """Protocol describing the callable used to execute git commands."""

    def __call__(
        self,
        command: typ.Sequence[str],
        *,
        cwd: Path | None = None,
        env: typ.Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> tuple[int, str, str]:
        """Execute ``command`` and return exit status and decoded output."""


class GitCommandError(RuntimeError):
    """Raised when a git subprocess fails or cannot be started.

    The message is always redacted; ``suppress_output`` additionally drops the
    subprocess output from the message entirely.
    """

    def __init__(  # noqa: PLR0913 - the failure context requires these values
        self,
        command: typ.Sequence[str],
        exit_code: int | None,
        detail: str = "",
        *,
        secrets: typ.Iterable[str] = (),
        suppress_output: bool = False,
        timeout: float | None = None,
    ) -> None:
        """Summarise the failing invocation without leaking credentials."""
        secrets = tuple(secrets)
        rendered = format_command(command, secrets) or "<empty command>"
        if timeout is not None:
            message = f"{rendered} timed out after {timeout:g} seconds"
        elif exit_code is None:
            message = f"{rendered} could not be executed"
        else:
            message = f"{rendered} failed with exit code {exit_code}"
        cleaned = redact(detail.strip(), secrets)
        if cleaned and not suppress_output:
            message = f"{message}: {cleaned}"
        super().__init__(message)
        self.command = tuple(command)
        self.exit_code = exit_code
        self.timeout = timeout


def build_environment() -> dict[str, str]:
    """Return the environment used for every git invocation."""
    env = dict(os.environ)
    env.update(_GIT_ENV_OVERRIDES)
    return env


def _coerce_text(value: str | bytes | None) -> str:
    """Normalise process output to text."""
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def invoke(
    command: typ.Sequence[str],
    *,
    cwd: Path | None = None,
    env: typ.Mapping[str, str] | None = None,
    timeout: float | None = None,
) -> tuple[int, str, str]:
    """Execute ``command`` with plumbum and return the exit status and output."""
    if not command:
        message = "Command sequence must contain at least one entry"
        raise GitCommandError((), None, message)
    program, *args = command
    try:
        executable = local[program]
    except CommandNotFound as exc:
        raise GitCommandError(
            command, None, f"{program!r} was not found on PATH"
        ) from exc
    run_kwargs: dict[str, typ.Any] = {"retcode": None}
    if cwd is not None:
        run_kwargs["cwd"] = str(cwd)
    if env is not None:
        run_kwargs["env"] = dict(env)
    if timeout is not None:
        run_kwargs["timeout"] = timeout
    try:
        exit_code, stdout, stderr = executable.run(args, **run_kwargs)
    except ProcessTimedOut as exc:
        raise GitCommandError(command, None, timeout=timeout) from exc
    except OSError as exc:
        raise GitCommandError(command, None, str(exc)) from exc
    return exit_code, _coerce_text(stdout), _coerce_text(stderr)


class Git:
    """Run git inside one directory with credentials kept out of diagnostics."""

    def __init__(
        self,
        runner: CommandRunner | None = None,
        *,
        secrets: typ.Iterable[str] = (),
        timeout: float | None = None,
    ) -> None:
        """Store the runner, secrets to redact, and optional timeout."""
        self._runner = invoke if runner is None else runner
        self._secrets = tuple(secrets)
        self._timeout = timeout
        self._env = build_environment()

    def run(
        self,
        cwd: Path,
        *args: str,
        quiet: bool = False,
    ) -> str:
        """Run ``git <args>`` in ``cwd`` and return its standard output.

        When ``quiet`` is set, the output is neither logged nor included in
        the raised :class:`GitCommandError`.
        """
        command = (GIT_PROGRAM, *args)
        log_command_invocation(LOGGER, command, cwd, self._secrets)
        try:
            exit_code, stdout, stderr = self._runner(
                command, cwd=cwd, env=self._env, timeout=self._timeout
            )
        except GitCommandError as exc:
            if quiet:
                raise GitCommandError(
                    command, exc.exit_code, secrets=self._secrets, suppress_output=True
                ) from None
            raise
        if exit_code != 0:
            raise GitCommandError(
                command,
                exit_code,
                stderr or stdout,
                secrets=self._secrets,
                suppress_output=quiet,
            )
        if not quiet and stdout.strip():
            LOGGER.debug("%s", redact(stdout.rstrip(), self._secrets))
        return stdout


__all__ = [
    "GIT_PROGRAM",
    "CommandRunner",
    "Git",
    "GitCommandError",
    "build_environment",
    "invoke",
]
