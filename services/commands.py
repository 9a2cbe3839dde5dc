"""External process execution."""
from __future__ import annotations

import logging
import subprocess
from typing import Protocol, Sequence, Union

logger = logging.getLogger(__name__)

Command = Union[str, Sequence[str]]


class CommandRunner(Protocol):
    def run(self, command: Command, *, cwd: str | None = None) -> subprocess.CompletedProcess[str]:  # pragma: no cover - protocol
        ...


class SubprocessRunner:
    """Runs a command to completion with stdout and stderr fully captured.

    ``subprocess.run`` drains both pipes while the child runs, so installers
    with large output cannot block on a full pipe buffer. A string command is
    handed to the OS verbatim, which keeps manifest-authored argument quoting
    intact on Windows.
    """

    def __init__(self, *, timeout: float | None = None) -> None:
        self._timeout = timeout

    def run(self, command: Command, *, cwd: str | None = None) -> subprocess.CompletedProcess[str]:
        logger.debug("Running %s (cwd=%s)", format_command(command), cwd)
        return subprocess.run(
            command,
            capture_output=True,
            text=True,
            errors="replace",
            check=False,
            cwd=cwd,
            timeout=self._timeout,
        )


def format_command(command: Command) -> str:
    if isinstance(command, str):
        return command
    return subprocess.list2cmdline(list(command))


def format_command_detail(completed: subprocess.CompletedProcess[str]) -> str:
    detail_parts = [f"exit={completed.returncode}"]
    stdout = (completed.stdout or "").strip()
    stderr = (completed.stderr or "").strip()
    if stdout:
        detail_parts.append(f"stdout: {stdout}")
    if stderr:
        detail_parts.append(f"stderr: {stderr}")
    return ", ".join(detail_parts)
