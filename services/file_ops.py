"""Folder copy and shell shortcut creation."""
from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Protocol

from imaging_tool.errors import ShortcutError, SourceNotFoundError
from services.commands import CommandRunner, SubprocessRunner, format_command_detail

logger = logging.getLogger(__name__)


def copy_folder(source: Path | str, destination: Path | str) -> int:
    """Copy a directory tree, overwriting existing files. Returns the file count.

    A failure partway leaves the destination partially populated.
    """
    source_dir = Path(source)
    destination_dir = Path(destination)
    logger.info("Copying folder from: %s to: %s", source_dir, destination_dir)
    if not source_dir.is_dir():
        raise SourceNotFoundError(f"Source folder not found: {source_dir}")
    copied = _copy_directory(source_dir, destination_dir)
    logger.info("Copied %d file(s) from %s to %s", copied, source_dir, destination_dir)
    return copied


def _copy_directory(source_dir: Path, destination_dir: Path) -> int:
    destination_dir.mkdir(parents=True, exist_ok=True)
    entries = sorted(source_dir.iterdir(), key=lambda entry: entry.name.lower())
    copied = 0
    for entry in entries:
        if entry.is_file():
            logger.debug("Copying file: %s", entry.name)
            shutil.copy2(entry, destination_dir / entry.name)
            copied += 1
    for entry in entries:
        if entry.is_dir():
            logger.debug("Copying subdirectory: %s", entry.name)
            copied += _copy_directory(entry, destination_dir / entry.name)
    return copied


class ShortcutCreator(Protocol):
    def create_shortcut(self, target: str, link_path: str, description: str) -> None:  # pragma: no cover - protocol
        ...


class PowerShellShortcutCreator:
    """Creates ``.lnk`` files through the WScript.Shell COM object."""

    def __init__(self, *, command_runner: CommandRunner | None = None, powershell: str = "powershell") -> None:
        self._runner = command_runner or SubprocessRunner()
        self._powershell = powershell

    def create_shortcut(self, target: str, link_path: str, description: str) -> None:
        logger.info("Creating shortcut at: %s -> Target: %s", link_path, target)
        link_dir = Path(link_path).parent
        if not link_dir.exists():
            logger.info("Creating shortcut directory: %s", link_dir)
            link_dir.mkdir(parents=True, exist_ok=True)
        working_dir = str(Path(target).parent)
        script = "; ".join(
            [
                "$shell = New-Object -ComObject WScript.Shell",
                f"$link = $shell.CreateShortcut({_ps_quote(link_path)})",
                f"$link.TargetPath = {_ps_quote(target)}",
                f"$link.WorkingDirectory = {_ps_quote(working_dir)}",
                f"$link.Description = {_ps_quote(description)}",
                "$link.Save()",
            ]
        )
        completed = self._runner.run([self._powershell, "-NoProfile", "-NonInteractive", "-Command", script])
        if completed.returncode != 0:
            raise ShortcutError(f"Shortcut creation failed for {link_path}: {format_command_detail(completed)}")
        logger.info("Successfully created shortcut: %s", link_path)


def _ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"
