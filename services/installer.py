"""Driver installation dispatch across the supported mechanisms."""
from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from imaging_tool.constants import IMMUTABLE_CONFIG, ProgramTokens, ProvisioningConfig
from imaging_tool.errors import (
    ImagingToolError,
    InvalidInstallCommandError,
    MechanismErrorKind,
    SourceNotFoundError,
)
from imaging_tool.manifest import DriverType, ResolvedDriver
from services.commands import CommandRunner, SubprocessRunner
from services.display_scale import DisplayScaleProvisioner, parse_percent
from services.file_ops import PowerShellShortcutCreator, ShortcutCreator, copy_folder

logger = logging.getLogger(__name__)

LAUNCH_TYPES = frozenset({DriverType.EXE, DriverType.MSI, DriverType.INF, DriverType.CMD})


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    REBOOT_REQUIRED = "reboot_required"
    FAILED = "failed"
    MECHANISM_ERROR = "mechanism_error"


@dataclass(frozen=True)
class InstallOutcome:
    kind: OutcomeKind
    message: str = ""
    exit_code: int | None = None
    error: MechanismErrorKind | None = None

    @property
    def completed(self) -> bool:
        return self.kind in (OutcomeKind.SUCCESS, OutcomeKind.REBOOT_REQUIRED)

    @classmethod
    def success(cls, message: str = "Installed", exit_code: int | None = None) -> "InstallOutcome":
        return cls(OutcomeKind.SUCCESS, message, exit_code)

    @classmethod
    def reboot_required(cls, exit_code: int) -> "InstallOutcome":
        return cls(OutcomeKind.REBOOT_REQUIRED, f"Installed, reboot required (exit {exit_code})", exit_code)

    @classmethod
    def failed(cls, exit_code: int) -> "InstallOutcome":
        return cls(OutcomeKind.FAILED, f"Installer exit {exit_code}", exit_code)

    @classmethod
    def mechanism_error(cls, error: MechanismErrorKind, message: str) -> "InstallOutcome":
        return cls(OutcomeKind.MECHANISM_ERROR, message, None, error)


@dataclass(frozen=True)
class ProcessLaunch:
    file_name: str
    arguments: str
    working_directory: str | None = None

    @property
    def command_line(self) -> str:
        program = subprocess.list2cmdline([self.file_name])
        return f"{program} {self.arguments}" if self.arguments else program


def render_command(template: str, path: str) -> str:
    directory = str(Path(path).parent)
    return template.replace("{path}", path).replace("{dir}", directory)


def parse_install_command(
    driver_type: DriverType,
    command: str,
    programs: ProgramTokens | None = None,
) -> tuple[str, str]:
    """Split a rendered install command into program and argument string."""
    tokens = programs or IMMUTABLE_CONFIG.provisioning.programs
    if driver_type is DriverType.EXE:
        return _split_executable(command)
    if driver_type is DriverType.MSI:
        return tokens.msi_installer, _strip_tokens(command, tokens.msi_tokens)
    if driver_type is DriverType.INF:
        return tokens.driver_store, _strip_tokens(command, tokens.driver_store_tokens)
    if driver_type is DriverType.CMD:
        stripped = command.strip()
        for token in tokens.command_interpreter_tokens:
            if stripped.lower().startswith(token.lower()):
                return tokens.command_interpreter, stripped[len(token) :].strip()
        return tokens.command_interpreter, f"/c {stripped}"
    raise InvalidInstallCommandError(f"Driver type '{driver_type.value}' does not launch a program")


def _split_executable(command: str) -> tuple[str, str]:
    text = command.strip()
    if not text:
        raise InvalidInstallCommandError("Executable install command is empty")
    if text.startswith('"'):
        end_quote = text.find('"', 1)
        if end_quote == -1:
            raise InvalidInstallCommandError(f"Unterminated quote in install command: {command}")
        return text[1:end_quote], text[end_quote + 1 :].strip()
    first_space = text.find(" ")
    if first_space > 0:
        return text[:first_space], text[first_space + 1 :].strip()
    return text, ""


def _strip_tokens(command: str, tokens: tuple[str, ...]) -> str:
    for token in tokens:
        command = command.replace(token, "")
    return command.strip()


class InstallDispatcher:
    """Installs one driver at a time and reports a terminal outcome.

    Every error raised while handling a driver is logged and converted into an
    ``InstallOutcome``; nothing escapes ``install``.
    """

    def __init__(
        self,
        *,
        command_runner: CommandRunner | None = None,
        shortcut_creator: ShortcutCreator | None = None,
        display_scale: DisplayScaleProvisioner | None = None,
        config: ProvisioningConfig | None = None,
    ) -> None:
        self._config = config or IMMUTABLE_CONFIG.provisioning
        self._runner = command_runner or SubprocessRunner(timeout=self._config.process_timeout_seconds)
        self._shortcuts = shortcut_creator or PowerShellShortcutCreator(command_runner=self._runner)
        self._display_scale = display_scale

    def install(self, resolved: ResolvedDriver) -> InstallOutcome:
        driver = resolved.driver
        logger.info("Starting installation: %s (type=%s, path=%s)", driver.name, driver.type, resolved.path)
        try:
            return self._dispatch(resolved)
        except ImagingToolError as exc:
            logger.error("Error installing %s [%s]: %s", driver.name, driver.type, exc)
            return InstallOutcome.mechanism_error(exc.kind, str(exc))
        except FileNotFoundError as exc:
            logger.error("Error installing %s [%s]: %s", driver.name, driver.type, exc)
            return InstallOutcome.mechanism_error(MechanismErrorKind.SOURCE_NOT_FOUND, str(exc))
        except PermissionError as exc:
            logger.error(
                "Access denied installing %s [%s]. Make sure the tool runs as administrator: %s",
                driver.name,
                driver.type,
                exc,
            )
            return InstallOutcome.mechanism_error(MechanismErrorKind.INVOCATION_ERROR, str(exc))
        except Exception as exc:
            logger.exception("Error installing %s [%s]: %s", driver.name, driver.type, exc)
            return InstallOutcome.mechanism_error(MechanismErrorKind.INVOCATION_ERROR, str(exc) or type(exc).__name__)

    def _dispatch(self, resolved: ResolvedDriver) -> InstallOutcome:
        driver = resolved.driver
        driver_type = DriverType.parse(driver.type)
        command = render_command(driver.install_cmd, resolved.path)

        if driver_type in LAUNCH_TYPES:
            file_name, arguments = parse_install_command(driver_type, command, self._config.programs)
            return self._run_process(driver.name, ProcessLaunch(file_name, arguments, resolved.directory))
        if driver_type is DriverType.COPY:
            copied = copy_folder(resolved.path, command)
            return InstallOutcome.success(f"Copied {copied} file(s) to {command}")
        if driver_type is DriverType.SHORTCUT:
            self._shortcuts.create_shortcut(resolved.path, command, driver.name)
            return InstallOutcome.success(f"Shortcut created: {command}")
        if driver_type is DriverType.REGISTRY:
            return self._import_registry(driver.name, resolved.path)
        return self._apply_display_scale(command)

    def _run_process(self, name: str, launch: ProcessLaunch) -> InstallOutcome:
        logger.info("Executing: %s", launch.command_line)
        logger.info("Working directory: %s", launch.working_directory)
        completed = self._runner.run(launch.command_line, cwd=launch.working_directory)
        self._log_output(completed)
        return self._interpret_exit(name, completed.returncode)

    def _import_registry(self, name: str, registry_file: str) -> InstallOutcome:
        path = Path(registry_file)
        logger.info("Merging registry file: %s", path)
        if not path.is_file():
            raise SourceNotFoundError(f"Registry file not found: {path}")
        logger.info("Registry file found. Size: %d bytes", path.stat().st_size)
        command = [self._config.programs.registry_tool, "import", str(path)]
        completed = self._runner.run(command)
        self._log_output(completed)
        return self._interpret_exit(name, completed.returncode)

    def _apply_display_scale(self, command: str) -> InstallOutcome:
        percent = parse_percent(command)
        if self._display_scale is None:
            self._display_scale = DisplayScaleProvisioner(command_runner=self._runner)
        report = self._display_scale.apply(percent)
        if not report.hive_unloaded:
            return InstallOutcome.mechanism_error(
                MechanismErrorKind.HIVE_UNLOAD_FAILURE,
                f"Display scale {percent}% applied but the default user profile could not be unloaded",
            )
        message = f"Display scale {percent}% (DPI {report.dpi}) applied"
        if report.warnings:
            message = f"{message}; {len(report.warnings)} default user key(s) skipped"
        return InstallOutcome.success(message)

    def _interpret_exit(self, name: str, exit_code: int) -> InstallOutcome:
        logger.info("Process exited with code: %s", exit_code)
        if exit_code == 0:
            logger.info("Completed installation: %s", name)
            return InstallOutcome.success(exit_code=exit_code)
        if exit_code == self._config.reboot_required_exit_code:
            logger.warning("Reboot required for %s. Exit code %s", name, exit_code)
            return InstallOutcome.reboot_required(exit_code)
        logger.error("Installation failed for %s with exit code %s", name, exit_code)
        return InstallOutcome.failed(exit_code)

    def _log_output(self, completed: subprocess.CompletedProcess[str]) -> None:
        stdout = (completed.stdout or "").strip()
        stderr = (completed.stderr or "").strip()
        if stdout:
            logger.info("Output: %s", stdout)
        if stderr:
            logger.error("Error Output: %s", stderr)
