from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from imaging_tool.errors import HiveLoadError, MechanismErrorKind
from imaging_tool.manifest import Driver, DriverType, ResolvedDriver, resolve_driver
from services.commands import Command
from services.display_scale import DisplayScaleReport
from services.installer import InstallDispatcher, OutcomeKind, ProcessLaunch, parse_install_command, render_command


class FakeRunner:
    def __init__(self, returncode: int = 0, error: Exception | None = None) -> None:
        self.returncode = returncode
        self.error = error
        self.calls: list[tuple[Command, str | None]] = []

    def run(self, command: Command, *, cwd: str | None = None) -> subprocess.CompletedProcess[str]:
        self.calls.append((command, cwd))
        if self.error:
            raise self.error
        return subprocess.CompletedProcess(command, self.returncode, "done", "")


class FakeShortcutCreator:
    def __init__(self) -> None:
        self.created: list[tuple[str, str, str]] = []

    def create_shortcut(self, target: str, link_path: str, description: str) -> None:
        self.created.append((target, link_path, description))


class FakeDisplayScale:
    def __init__(self, *, unloaded: bool = True, error: Exception | None = None) -> None:
        self.unloaded = unloaded
        self.error = error
        self.applied: list[int] = []

    def apply(self, percent: int) -> DisplayScaleReport:
        self.applied.append(percent)
        if self.error:
            raise self.error
        return DisplayScaleReport(percent, 144, hive_unloaded=self.unloaded)


def _dispatcher(runner: FakeRunner | None = None, **kwargs: object) -> InstallDispatcher:
    return InstallDispatcher(
        command_runner=runner or FakeRunner(),
        shortcut_creator=kwargs.get("shortcut_creator") or FakeShortcutCreator(),  # type: ignore[arg-type]
        display_scale=kwargs.get("display_scale"),  # type: ignore[arg-type]
    )


def _resolved(tmp_path: Path, driver_type: str, install_cmd: str, path: str = "drivers/pkg/setup.exe") -> ResolvedDriver:
    return resolve_driver(Driver(name="Package", type=driver_type, path=path, install_cmd=install_cmd), tmp_path)


@pytest.mark.parametrize(
    "command, expected",
    [
        ('"C:\\a b\\x.exe" /silent', ("C:\\a b\\x.exe", "/silent")),
        ('"C:\\a b\\x.exe"', ("C:\\a b\\x.exe", "")),
        ("setup.exe /q", ("setup.exe", "/q")),
        ("setup.exe", ("setup.exe", "")),
        ("setup.exe /s /v\"/qn\"", ("setup.exe", "/s /v\"/qn\"")),
    ],
)
def test_parse_exe_command(command: str, expected: tuple[str, str]) -> None:
    assert parse_install_command(DriverType.EXE, command) == expected


def test_parse_launcher_commands() -> None:
    assert parse_install_command(DriverType.MSI, "msiexec /i pkg.msi /qn") == ("msiexec.exe", "/i pkg.msi /qn")
    assert parse_install_command(DriverType.MSI, "msiexec.exe /i pkg.msi") == ("msiexec.exe", "/i pkg.msi")
    assert parse_install_command(DriverType.INF, "pnputil /add-driver x.inf /install") == ("pnputil.exe", "/add-driver x.inf /install")
    assert parse_install_command(DriverType.CMD, "cmd.exe /c setup.bat") == ("cmd.exe", "/c setup.bat")
    assert parse_install_command(DriverType.CMD, "install.bat /s") == ("cmd.exe", "/c install.bat /s")


def test_render_command_substitutes_path_and_dir(tmp_path: Path) -> None:
    path = str(tmp_path / "drivers" / "setup.exe")
    rendered = render_command('"{path}" /log "{dir}\\log.txt"', path)
    assert rendered == f'"{path}" /log "{tmp_path / "drivers"}\\log.txt"'


def test_process_launch_quotes_program() -> None:
    assert ProcessLaunch("C:\\a b\\x.exe", "/silent").command_line == '"C:\\a b\\x.exe" /silent'
    assert ProcessLaunch("msiexec.exe", "").command_line == "msiexec.exe"


@pytest.mark.parametrize(
    "returncode, kind",
    [(0, OutcomeKind.SUCCESS), (3010, OutcomeKind.REBOOT_REQUIRED), (1603, OutcomeKind.FAILED)],
)
def test_exit_code_mapping(tmp_path: Path, returncode: int, kind: OutcomeKind) -> None:
    outcome = _dispatcher(FakeRunner(returncode)).install(_resolved(tmp_path, "exe", '"{path}" /s'))
    assert outcome.kind is kind
    assert outcome.exit_code == returncode
    assert outcome.completed is (kind is not OutcomeKind.FAILED)


def test_exe_runs_in_driver_directory(tmp_path: Path) -> None:
    runner = FakeRunner()
    resolved = _resolved(tmp_path, "exe", '"{path}" /s')
    _dispatcher(runner).install(resolved)
    command, cwd = runner.calls[0]
    assert command == f"{subprocess.list2cmdline([resolved.path])} /s"
    assert cwd == resolved.directory


def test_msi_and_cmd_use_system_programs(tmp_path: Path) -> None:
    runner = FakeRunner()
    dispatcher = _dispatcher(runner)
    dispatcher.install(_resolved(tmp_path, "MSI", 'msiexec /i "{path}" /qn', path="drivers/pkg/agent.msi"))
    dispatcher.install(_resolved(tmp_path, "cmd", "install.bat"))
    msi_command, _ = runner.calls[0]
    cmd_command, _ = runner.calls[1]
    assert msi_command == f'msiexec.exe /i "{tmp_path / "drivers" / "pkg" / "agent.msi"}" /qn'
    assert cmd_command == "cmd.exe /c install.bat"


def test_unknown_type_is_mechanism_error(tmp_path: Path) -> None:
    runner = FakeRunner()
    outcome = _dispatcher(runner).install(_resolved(tmp_path, "appx", "{path}"))
    assert outcome.kind is OutcomeKind.MECHANISM_ERROR
    assert outcome.error is MechanismErrorKind.UNSUPPORTED_TYPE
    assert runner.calls == []


def test_launch_errors_are_contained(tmp_path: Path) -> None:
    missing = _dispatcher(FakeRunner(error=FileNotFoundError("setup.exe"))).install(_resolved(tmp_path, "exe", "{path}"))
    assert missing.error is MechanismErrorKind.SOURCE_NOT_FOUND
    broken = _dispatcher(FakeRunner(error=subprocess.TimeoutExpired("setup.exe", 5))).install(_resolved(tmp_path, "exe", "{path}"))
    assert broken.error is MechanismErrorKind.INVOCATION_ERROR
    empty = _dispatcher().install(_resolved(tmp_path, "exe", "  "))
    assert empty.error is MechanismErrorKind.INVALID_COMMAND


def test_copy_mechanism_copies_tree(tmp_path: Path) -> None:
    source = tmp_path / "payload" / "tools"
    (source / "bin").mkdir(parents=True)
    (source / "bin" / "tool.exe").write_text("bin")
    destination = tmp_path / "target"
    resolved = _resolved(tmp_path, "copy", str(destination), path="payload/tools")
    outcome = _dispatcher().install(resolved)
    assert outcome.kind is OutcomeKind.SUCCESS
    assert (destination / "bin" / "tool.exe").read_text() == "bin"


def test_copy_missing_source_is_source_not_found(tmp_path: Path) -> None:
    outcome = _dispatcher().install(_resolved(tmp_path, "copy", str(tmp_path / "target"), path="payload/none"))
    assert outcome.error is MechanismErrorKind.SOURCE_NOT_FOUND


def test_shortcut_mechanism_uses_driver_name(tmp_path: Path) -> None:
    shortcuts = FakeShortcutCreator()
    resolved = _resolved(tmp_path, "shortcut", "C:\\Users\\Public\\Desktop\\Tool.lnk", path="tools/tool.exe")
    outcome = _dispatcher(shortcut_creator=shortcuts).install(resolved)
    assert outcome.kind is OutcomeKind.SUCCESS
    assert shortcuts.created == [(resolved.path, "C:\\Users\\Public\\Desktop\\Tool.lnk", "Package")]


def test_registry_mechanism_imports_file(tmp_path: Path) -> None:
    reg_file = tmp_path / "settings" / "kiosk.reg"
    reg_file.parent.mkdir()
    reg_file.write_text("Windows Registry Editor Version 5.00\n")
    runner = FakeRunner()
    outcome = _dispatcher(runner).install(_resolved(tmp_path, "registry", "", path="settings/kiosk.reg"))
    assert outcome.kind is OutcomeKind.SUCCESS
    assert runner.calls[0][0] == ["reg", "import", str(reg_file)]


def test_registry_mechanism_requires_file(tmp_path: Path) -> None:
    runner = FakeRunner()
    outcome = _dispatcher(runner).install(_resolved(tmp_path, "registry", "", path="settings/missing.reg"))
    assert outcome.error is MechanismErrorKind.SOURCE_NOT_FOUND
    assert runner.calls == []


def test_displayscale_mechanism(tmp_path: Path) -> None:
    scale = FakeDisplayScale()
    outcome = _dispatcher(display_scale=scale).install(_resolved(tmp_path, "displayscale", "150%", path=""))
    assert outcome.kind is OutcomeKind.SUCCESS
    assert scale.applied == [150]


def test_displayscale_hive_failures(tmp_path: Path) -> None:
    leaked = _dispatcher(display_scale=FakeDisplayScale(unloaded=False)).install(_resolved(tmp_path, "displayscale", "150", path=""))
    assert leaked.error is MechanismErrorKind.HIVE_UNLOAD_FAILURE
    refused = _dispatcher(display_scale=FakeDisplayScale(error=HiveLoadError("in use"))).install(
        _resolved(tmp_path, "displayscale", "150", path="")
    )
    assert refused.error is MechanismErrorKind.HIVE_LOAD_FAILURE
    invalid = _dispatcher(display_scale=FakeDisplayScale()).install(_resolved(tmp_path, "displayscale", "big", path=""))
    assert invalid.error is MechanismErrorKind.INVALID_COMMAND
