from __future__ import annotations

import subprocess

from imaging_tool.manifest import Manifest, Tier
from services.commands import Command
from services.hardware import HardwareIdentity, detect_hardware, match_tiers, tier_matches


class FakeRunner:
    def __init__(self, returncode: int = 0, stdout: str = "", error: Exception | None = None) -> None:
        self.returncode = returncode
        self.stdout = stdout
        self.error = error
        self.commands: list[Command] = []

    def run(self, command: Command, *, cwd: str | None = None) -> subprocess.CompletedProcess[str]:
        self.commands.append(command)
        if self.error:
            raise self.error
        return subprocess.CompletedProcess(command, self.returncode, self.stdout, "")


def test_model_is_case_insensitive_and_cpu_is_substring() -> None:
    tier = Tier(model="X1", cpu="intel")
    assert tier_matches(tier, HardwareIdentity("x1", "Intel(R) Core(TM) i7-1185G7"))
    assert not tier_matches(tier, HardwareIdentity("X1 Carbon", "Intel(R) Core(TM) i7"))
    assert not tier_matches(tier, HardwareIdentity("X1", "AMD Ryzen 5"))


def test_cpu_match_is_not_reversed() -> None:
    tier = Tier(model="X1", cpu="Intel(R) Core(TM) i7-1185G7")
    assert not tier_matches(tier, HardwareIdentity("X1", "Intel"))


def test_first_matching_tier_wins_and_peripheral_is_optional() -> None:
    first = Tier(model="X1", cpu="Intel", display_name="first")
    second = Tier(model="X1", cpu="Core", display_name="second")
    manifest = Manifest(system_tiers=(first, second), peripheral_tiers=(Tier(model="Y2", cpu="Intel"),))
    match = match_tiers(manifest, HardwareIdentity("X1", "Intel(R) Core(TM) i5"))
    assert match.system is first
    assert match.peripheral is None
    assert match.supported


def test_unknown_hardware_matches_nothing() -> None:
    manifest = Manifest(system_tiers=(Tier(model="X1", cpu="Intel"),))
    match = match_tiers(manifest, HardwareIdentity("", ""))
    assert match.system is None
    assert not match.supported


def test_detect_hardware_reads_wmi_json() -> None:
    runner = FakeRunner(stdout='{"Model":" X1 ","Cpu":"Intel(R) Core(TM) i7"}\n')
    identity = detect_hardware(runner)
    assert identity == HardwareIdentity("X1", "Intel(R) Core(TM) i7")
    assert runner.commands[0][0] == "powershell"


def test_detect_hardware_failures_yield_empty_identity() -> None:
    assert detect_hardware(FakeRunner(returncode=1)) == HardwareIdentity("", "")
    assert detect_hardware(FakeRunner(stdout="garbage")) == HardwareIdentity("", "")
    assert detect_hardware(FakeRunner(error=FileNotFoundError("powershell"))) == HardwareIdentity("", "")


def test_detect_hardware_non_object_json_yields_empty_identity() -> None:
    for stdout in ("null", '["X1", "Intel"]', '"X1"'):
        assert detect_hardware(FakeRunner(stdout=stdout)) == HardwareIdentity("", "")
