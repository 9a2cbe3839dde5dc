"""Immutable settings for the driver provisioning engine."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping, Tuple


@dataclass(frozen=True)
class RegistryValueSetting:
    path: str
    value_name: str


@dataclass(frozen=True)
class DefaultUserHiveSetting:
    mount_key: str
    profile_path: str
    unload_delay_seconds: float


@dataclass(frozen=True)
class DisplayScaleSetting:
    log_pixels: RegistryValueSetting
    scaling_enabled: RegistryValueSetting
    applied_dpi: RegistryValueSetting
    dpi_by_percent: Mapping[int, int]


@dataclass(frozen=True)
class ProgramTokens:
    msi_installer: str
    msi_tokens: Tuple[str, ...]
    driver_store: str
    driver_store_tokens: Tuple[str, ...]
    command_interpreter: str
    command_interpreter_tokens: Tuple[str, ...]
    registry_tool: str


@dataclass(frozen=True)
class ProgressWeights:
    start: int
    per_driver: int


@dataclass(frozen=True)
class ProvisioningConfig:
    manifest_file_name: str
    log_file_name: str
    reboot_required_exit_code: int
    programs: ProgramTokens
    progress: ProgressWeights
    default_user_hive: DefaultUserHiveSetting
    display_scale: DisplayScaleSetting
    process_timeout_seconds: float | None = None


@dataclass(frozen=True)
class ImmutableConfig:
    provisioning: ProvisioningConfig
    version_label: str = field(default="Version 1.0.0")


# 175% maps to 140 on the imaged terminals; kept as shipped.
DPI_BY_PERCENT: Mapping[int, int] = {
    100: 96,
    125: 120,
    150: 144,
    175: 140,
    200: 192,
    225: 216,
    250: 240,
    300: 288,
    350: 336,
    400: 384,
    450: 432,
    500: 480,
}

DESKTOP_KEY_PATH = r"HKCU:\Control Panel\Desktop"
WINDOW_METRICS_KEY_PATH = r"HKCU:\Control Panel\Desktop\WindowMetrics"

PROVISIONING_CONFIG = ProvisioningConfig(
    manifest_file_name="manifest.json",
    log_file_name="imaging_tool.log",
    reboot_required_exit_code=3010,
    programs=ProgramTokens(
        msi_installer="msiexec.exe",
        msi_tokens=("msiexec.exe", "msiexec"),
        driver_store="pnputil.exe",
        driver_store_tokens=("pnputil.exe", "pnputil"),
        command_interpreter="cmd.exe",
        command_interpreter_tokens=("cmd.exe",),
        registry_tool="reg",
    ),
    progress=ProgressWeights(start=1, per_driver=2),
    default_user_hive=DefaultUserHiveSetting(
        mount_key="ImagingTool_DefaultUser",
        profile_path=r"C:\Users\Default\NTUSER.DAT",
        unload_delay_seconds=0.5,
    ),
    display_scale=DisplayScaleSetting(
        log_pixels=RegistryValueSetting(DESKTOP_KEY_PATH, "LogPixels"),
        scaling_enabled=RegistryValueSetting(DESKTOP_KEY_PATH, "Win8DpiScaling"),
        applied_dpi=RegistryValueSetting(WINDOW_METRICS_KEY_PATH, "AppliedDPI"),
        dpi_by_percent=DPI_BY_PERCENT,
    ),
)

IMMUTABLE_CONFIG = ImmutableConfig(
    provisioning=PROVISIONING_CONFIG,
)
