"""Display scale (DPI) provisioning for the current and default user profiles."""
from __future__ import annotations

import logging
import subprocess
import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Mapping

from imaging_tool.constants import IMMUTABLE_CONFIG, DefaultUserHiveSetting, DisplayScaleSetting, RegistryValueSetting
from imaging_tool.errors import HiveLoadError, InvalidInstallCommandError
from services.commands import CommandRunner, SubprocessRunner, format_command_detail
from services.registry import RegistryAccessor, WindowsRegistryAccessor, map_user_path

logger = logging.getLogger(__name__)

# The mount key name is fixed, so only one default-user mount may exist at a time.
_HIVE_LOCK = threading.Lock()


@dataclass
class HiveMount:
    mount_key: str
    unloaded: bool = False

    @property
    def reg_key(self) -> str:
        return fr"HKU\{self.mount_key}"

    @property
    def root(self) -> str:
        return fr"HKU:\{self.mount_key}"


@dataclass
class DisplayScaleReport:
    percent: int
    dpi: int
    hive_unloaded: bool = False
    warnings: list[str] = field(default_factory=list)


def parse_percent(value: str) -> int:
    cleaned = value.strip().rstrip("%").strip()
    try:
        return int(cleaned)
    except ValueError as exc:
        raise InvalidInstallCommandError(f"Display scale '{value}' is not a whole percentage") from exc


def resolve_dpi(percent: int, table: Mapping[int, int] | None = None) -> int:
    lookup = table if table is not None else IMMUTABLE_CONFIG.provisioning.display_scale.dpi_by_percent
    dpi = lookup.get(percent)
    if dpi is None:
        logger.warning("Display scale %s%% has no DPI mapping; using %s unchanged", percent, percent)
        return percent
    return dpi


class DisplayScaleProvisioner:
    def __init__(
        self,
        *,
        command_runner: CommandRunner | None = None,
        registry: RegistryAccessor | None = None,
        setting: DisplayScaleSetting | None = None,
        hive: DefaultUserHiveSetting | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        config = IMMUTABLE_CONFIG.provisioning
        self._runner = command_runner or SubprocessRunner()
        self._registry = registry or WindowsRegistryAccessor()
        self._setting = setting or config.display_scale
        self._hive = hive or config.default_user_hive
        self._sleep = sleep

    def apply(self, percent: int) -> DisplayScaleReport:
        dpi = resolve_dpi(percent, self._setting.dpi_by_percent)
        report = DisplayScaleReport(percent, dpi)
        logger.info("Applying display scale %s%% (DPI %s)", percent, dpi)

        for entry, value in self._values(dpi):
            self._registry.set_value(entry.path, entry.value_name, value)
        logger.info("Display scale applied to the current user")

        with self.default_user_hive() as mount:
            for entry, value in self._values(dpi):
                target = map_user_path(entry.path, mount.root)
                try:
                    self._registry.set_value(target, entry.value_name, value, create=False)
                except FileNotFoundError:
                    message = f"Default user key missing, skipped {entry.value_name}: {target}"
                    logger.warning(message)
                    report.warnings.append(message)
        report.hive_unloaded = mount.unloaded
        if mount.unloaded:
            logger.info("Display scale applied to the default user profile")
        return report

    @contextmanager
    def default_user_hive(self) -> Iterator[HiveMount]:
        """Mount the default user profile, yield it, and always unmount it."""
        with _HIVE_LOCK:
            mount = HiveMount(self._hive.mount_key)
            command = ["reg", "load", mount.reg_key, self._hive.profile_path]
            try:
                load = self._runner.run(command)
            except (OSError, subprocess.SubprocessError) as exc:
                raise HiveLoadError(f"Default user profile load failed: {exc}") from exc
            if load.returncode != 0:
                detail = (load.stderr or load.stdout or "").strip() or "Unknown error"
                raise HiveLoadError(f"Default user profile load failed: {detail}")
            logger.info("Loaded default user profile at %s", mount.reg_key)
            try:
                yield mount
            finally:
                # Registry handles opened under the mount need a moment to release.
                self._sleep(self._hive.unload_delay_seconds)
                mount.unloaded = self._unload(mount)

    def _unload(self, mount: HiveMount) -> bool:
        try:
            completed = self._runner.run(["reg", "unload", mount.reg_key])
        except (OSError, subprocess.SubprocessError) as exc:
            logger.error("Default user profile unload failed, %s may remain locked: %s", self._hive.profile_path, exc)
            return False
        if completed.returncode != 0:
            logger.error(
                "Default user profile unload failed, %s may remain locked: %s",
                self._hive.profile_path,
                format_command_detail(completed),
            )
            return False
        logger.info("Unloaded default user profile from %s", mount.reg_key)
        return True

    def _values(self, dpi: int) -> list[tuple[RegistryValueSetting, int]]:
        return [
            (self._setting.log_pixels, dpi),
            (self._setting.scaling_enabled, 1),
            (self._setting.applied_dpi, dpi),
        ]
