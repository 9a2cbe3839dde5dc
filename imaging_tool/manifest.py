"""Manifest data model and JSON loading."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from imaging_tool.errors import ManifestError, UnsupportedDriverTypeError


class DriverType(str, Enum):
    EXE = "exe"
    MSI = "msi"
    INF = "inf"
    CMD = "cmd"
    COPY = "copy"
    SHORTCUT = "shortcut"
    REGISTRY = "registry"
    DISPLAYSCALE = "displayscale"

    @classmethod
    def parse(cls, value: str) -> "DriverType":
        try:
            return cls(value.strip().lower())
        except ValueError as exc:
            raise UnsupportedDriverTypeError(f"Driver type '{value}' is not supported.") from exc


@dataclass(frozen=True)
class Driver:
    name: str
    type: str
    path: str = ""
    install_cmd: str = ""
    uninstall_cmd: str = ""
    reboot_required: bool = False


@dataclass(frozen=True)
class Tier:
    model: str
    cpu: str
    drivers: tuple[Driver, ...] = ()
    display_name: str | None = None
    os: str | None = None

    @property
    def label(self) -> str:
        return self.display_name or f"{self.model} ({self.cpu})"


@dataclass(frozen=True)
class Manifest:
    version: str = ""
    system_tiers: tuple[Tier, ...] = ()
    peripheral_tiers: tuple[Tier, ...] = ()
    common_drivers: tuple[Driver, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ResolvedDriver:
    """A driver whose path has been joined to the installation root."""

    driver: Driver
    path: str

    @property
    def name(self) -> str:
        return self.driver.name

    @property
    def directory(self) -> str:
        return str(Path(self.path).parent)

    @property
    def file_name(self) -> str:
        return Path(self.path).name


def resolve_driver(driver: Driver, install_root: Path | str) -> ResolvedDriver:
    return ResolvedDriver(driver, str(Path(install_root) / driver.path))


# Original manifests use PascalCase names from the .NET serializer.
_MANIFEST_KEYS = {
    "version": ("version", "manifestversion"),
    "system_tiers": ("systemtiers", "systemdrivers", "terminals"),
    "peripheral_tiers": ("peripheraltiers", "peripheraldrivers"),
    "common_drivers": ("commondrivers",),
}


def load_manifest(path: Path | str) -> Manifest:
    manifest_path = Path(path)
    try:
        raw = manifest_path.read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise ManifestError(f"Unable to read manifest {manifest_path}: {exc}") from exc
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ManifestError(f"Manifest {manifest_path} is not valid JSON: {exc}") from exc
    return parse_manifest(data)


def parse_manifest(data: Any) -> Manifest:
    if not isinstance(data, Mapping):
        raise ManifestError("Manifest root must be a JSON object")
    fields = _lowered(data)
    version = _lookup(fields, *_MANIFEST_KEYS["version"])
    return Manifest(
        version="" if version is None else str(version),
        system_tiers=tuple(_parse_tier(item, "system") for item in _as_list(fields, "system tiers", *_MANIFEST_KEYS["system_tiers"])),
        peripheral_tiers=tuple(
            _parse_tier(item, "peripheral") for item in _as_list(fields, "peripheral tiers", *_MANIFEST_KEYS["peripheral_tiers"])
        ),
        common_drivers=tuple(_parse_driver(item) for item in _as_list(fields, "common drivers", *_MANIFEST_KEYS["common_drivers"])),
    )


def _parse_tier(data: Any, category: str) -> Tier:
    if not isinstance(data, Mapping):
        raise ManifestError(f"Each {category} tier must be a JSON object")
    fields = _lowered(data)
    model = _lookup(fields, "model")
    cpu = _lookup(fields, "cpu")
    if model is None or cpu is None:
        raise ManifestError(f"A {category} tier is missing its model or cpu")
    display_name = _lookup(fields, "displayname")
    os_name = _lookup(fields, "os")
    drivers = tuple(_parse_driver(item) for item in _as_list(fields, f"{model} drivers", "drivers"))
    return Tier(
        model=str(model),
        cpu=str(cpu),
        drivers=drivers,
        display_name=None if display_name is None else str(display_name),
        os=None if os_name is None else str(os_name),
    )


def _parse_driver(data: Any) -> Driver:
    if not isinstance(data, Mapping):
        raise ManifestError("Each driver must be a JSON object")
    fields = _lowered(data)
    name = _lookup(fields, "name")
    if not name:
        raise ManifestError("A driver entry is missing its name")
    driver_type = _lookup(fields, "type")
    return Driver(
        name=str(name),
        type="" if driver_type is None else str(driver_type),
        path=str(_lookup(fields, "path") or ""),
        install_cmd=str(_lookup(fields, "installcmd") or ""),
        uninstall_cmd=str(_lookup(fields, "uninstallcmd") or ""),
        reboot_required=_parse_flag(_lookup(fields, "rebootrequired"), f"{name} rebootRequired"),
    )


def _parse_flag(value: Any, label: str) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ManifestError(f"Manifest {label} must be true or false, got {value!r}")


def _lowered(data: Mapping[str, Any]) -> dict[str, Any]:
    return {str(key).lower(): value for key, value in data.items()}


def _lookup(fields: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in fields:
            return fields[name]
    return None


def _as_list(fields: Mapping[str, Any], label: str, *names: str) -> list[Any]:
    value = _lookup(fields, *names)
    if value is None:
        return []
    if not isinstance(value, list):
        raise ManifestError(f"Manifest {label} must be a list")
    return value
