"""Registry access through winreg."""
from __future__ import annotations

from typing import Protocol

try:  # Windows-only dependency, optional for test doubles
    import winreg  # type: ignore
except ImportError:  # pragma: no cover - not available on Linux runners
    winreg = None  # type: ignore

HKCU_PREFIX = "HKCU:\\"


class RegistryAccessor(Protocol):
    def set_value(self, path: str, value_name: str, value: str | int, *, create: bool = True) -> None:  # pragma: no cover - protocol
        """Write a value; with ``create=False`` a missing key raises FileNotFoundError."""
        ...


class WindowsRegistryAccessor:
    """Minimal registry helper backed by winreg."""

    def __init__(self) -> None:
        if winreg is None:
            raise RuntimeError("winreg not available on this platform")

    def set_value(self, path: str, value_name: str, value: str | int, *, create: bool = True) -> None:
        hive, subkey = self._split_path(path)
        value_type = winreg.REG_DWORD if isinstance(value, int) else winreg.REG_SZ
        if create:
            handle = winreg.CreateKeyEx(hive, subkey, 0, winreg.KEY_SET_VALUE)  # type: ignore[arg-type]
        else:
            handle = winreg.OpenKey(hive, subkey, 0, winreg.KEY_SET_VALUE)  # type: ignore[arg-type]
        with handle as key:
            winreg.SetValueEx(key, value_name, 0, value_type, value)

    def _split_path(self, path: str) -> tuple[object, str]:
        cleaned = path.replace("/", "\\")
        marker = ":\\"
        if marker not in cleaned:
            raise ValueError(f"Invalid registry path: {path}")
        hive_name, subkey = cleaned.split(marker, 1)
        subkey = subkey.lstrip("\\")
        hive_map = {
            "HKLM": winreg.HKEY_LOCAL_MACHINE,
            "HKCU": winreg.HKEY_CURRENT_USER,
            "HKU": winreg.HKEY_USERS,
        }
        try:
            hive = hive_map[hive_name.upper()]
        except KeyError as exc:  # pragma: no cover - invalid input handled upstream
            raise ValueError(f"Unsupported hive: {hive_name}") from exc
        return hive, subkey


def map_user_path(path: str, root: str) -> str:
    """Re-root an ``HKCU:\\`` path under another user hive such as ``HKU:\\<mount>``."""
    if not path.upper().startswith(HKCU_PREFIX):
        raise ValueError(f"Expected HKCU path, got: {path}")
    suffix = path[len(HKCU_PREFIX) :]
    return f"{root}\\{suffix}"
