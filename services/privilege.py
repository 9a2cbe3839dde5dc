"""Administrator checks and elevation for Windows."""
from __future__ import annotations

import ctypes
import logging
import subprocess
import sys
from typing import Final, Sequence

logger = logging.getLogger(__name__)

# ShellExecuteW returns a value greater than 32 on success.
SHELLEXECUTE_MIN_SUCCESS: Final[int] = 32


def is_admin() -> bool:
    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
    except AttributeError:
        return False


def relaunch_as_admin(argv: Sequence[str] | None = None) -> bool:
    """Start an elevated copy of this process. Returns True when the UAC launch succeeded."""
    args = list(sys.argv if argv is None else argv)
    if getattr(sys, "frozen", False):
        args = args[1:]
    params = subprocess.list2cmdline(args)
    try:
        result = ctypes.windll.shell32.ShellExecuteW(None, "runas", sys.executable, params, None, 1)  # type: ignore[attr-defined]
    except AttributeError:
        logger.error("Elevation is only available on Windows")
        return False
    if int(result) <= SHELLEXECUTE_MIN_SUCCESS:
        logger.error("Elevated relaunch was refused (ShellExecuteW returned %s)", result)
        return False
    logger.info("Relaunched elevated: %s %s", sys.executable, params)
    return True
