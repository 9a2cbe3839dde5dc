"""Log file and console handler setup."""
from __future__ import annotations

import logging
from pathlib import Path

from imaging_tool.paths import get_log_path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_CONFIGURED_ATTR = "_imaging_tool_log_path"


def configure_logging(
    log_path: Path | str | None = None,
    level: int = logging.INFO,
    also_console: bool = True,
) -> Path:
    """Attach file and console handlers to the root logger.

    The log normally lives next to the application. When that location is not
    writable (read-only deployment share) the file falls back to the current
    working directory. Repeated calls keep the first configuration and return
    the path already in use.
    """
    root = logging.getLogger()
    existing = getattr(root, _CONFIGURED_ATTR, None)
    if existing is not None:
        return existing

    root.setLevel(level)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    requested = Path(log_path) if log_path is not None else get_log_path()
    try:
        requested.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(requested, encoding="utf-8")
        chosen = requested
    except OSError:
        chosen = Path.cwd() / requested.name
        file_handler = logging.FileHandler(chosen, encoding="utf-8")
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if also_console:
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        root.addHandler(console)

    setattr(root, _CONFIGURED_ATTR, chosen)
    logging.getLogger(__name__).info("Logging initialized (requested=%s, actual=%s)", requested, chosen)
    return chosen
