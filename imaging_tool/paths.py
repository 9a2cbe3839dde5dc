"""Locations relative to the running application."""
from __future__ import annotations

import sys
from pathlib import Path

from imaging_tool.constants import IMMUTABLE_CONFIG


def get_application_directory() -> Path:
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent
    return Path(__file__).resolve().parent.parent


def get_manifest_path(app_dir: Path | None = None) -> Path:
    root = app_dir or get_application_directory()
    return root / IMMUTABLE_CONFIG.provisioning.manifest_file_name


def get_log_path(app_dir: Path | None = None) -> Path:
    root = app_dir or get_application_directory()
    return root / IMMUTABLE_CONFIG.provisioning.log_file_name
