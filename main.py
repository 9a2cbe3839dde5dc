"""Imaging tool entry point: install the drivers this machine's manifest tier calls for."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from imaging_tool.constants import IMMUTABLE_CONFIG
from imaging_tool.errors import ManifestError
from imaging_tool.logging_config import configure_logging
from imaging_tool.manifest import load_manifest
from imaging_tool.paths import get_application_directory, get_manifest_path
from services.commands import SubprocessRunner
from services.hardware import HardwareIdentity, detect_hardware
from services.installer import InstallDispatcher
from services.pipeline import InstallationPipeline, LoggingProgressSink, PipelineStatus
from services.privilege import is_admin, relaunch_as_admin

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_MANIFEST_ERROR = 1
EXIT_UNSUPPORTED_HARDWARE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Install drivers and tools listed in the imaging manifest.")
    parser.add_argument("--manifest", type=Path, help="Manifest file (default: manifest.json next to the tool)")
    parser.add_argument("--install-root", type=Path, help="Directory driver paths are relative to (default: tool directory)")
    parser.add_argument("--log-file", type=Path, help="Log file path")
    parser.add_argument("--headless", action="store_true", help="Run without the window and exit when done")
    parser.add_argument("--model", help="Override the detected computer model")
    parser.add_argument("--cpu", help="Override the detected CPU name")
    parser.add_argument("--timeout", type=float, help="Per-installer timeout in seconds (default: none)")
    parser.add_argument("--no-elevate", action="store_true", help="Do not relaunch as administrator")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output")
    return parser


def resolve_identity(args: argparse.Namespace) -> HardwareIdentity | None:
    if args.model is None and args.cpu is None:
        return None
    return HardwareIdentity(args.model or "", args.cpu or "")


def run_headless(
    manifest_path: Path,
    install_root: Path,
    identity: HardwareIdentity | None,
    timeout: float | None = None,
) -> int:
    try:
        manifest = load_manifest(manifest_path)
    except ManifestError as exc:
        logger.error("%s", exc)
        return EXIT_MANIFEST_ERROR
    logger.info("Loaded manifest %s (version %s)", manifest_path, manifest.version or "unknown")
    detected = identity or detect_hardware()
    sink = LoggingProgressSink()
    runner = SubprocessRunner(timeout=timeout if timeout is not None else IMMUTABLE_CONFIG.provisioning.process_timeout_seconds)
    pipeline = InstallationPipeline(InstallDispatcher(command_runner=runner), sink=sink, install_root=install_root)
    plan = pipeline.plan(manifest, detected)
    sink.total = plan.total_progress
    result = pipeline.execute(plan)
    if result.status is PipelineStatus.UNSUPPORTED_HARDWARE:
        return EXIT_UNSUPPORTED_HARDWARE
    for item in result.failed:
        logger.warning("Failed: %s [%s] %s", item.driver.name, item.stage.value, item.outcome.message)
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    app_dir = get_application_directory()
    configure_logging(args.log_file, level=logging.DEBUG if args.verbose else logging.INFO)

    if sys.platform == "win32" and not args.no_elevate and not is_admin():
        logger.info("Administrator rights required; requesting elevation")
        if relaunch_as_admin():
            return EXIT_OK
        logger.warning("Continuing without administrator rights; most installers will fail")

    manifest_path = args.manifest or get_manifest_path(app_dir)
    install_root = args.install_root or app_dir
    identity = resolve_identity(args)
    if args.headless:
        return run_headless(manifest_path, install_root, identity, args.timeout)

    from ui.main_window import WindowOptions, run_gui

    return run_gui(
        WindowOptions(manifest_path=manifest_path, install_root=install_root, identity=identity, timeout=args.timeout)
    )


if __name__ == "__main__":
    sys.exit(main())
