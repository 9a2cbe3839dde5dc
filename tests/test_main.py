from __future__ import annotations

import json
from pathlib import Path

from main import EXIT_MANIFEST_ERROR, EXIT_OK, EXIT_UNSUPPORTED_HARDWARE, build_parser, resolve_identity, run_headless
from services.hardware import HardwareIdentity


def _write_manifest(root: Path) -> Path:
    (root / "payload" / "config").mkdir(parents=True)
    (root / "payload" / "config" / "app.ini").write_text("[app]\n")
    manifest = {
        "version": "4",
        "systemTiers": [
            {
                "model": "X1",
                "cpu": "Intel",
                "drivers": [
                    {"name": "Config", "type": "copy", "path": "payload/config", "installCmd": str(root / "installed")},
                    {"name": "Odd", "type": "appx", "path": "payload/odd.appx", "installCmd": "{path}"},
                ],
            }
        ],
    }
    path = root / "manifest.json"
    path.write_text(json.dumps(manifest), encoding="utf-8")
    return path


def test_parser_defaults() -> None:
    args = build_parser().parse_args([])
    assert not args.headless
    assert args.timeout is None
    assert resolve_identity(args) is None


def test_identity_override() -> None:
    args = build_parser().parse_args(["--model", "X1", "--cpu", "Intel(R) Core(TM) i5"])
    assert resolve_identity(args) == HardwareIdentity("X1", "Intel(R) Core(TM) i5")


def test_headless_run_continues_past_failures(tmp_path: Path) -> None:
    manifest = _write_manifest(tmp_path)
    code = run_headless(manifest, tmp_path, HardwareIdentity("X1", "Intel(R) Core(TM) i7"))
    assert code == EXIT_OK
    assert (tmp_path / "installed" / "app.ini").exists()


def test_headless_unsupported_hardware(tmp_path: Path) -> None:
    manifest = _write_manifest(tmp_path)
    code = run_headless(manifest, tmp_path, HardwareIdentity("Z9", "AMD"))
    assert code == EXIT_UNSUPPORTED_HARDWARE
    assert not (tmp_path / "installed").exists()


def test_headless_manifest_error(tmp_path: Path) -> None:
    assert run_headless(tmp_path / "missing.json", tmp_path, HardwareIdentity("X1", "Intel")) == EXIT_MANIFEST_ERROR
