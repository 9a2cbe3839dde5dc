"""Hardware identity detection and manifest tier matching."""
from __future__ import annotations

import json
import logging
import subprocess
from dataclasses import dataclass
from typing import Iterable

from imaging_tool.manifest import Manifest, Tier
from services.commands import CommandRunner, SubprocessRunner

logger = logging.getLogger(__name__)

IDENTITY_SCRIPT = """
$cs = Get-CimInstance Win32_ComputerSystem | Select-Object -First 1
$cpu = Get-CimInstance Win32_Processor | Select-Object -First 1
@{ Model = $cs.Model; Cpu = $cpu.Name } | ConvertTo-Json -Compress
"""


@dataclass(frozen=True)
class HardwareIdentity:
    model: str
    cpu: str


@dataclass(frozen=True)
class TierMatch:
    system: Tier | None
    peripheral: Tier | None

    @property
    def supported(self) -> bool:
        return self.system is not None


def detect_hardware(runner: CommandRunner | None = None, *, powershell: str = "powershell") -> HardwareIdentity:
    """Read the computer model and first CPU name from WMI.

    Failures return empty strings, which match no tier.
    """
    active = runner or SubprocessRunner(timeout=30)
    try:
        completed = active.run([powershell, "-NoProfile", "-Command", IDENTITY_SCRIPT])
    except (OSError, subprocess.SubprocessError) as exc:
        logger.error("Hardware query failed: %s", exc)
        return HardwareIdentity("", "")
    if completed.returncode != 0 or not completed.stdout.strip():
        logger.error("Hardware query exited with %s: %s", completed.returncode, (completed.stderr or "").strip())
        return HardwareIdentity("", "")
    try:
        data = json.loads(completed.stdout)
    except json.JSONDecodeError:
        logger.error("Hardware query returned unreadable output: %s", completed.stdout.strip())
        return HardwareIdentity("", "")
    if not isinstance(data, dict):
        logger.error("Hardware query returned %s instead of an object", type(data).__name__)
        return HardwareIdentity("", "")
    identity = HardwareIdentity(str(data.get("Model") or "").strip(), str(data.get("Cpu") or "").strip())
    logger.info("Model: %s", identity.model)
    logger.info("CPU: %s", identity.cpu)
    return identity


def tier_matches(tier: Tier, identity: HardwareIdentity) -> bool:
    # The manifest cpu must appear inside the detected name, not the reverse.
    return tier.model.lower() == identity.model.lower() and tier.cpu.lower() in identity.cpu.lower()


def find_tier(tiers: Iterable[Tier], identity: HardwareIdentity) -> Tier | None:
    for tier in tiers:
        if tier_matches(tier, identity):
            return tier
    return None


def match_tiers(manifest: Manifest, identity: HardwareIdentity) -> TierMatch:
    return TierMatch(
        system=find_tier(manifest.system_tiers, identity),
        peripheral=find_tier(manifest.peripheral_tiers, identity),
    )
