"""Ordered, best-effort installation of the drivers matched for this machine."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

from imaging_tool.constants import IMMUTABLE_CONFIG, ProgressWeights
from imaging_tool.errors import MechanismErrorKind
from imaging_tool.manifest import Driver, Manifest, ResolvedDriver, Tier, resolve_driver
from imaging_tool.paths import get_application_directory
from services.hardware import HardwareIdentity, TierMatch, match_tiers
from services.installer import InstallDispatcher, InstallOutcome, OutcomeKind

logger = logging.getLogger(__name__)


class PipelineStatus(str, Enum):
    COMPLETED = "completed"
    UNSUPPORTED_HARDWARE = "unsupported_hardware"


class Stage(str, Enum):
    SYSTEM = "system"
    COMMON = "common"
    PERIPHERAL = "peripheral"


class ProgressSink(Protocol):
    def report(self, increment: int, status: str) -> None:  # pragma: no cover - protocol
        ...


class NullProgressSink:
    def report(self, increment: int, status: str) -> None:
        return None


class LoggingProgressSink:
    """Headless sink that writes the running progress to the log."""

    def __init__(self, total: int = 0) -> None:
        self.total = total
        self.current = 0

    def report(self, increment: int, status: str) -> None:
        self.current += increment
        if self.total:
            logger.info("[%d/%d] %s", self.current, self.total, status)
        else:
            logger.info("[%d] %s", self.current, status)


@dataclass(frozen=True)
class PlannedStage:
    stage: Stage
    drivers: tuple[ResolvedDriver, ...]


@dataclass(frozen=True)
class InstallPlan:
    identity: HardwareIdentity
    match: TierMatch
    stages: tuple[PlannedStage, ...]
    weights: ProgressWeights

    @property
    def supported(self) -> bool:
        return self.match.supported

    @property
    def driver_count(self) -> int:
        return sum(len(stage.drivers) for stage in self.stages)

    @property
    def total_progress(self) -> int:
        return self.weights.start + self.weights.per_driver * self.driver_count


@dataclass(frozen=True)
class DriverResult:
    stage: Stage
    driver: ResolvedDriver
    outcome: InstallOutcome


@dataclass
class PipelineResult:
    status: PipelineStatus
    plan: InstallPlan
    results: list[DriverResult] = field(default_factory=list)
    progress: int = 0

    @property
    def system_tier(self) -> Tier | None:
        return self.plan.match.system

    @property
    def peripheral_tier(self) -> Tier | None:
        return self.plan.match.peripheral

    @property
    def succeeded(self) -> list[DriverResult]:
        return [result for result in self.results if result.outcome.completed]

    @property
    def failed(self) -> list[DriverResult]:
        return [result for result in self.results if not result.outcome.completed]

    @property
    def reboot_required(self) -> bool:
        return any(
            result.outcome.kind is OutcomeKind.REBOOT_REQUIRED
            or (result.outcome.completed and result.driver.driver.reboot_required)
            for result in self.results
        )

    def summary(self) -> str:
        if self.status is PipelineStatus.UNSUPPORTED_HARDWARE:
            return f"Installation aborted: Unsupported hardware ({self.plan.identity.model}, {self.plan.identity.cpu})"
        if not self.failed:
            text = f"All {len(self.results)} driver(s) installed successfully"
        else:
            text = f"{len(self.succeeded)} of {len(self.results)} driver(s) installed, {len(self.failed)} failed (see log)"
        if self.reboot_required:
            text = f"{text}; reboot required"
        return f"{self.tier_label}: {text}" if self.tier_label else text

    @property
    def tier_label(self) -> str:
        labels = [tier.label for tier in (self.system_tier, self.peripheral_tier) if tier is not None]
        return " + ".join(labels)


def build_plan(
    manifest: Manifest,
    identity: HardwareIdentity,
    install_root: Path | str,
    *,
    weights: ProgressWeights | None = None,
) -> InstallPlan:
    """Match tiers and resolve every driver path once against ``install_root``."""
    match = match_tiers(manifest, identity)
    stage_drivers: list[tuple[Stage, tuple[Driver, ...]]] = []
    if match.system is not None:
        stage_drivers.append((Stage.SYSTEM, match.system.drivers))
        stage_drivers.append((Stage.COMMON, manifest.common_drivers))
        if match.peripheral is not None:
            stage_drivers.append((Stage.PERIPHERAL, match.peripheral.drivers))
    stages = tuple(
        PlannedStage(stage, tuple(resolve_driver(driver, install_root) for driver in drivers))
        for stage, drivers in stage_drivers
    )
    return InstallPlan(identity, match, stages, weights or IMMUTABLE_CONFIG.provisioning.progress)


def log_plan(plan: InstallPlan) -> None:
    identity = plan.identity
    if plan.match.system is not None:
        logger.info("Found system drivers for model: %s, CPU: %s (%s)", identity.model, identity.cpu, plan.match.system.label)
    else:
        logger.warning("No system drivers found for model: %s, CPU: %s", identity.model, identity.cpu)
        logger.warning("This hardware is NOT SUPPORTED. Installation will be skipped.")
    if plan.match.peripheral is not None:
        logger.info("Found peripheral drivers for model: %s, CPU: %s (%s)", identity.model, identity.cpu, plan.match.peripheral.label)
    else:
        logger.info("No peripheral drivers found for model: %s, CPU: %s", identity.model, identity.cpu)
    for stage in plan.stages:
        for resolved in stage.drivers:
            logger.info("%s driver: %s", stage.stage.value.capitalize(), resolved.name)


class InstallationPipeline:
    def __init__(
        self,
        dispatcher: InstallDispatcher | None = None,
        *,
        sink: ProgressSink | None = None,
        install_root: Path | str | None = None,
        weights: ProgressWeights | None = None,
    ) -> None:
        self._dispatcher = dispatcher or InstallDispatcher()
        self._sink = sink or NullProgressSink()
        self._install_root = Path(install_root) if install_root is not None else get_application_directory()
        self._weights = weights or IMMUTABLE_CONFIG.provisioning.progress

    def plan(self, manifest: Manifest, identity: HardwareIdentity) -> InstallPlan:
        return build_plan(manifest, identity, self._install_root, weights=self._weights)

    def run(self, manifest: Manifest, identity: HardwareIdentity) -> PipelineResult:
        return self.execute(self.plan(manifest, identity))

    def execute(self, plan: InstallPlan) -> PipelineResult:
        log_plan(plan)
        if not plan.supported:
            result = PipelineResult(PipelineStatus.UNSUPPORTED_HARDWARE, plan)
            logger.error("Cannot install drivers: %s", result.summary())
            self._sink.report(0, "Installation aborted: Unsupported hardware")
            return result

        result = PipelineResult(PipelineStatus.COMPLETED, plan)
        self._advance(result, self._weights.start, "Inspecting system...")
        for planned in plan.stages:
            if not planned.drivers:
                continue
            logger.info("=== Installing %s drivers ===", planned.stage.value.capitalize())
            for resolved in planned.drivers:
                self._sink.report(0, f"Installing {planned.stage.value} driver [{resolved.name}]: {resolved.file_name}")
                outcome = self._install_one(resolved)
                result.results.append(DriverResult(planned.stage, resolved, outcome))
                self._advance(result, self._weights.per_driver, f"{resolved.name}: {outcome.message}")

        summary = result.summary()
        if result.failed:
            logger.warning(summary)
        else:
            logger.info(summary)
        self._sink.report(0, summary)
        return result

    def _install_one(self, resolved: ResolvedDriver) -> InstallOutcome:
        try:
            return self._dispatcher.install(resolved)
        except Exception as exc:
            logger.exception("Unexpected error installing %s: %s", resolved.name, exc)
            return InstallOutcome.mechanism_error(MechanismErrorKind.INVOCATION_ERROR, str(exc) or type(exc).__name__)

    def _advance(self, result: PipelineResult, increment: int, status: str) -> None:
        result.progress += increment
        self._sink.report(increment, status)
