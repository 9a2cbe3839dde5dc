"""Main window: hardware check, driver installation progress and log."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from PySide6.QtCore import Qt, QThreadPool
from PySide6.QtGui import QCloseEvent
from PySide6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QLabel,
    QPlainTextEdit,
    QProgressBar,
    QPushButton,
    QVBoxLayout,
    QWidget,
)

from imaging_tool.constants import IMMUTABLE_CONFIG
from imaging_tool.manifest import load_manifest
from services.commands import SubprocessRunner
from services.hardware import HardwareIdentity, detect_hardware
from services.installer import InstallDispatcher
from services.pipeline import InstallationPipeline, InstallPlan, PipelineResult, PipelineStatus
from ui.theme import PROGRESS_STYLE, apply_imaging_theme, status_style
from ui.workers import QtLogHandler, QtProgressSink, ServiceWorker

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WindowOptions:
    manifest_path: Path
    install_root: Path
    identity: HardwareIdentity | None = None
    timeout: float | None = None


class MainWindow(QWidget):
    def __init__(self, options: WindowOptions, thread_pool: QThreadPool | None = None) -> None:
        super().__init__()
        self._options = options
        self._thread_pool = thread_pool or QThreadPool.globalInstance()
        self._sink = QtProgressSink()
        self._sink.progressed.connect(self._handle_progress)
        runner = SubprocessRunner(timeout=options.timeout)
        self._pipeline = InstallationPipeline(
            InstallDispatcher(command_runner=runner),
            sink=self._sink,
            install_root=options.install_root,
        )
        self._plan: InstallPlan | None = None
        self._workers: set[ServiceWorker] = set()
        self._busy = False
        self._log_handler = QtLogHandler()
        self._log_handler.emitter.message.connect(self._append_log)
        logging.getLogger().addHandler(self._log_handler)
        self._build_ui()
        self._start_hardware_check()

    def _build_ui(self) -> None:
        self.setWindowTitle("Imaging Tool - Driver Installation")
        self.setMinimumSize(720, 480)
        layout = QVBoxLayout(self)

        self._status = QLabel("Initializing...")
        self._status.setWordWrap(True)
        self._status.setTextInteractionFlags(Qt.TextSelectableByMouse)
        layout.addWidget(self._status)

        self._progress = QProgressBar()
        self._progress.setRange(0, 1)
        self._progress.setStyleSheet(PROGRESS_STYLE)
        self._progress.setValue(0)
        layout.addWidget(self._progress)

        self._log_view = QPlainTextEdit()
        self._log_view.setReadOnly(True)
        self._log_view.setMaximumBlockCount(5000)
        layout.addWidget(self._log_view)

        button_row = QHBoxLayout()
        button_row.addWidget(QLabel(IMMUTABLE_CONFIG.version_label))
        button_row.addStretch()
        self._btn_start = QPushButton("Start")
        self._btn_exit = QPushButton("Exit")
        for btn in (self._btn_start, self._btn_exit):
            btn.setMinimumWidth(120)
            button_row.addWidget(btn)
        layout.addLayout(button_row)

        self._btn_start.setEnabled(False)
        self._btn_start.clicked.connect(self._start_install)
        self._btn_exit.clicked.connect(self.close)

    def _track_worker(self, worker: ServiceWorker) -> None:
        self._workers.add(worker)
        worker.signals.finished.connect(lambda *_: self._workers.discard(worker))
        worker.signals.error.connect(lambda *_: self._workers.discard(worker))

    def _start_hardware_check(self) -> None:
        self._set_busy(True)
        self._status.setText("Detecting hardware...")
        worker = ServiceWorker(self._prepare_plan)
        worker.signals.finished.connect(self._handle_plan)
        worker.signals.error.connect(self._handle_error)
        self._track_worker(worker)
        self._thread_pool.start(worker)

    def _prepare_plan(self) -> InstallPlan:
        manifest = load_manifest(self._options.manifest_path)
        identity = self._options.identity or detect_hardware()
        return self._pipeline.plan(manifest, identity)

    def _set_status(self, text: str, level: str = "info") -> None:
        self._status.setText(text)
        self._status.setStyleSheet(status_style(level))

    def _handle_plan(self, plan: InstallPlan) -> None:
        self._plan = plan
        self._set_busy(False)
        identity = plan.identity
        self._progress.setRange(0, max(plan.total_progress, 1))
        self._progress.setValue(0)
        if plan.supported:
            self._set_status(f"Ready to install drivers for {identity.model} ({identity.cpu})")
            logger.info("Hardware is supported. Ready for installation.")
        else:
            self._set_status(
                "Unsupported Hardware Detected\n"
                f"Model: {identity.model}\n"
                f"CPU: {identity.cpu}\n"
                "This terminal is not supported by the driver installation tool.",
                "error",
            )
            logger.error("Unsupported hardware: Model=%s, CPU=%s", identity.model, identity.cpu)
        self._btn_start.setEnabled(plan.supported)

    def _start_install(self) -> None:
        if self._busy or self._plan is None or not self._plan.supported:
            return
        self._set_busy(True)
        self._progress.setValue(0)
        self._status.setText("Inspecting system...")
        worker = ServiceWorker(self._pipeline.execute, self._plan)
        worker.signals.finished.connect(self._handle_result)
        worker.signals.error.connect(self._handle_error)
        self._track_worker(worker)
        self._thread_pool.start(worker)

    def _handle_progress(self, increment: int, status: str) -> None:
        if increment:
            self._progress.setValue(min(self._progress.value() + increment, self._progress.maximum()))
        self._status.setText(status)

    def _handle_result(self, result: PipelineResult) -> None:
        if result.status is PipelineStatus.COMPLETED:
            self._progress.setValue(self._progress.maximum())
        if result.failed:
            level = "warning"
        elif result.status is PipelineStatus.COMPLETED:
            level = "success"
        else:
            level = "error"
        self._set_status(result.summary(), level)
        self._set_busy(False)
        # A machine is provisioned once per image.
        self._btn_start.setEnabled(False)

    def _handle_error(self, message: str) -> None:
        self._set_busy(False)
        self._set_status(f"Error: {message}", "error")
        self._btn_start.setEnabled(False)

    def _append_log(self, line: str) -> None:
        self._log_view.appendPlainText(line)

    def _set_busy(self, busy: bool) -> None:
        self._busy = busy
        self._btn_start.setEnabled(not busy and self._plan is not None and self._plan.supported)
        self._btn_exit.setEnabled(not busy)

    def closeEvent(self, event: QCloseEvent) -> None:  # noqa: N802 - Qt override
        if self._busy:
            event.ignore()
            return
        logging.getLogger().removeHandler(self._log_handler)
        event.accept()


def run_gui(options: WindowOptions) -> int:
    app = QApplication.instance() or QApplication([])
    apply_imaging_theme()
    window = MainWindow(options)
    window.show()
    return app.exec()
