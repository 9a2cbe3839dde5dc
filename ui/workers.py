"""Qt thread-pool workers and signal bridges for the services layer."""
from __future__ import annotations

import logging
from typing import Any, Callable

from PySide6.QtCore import QObject, QRunnable, Signal, Slot

logger = logging.getLogger(__name__)


class WorkerSignals(QObject):
    finished = Signal(object)
    error = Signal(str)


class ServiceWorker(QRunnable):
    """Runs a blocking service call on the thread pool and reports back via signals."""

    def __init__(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        super().__init__()
        self._fn = fn
        self._args = args
        self._kwargs = kwargs
        self.signals = WorkerSignals()

    @Slot()
    def run(self) -> None:
        try:
            result = self._fn(*self._args, **self._kwargs)
        except Exception as exc:
            logger.exception("Background task failed: %s", exc)
            self.signals.error.emit(str(exc) or type(exc).__name__)
            return
        self.signals.finished.emit(result)


class QtProgressSink(QObject):
    """Progress sink that forwards pipeline updates to the GUI thread."""

    progressed = Signal(int, str)

    def report(self, increment: int, status: str) -> None:
        self.progressed.emit(increment, status)


class _LogEmitter(QObject):
    message = Signal(str)


class QtLogHandler(logging.Handler):
    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level)
        self.emitter = _LogEmitter()
        self.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s", datefmt="%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.emitter.message.emit(self.format(record))
        except RuntimeError:
            self.handleError(record)
