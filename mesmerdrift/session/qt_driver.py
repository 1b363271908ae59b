"""Qt driver: ticks a SessionController from a QTimer on the GUI thread.

The controller itself is toolkit-free. This driver owns the 1 Hz timer the
host application would otherwise wire by hand and re-publishes the
controller's lifecycle events as Qt signals so widgets can connect to them
directly.
"""

from __future__ import annotations

import logging
from typing import Optional

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

from .controller import SessionController
from .definition import SessionDefinition
from .events import SessionEvent, SessionEventType

logger = logging.getLogger(__name__)


class QtSessionDriver(QObject):
    """Drive *controller* from the Qt event loop.

    Args:
        controller: Controller to tick; it is re-bound to the thread that
            creates the driver (the GUI thread)
        keep_alive: Keep ticking while idle. Without it the timer stops when
            the controller goes idle and restarts when another thread queues
            a command
        parent: Optional QObject parent
    """

    session_started = pyqtSignal(str)             # session id
    phase_changed = pyqtSignal(int, str)          # index, phase name
    progress = pyqtSignal(float, float, float)    # elapsed s, remaining s, percent
    session_completed = pyqtSignal(str, int)      # session id, bonus xp
    session_stopped = pyqtSignal(str, float)      # session id, elapsed s
    feature_skipped = pyqtSignal(str, str)        # effect, reason
    _wake = pyqtSignal()

    def __init__(self, controller: SessionController, keep_alive: bool = False, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.controller = controller
        self.controller.bind_to_current_thread()
        self.keep_alive = keep_alive

        self.timer = QTimer(self)
        self.timer.setInterval(int(round(controller.tuning.tick_interval_s * 1000)))
        self.timer.timeout.connect(self._on_timeout)
        self._wake.connect(self._on_wake)
        controller.on_command_queued = self._wake.emit

        emitter = controller.event_emitter
        emitter.subscribe(SessionEventType.SESSION_START, self._on_session_start)
        emitter.subscribe(SessionEventType.PHASE_CHANGED, self._on_phase_changed)
        emitter.subscribe(SessionEventType.PROGRESS, self._on_progress)
        emitter.subscribe(SessionEventType.SESSION_COMPLETED, self._on_completed)
        emitter.subscribe(SessionEventType.SESSION_STOP, self._on_stopped)
        emitter.subscribe(SessionEventType.FEATURE_SKIPPED, self._on_feature_skipped)

        if keep_alive:
            self.timer.start()

    @property
    def is_ticking(self) -> bool:
        return self.timer.isActive()

    def start_session(self, definition: SessionDefinition) -> None:
        """Start *definition* and begin ticking (errors propagate to the caller)."""
        self.controller.start(definition)
        if not self.timer.isActive():
            self.timer.start()
        logger.info(f"[session] Qt driver ticking every {self.timer.interval()}ms")

    def stop_session(self) -> None:
        self.controller.stop()

    def shutdown(self) -> None:
        """Stop the timer and any running session (call from closeEvent)."""
        self.timer.stop()
        self.controller.on_command_queued = None
        self.controller.shutdown()

    def _on_timeout(self) -> None:
        try:
            self.controller.tick()
        except Exception as e:
            logger.error(f"[session] Tick failed: {e}", exc_info=True)
        if not self.keep_alive and not self.controller.is_running and not self.controller.pending_commands():
            self.timer.stop()
            logger.debug("[session] Qt driver idle; timer stopped")

    def _on_wake(self) -> None:
        if not self.timer.isActive():
            self.timer.start()
            logger.debug("[session] Qt driver woken by a queued command")

    # ===== Event → signal bridging =====

    def _on_session_start(self, event: SessionEvent) -> None:
        self.session_started.emit(event.data["session_id"])

    def _on_phase_changed(self, event: SessionEvent) -> None:
        self.phase_changed.emit(event.data["index"], event.data["phase"].name)

    def _on_progress(self, event: SessionEvent) -> None:
        data = event.data
        self.progress.emit(float(data["elapsed"]), float(data["remaining"]), float(data["percent"]))

    def _on_completed(self, event: SessionEvent) -> None:
        self.session_completed.emit(event.data["definition"].id, int(event.data["bonus_xp"]))

    def _on_stopped(self, event: SessionEvent) -> None:
        self.session_stopped.emit(event.data["session_id"], float(event.data["elapsed"]))

    def _on_feature_skipped(self, event: SessionEvent) -> None:
        self.feature_skipped.emit(event.data["effect"].value, event.data["reason"])
