"""asyncio driver: ticks a SessionController from a task until the session ends.

Used for headless runs (CLI ``run``) and by hosts that already own an event
loop. ``request_stop`` may be called from any thread; the stop is marshaled
to the loop thread by the controller and applied on the next tick.
Between runs nothing ticks, so sessions are started with :meth:`run` on the
loop rather than with ``controller.start`` from another thread.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

from .controller import SessionController
from .definition import SessionDefinition

logger = logging.getLogger(__name__)


def scaled_time_source(speed: float = 1.0, base: Callable[[], float] = time.monotonic) -> Callable[[], float]:
    """Monotonic clock running *speed* times faster than *base* (for demos)."""
    if speed <= 0:
        raise ValueError(f"speed must be positive, got {speed}")
    origin = base()

    def _now() -> float:
        return (base() - origin) * speed

    return _now


class AsyncSessionDriver:
    """Run sessions on the current asyncio loop.

    Args:
        controller: Controller to drive
        interval_s: Wall-clock seconds between ticks (defaults to the
            controller's tuning tick interval)
    """

    def __init__(self, controller: SessionController, interval_s: Optional[float] = None):
        self.controller = controller
        self.interval_s = controller.tuning.tick_interval_s if interval_s is None else interval_s
        if self.interval_s <= 0:
            raise ValueError(f"interval_s must be positive, got {self.interval_s}")
        self._task: Optional[asyncio.Task] = None
        self.ticks = 0

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self, definition: SessionDefinition) -> None:
        """Start *definition* and tick until the controller is idle again."""
        self.controller.bind_to_current_thread()
        self.controller.start(definition)
        logger.info(f"[session] Async driver ticking every {self.interval_s:g}s")
        try:
            while self.controller.is_running:
                await asyncio.sleep(self.interval_s)
                self.controller.tick()
                self.ticks += 1
        except asyncio.CancelledError:
            logger.info("[session] Async driver cancelled; stopping session")
            self.controller.stop()
            raise

    def start(self, definition: SessionDefinition) -> asyncio.Task:
        """Schedule :meth:`run` as a task on the running loop."""
        if self.is_running:
            raise RuntimeError("AsyncSessionDriver is already running a session")
        self._task = asyncio.get_running_loop().create_task(self.run(definition))
        return self._task

    def request_stop(self) -> None:
        """Ask the running session to stop early. Safe from any thread."""
        self.controller.stop()

    async def wait(self) -> None:
        if self._task is not None:
            await self._task
