"""
PollScheduler — periodic producer of status polls for one car.

Pure asyncio, no HA dependencies. The interval is given in minutes; the
coordinator restarts the scheduler whenever the poll mode changes.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from .device_state import DeviceState
from .vehicle import Command

_LOGGER = logging.getLogger(__name__)

TICK_POLLED = "polled"
TICK_SKIPPED = "skipped"
TICK_WATCHDOG = "watchdog"


class PollScheduler:
    """Arms a repeating timer that feeds poll commands into the command queue."""

    def __init__(
        self,
        state: DeviceState,
        enqueue: Callable[[Command], bool],
        on_watchdog: Callable[[], Any],
        name: str = "car",
    ) -> None:
        self._state = state
        self._enqueue = enqueue
        self._on_watchdog = on_watchdog
        self._name = name
        self._task: asyncio.Task | None = None
        self.interval: float | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self, interval_minutes: float, forced_minutes: float | None = None) -> None:
        """Cancel any previous timer and poll every interval_minutes from now on."""
        self.stop(log=False)
        self.interval = interval_minutes
        _LOGGER.info(
            "Start polling %s in %s mode @ %s minute interval",
            self._name, self._state.poll_mode, interval_minutes,
        )
        if forced_minutes:
            _LOGGER.warning("%s: forced polling is enabled @%s minute interval", self._name, forced_minutes)
        self._task = asyncio.ensure_future(self._run(interval_minutes * 60))

    def stop(self, log: bool = True) -> None:
        """Cancel the timer. Safe to call when not running."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            if log:
                _LOGGER.info("Stop polling %s", self._name)
            task.cancel()

    async def _run(self, period: float) -> None:
        while True:
            await asyncio.sleep(period)
            if self._tick() == TICK_WATCHDOG:
                return

    def _tick(self) -> str:
        if self._state.watchdog_expired:
            _LOGGER.warning("%s: watchdog triggered, restarting device now", self._name)
            # The restart replaces this scheduler run; detach before handing over
            self._task = None
            self._on_watchdog()
            return TICK_WATCHDOG
        if self._state.busy:
            self._state.record_skipped_poll()
            _LOGGER.warning("%s: skipping a poll, still busy (health %s)", self._name, self._state.health)
            return TICK_SKIPPED
        self._enqueue(Command.poll(force_once=False))
        return TICK_POLLED
