"""
CommandQueue — serialises remote commands and status polls for one car.

This is a pure asyncio concurrency primitive with no HA or network dependencies.
"""
from __future__ import annotations

import asyncio
import collections
import logging
import time
from typing import Any, Awaitable, Callable

from .const import QUEUE_CAPACITY, RETRY_DELAY
from .device_state import DeviceState
from .vehicle import Command, CommandKind, is_duplicate_request, is_quota_exceeded

_LOGGER = logging.getLogger(__name__)


async def _wait(seconds: float) -> None:
    """Pause the consumer between commands."""
    await asyncio.sleep(seconds)


class CommandQueue:
    """
    Bounded FIFO of commands executed one-at-a-time by a single consumer task.

    After each command the consumer waits the command's fixed settle time
    before taking the next one. Commands rejected as duplicate requests are
    retried once after RETRY_DELAY. Outcomes feed the health counter in the
    shared DeviceState. When the queue drains after a user command, a
    confirmation poll is appended so the new car state is picked up.
    """

    def __init__(
        self,
        state: DeviceState,
        execute: Callable[[Command], Awaitable[Any]],
        session_ready: Callable[[], bool],
        relogin: Callable[[], Awaitable[Any]] | None = None,
        on_quota_exceeded: Callable[[], Any] | None = None,
        name: str = "car",
        capacity: int = QUEUE_CAPACITY,
    ) -> None:
        self._state = state
        self._execute = execute
        self._session_ready = session_ready
        self._relogin = relogin
        self._on_quota_exceeded = on_quota_exceeded
        self._name = name
        self._capacity = capacity
        self._items: collections.deque[Command] = collections.deque()
        self._task: asyncio.Task | None = None
        # Every live consumer, including ones left behind by a flush
        self._consumers: set[asyncio.Task] = set()
        # Bumped on every flush; a consumer from an older generation exits quietly
        self._generation = 0

        self.disabled = False
        self.login_on_retry = False

    # ------------------------------------------------------------------
    # FIFO
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._items)

    @property
    def is_full(self) -> bool:
        return len(self._items) >= self._capacity

    def push(self, command: Command) -> bool:
        if self.is_full:
            return False
        self._items.append(command)
        return True

    def pop(self) -> Command | None:
        if not self._items:
            return None
        return self._items.popleft()

    def flush(self) -> None:
        """Drop all pending commands and release the consumer slot."""
        self._items.clear()
        self._generation += 1
        self._state.stop_consumer()
        _LOGGER.info("%s: queue is flushed", self._name)

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    def enqueue(self, command: Command) -> bool:
        """
        Append command to the tail and make sure a consumer is running.

        Never raises: a disabled or full queue logs and drops the command.
        """
        if self.disabled:
            _LOGGER.info("%s: ignoring %s; the queue is disabled", self._name, command.kind)
            return False
        if not self.push(command):
            _LOGGER.error("%s: queue overflow, dropping %s", self._name, command.kind)
            return False
        if self._state.start_consumer():
            self._task = asyncio.ensure_future(self._consume(self._generation))
            self._consumers.add(self._task)
            self._task.add_done_callback(self._consumers.discard)
        return True

    def dequeue(self) -> Command | None:
        return self.pop()

    async def join(self) -> None:
        """Wait until the consumer (and any consumer it handed over to) is done."""
        while (task := self._task) is not None and not task.done():
            await task

    async def shutdown(self) -> None:
        """Cancel every consumer task and drop pending commands."""
        self.disabled = True
        self._task = None
        tasks = list(self._consumers)
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                _LOGGER.debug("%s: consumer error during shutdown: %s", self._name, result)
        self._consumers.clear()
        self.flush()

    # ------------------------------------------------------------------
    # Consumer
    # ------------------------------------------------------------------

    async def _consume(self, generation: int) -> None:
        try:
            while generation == self._generation:
                self._state.mark_busy()
                command = self.dequeue()
                if command is None:
                    self._state.stop_consumer()
                    if self._needs_confirmation_poll():
                        self.enqueue(Command.poll(force_once=True))
                    return
                await self._process(command, generation)
        except asyncio.CancelledError:
            if generation == self._generation:
                self._state.stop_consumer()
            raise
        except Exception as exc:  # noqa: BLE001
            if generation == self._generation:
                self._state.stop_consumer()
            _LOGGER.error("%s: command queue stopped: %s", self._name, exc)

    async def _process(self, command: Command, generation: int) -> None:
        if not self._session_ready():
            self._state.record_session_absent()
            _LOGGER.warning("%s: ignoring queued %s; not logged in", self._name, command.kind)
            return

        # Only executed commands count as last command
        self._state.record_command(command.kind, time.monotonic())
        try:
            await self._execute(command)
        except Exception as exc:  # noqa: BLE001
            if not await self._retry(command, exc, generation):
                _LOGGER.error("%s: %s failed: %s", self._name, command.kind, exc)
                if generation == self._generation:
                    self._state.record_failure()
                if is_quota_exceeded(exc) and self._on_quota_exceeded is not None:
                    self._on_quota_exceeded()
        else:
            if generation == self._generation:
                self._state.record_success()

        await _wait(command.wait_seconds)

    async def _retry(self, command: Command, error: Exception, generation: int) -> bool:
        """Retry once after RETRY_DELAY when the remote flagged a duplicate request."""
        if not is_duplicate_request(error):
            return False
        _LOGGER.info("%s: %s failed. Retrying in %s seconds", self._name, command.kind, RETRY_DELAY)
        await _wait(RETRY_DELAY)
        if generation != self._generation:
            return False
        try:
            if self.login_on_retry and self._relogin is not None:
                await self._relogin()
            await self._execute(command)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.debug("%s: retry of %s failed: %s", self._name, command.kind, exc)
            return False
        if generation == self._generation:
            self._state.record_success()
        return True

    def _needs_confirmation_poll(self) -> bool:
        last = self._state.last_command
        if last is None or last == CommandKind.POLL:
            return False
        return not self._state.in_charger_cooldown(time.monotonic())
