"""
Tests for PollScheduler.

_tick is exercised directly; the timer itself runs with a tiny interval.
"""

import asyncio
import unittest
from unittest.mock import MagicMock

from custom_components.kia_hyundai.const import HEALTH_MAX
from custom_components.kia_hyundai.device_state import DeviceState
from custom_components.kia_hyundai.poll_scheduler import (
    TICK_POLLED,
    TICK_SKIPPED,
    TICK_WATCHDOG,
    PollScheduler,
)
from custom_components.kia_hyundai.vehicle import Command

# ~60 ms between ticks
FAST_INTERVAL = 0.001


def _make_scheduler(state=None):
    state = state or DeviceState()
    enqueue = MagicMock(return_value=True)
    on_watchdog = MagicMock()
    return PollScheduler(state, enqueue, on_watchdog), state, enqueue, on_watchdog


class TestTick(unittest.TestCase):

    def test_idle_car_is_polled(self):
        scheduler, _, enqueue, on_watchdog = _make_scheduler()

        self.assertEqual(scheduler._tick(), TICK_POLLED)

        enqueue.assert_called_once_with(Command.poll(force_once=False))
        on_watchdog.assert_not_called()

    def test_busy_consumer_skips_and_costs_health(self):
        scheduler, state, enqueue, _ = _make_scheduler(DeviceState(busy=True))

        self.assertEqual(scheduler._tick(), TICK_SKIPPED)

        enqueue.assert_not_called()
        self.assertEqual(state.health, HEALTH_MAX - 1)

    def test_expired_watchdog_requests_restart(self):
        scheduler, _, enqueue, on_watchdog = _make_scheduler(DeviceState(health=0))

        self.assertEqual(scheduler._tick(), TICK_WATCHDOG)

        on_watchdog.assert_called_once()
        enqueue.assert_not_called()

    def test_watchdog_wins_over_busy(self):
        scheduler, _, _, on_watchdog = _make_scheduler(DeviceState(health=-1, busy=True))
        self.assertEqual(scheduler._tick(), TICK_WATCHDOG)
        on_watchdog.assert_called_once()


class TestTimer(unittest.IsolatedAsyncioTestCase):

    async def test_start_polls_periodically(self):
        scheduler, _, enqueue, _ = _make_scheduler()

        scheduler.start(FAST_INTERVAL)
        await asyncio.sleep(0.2)
        scheduler.stop()

        self.assertGreaterEqual(enqueue.call_count, 2)
        self.assertFalse(scheduler.running)

    async def test_stop_is_idempotent(self):
        scheduler, _, _, _ = _make_scheduler()
        scheduler.stop()
        scheduler.start(10)
        self.assertTrue(scheduler.running)
        scheduler.stop()
        scheduler.stop()
        self.assertFalse(scheduler.running)

    async def test_restart_replaces_previous_timer(self):
        scheduler, _, _, _ = _make_scheduler()
        scheduler.start(10)
        first = scheduler._task

        scheduler.start(2)
        await asyncio.sleep(0)

        self.assertTrue(first.cancelled())
        self.assertEqual(scheduler.interval, 2)
        scheduler.stop()

    async def test_watchdog_stops_the_timer(self):
        scheduler, state, enqueue, on_watchdog = _make_scheduler(DeviceState(health=0))

        scheduler.start(FAST_INTERVAL)
        await asyncio.sleep(0.2)

        on_watchdog.assert_called_once()
        enqueue.assert_not_called()
        self.assertFalse(scheduler.running)

    async def test_forced_interval_is_logged(self):
        scheduler, _, _, _ = _make_scheduler()
        with self.assertLogs("custom_components.kia_hyundai.poll_scheduler", level="WARNING") as logs:
            scheduler.start(10, forced_minutes=120)
        scheduler.stop()
        self.assertIn("forced polling", logs.output[0])
