"""
DeviceState — the mutable runtime state of one car.

Owned by the coordinator and shared with the command queue and the poll
scheduler. Every mutation goes through a named transition so the watchdog and
flag handling can be followed (and tested) without timers.
"""
from __future__ import annotations

import dataclasses
import enum

from .const import CHARGER_FIX_COOLDOWN, HEALTH_MAX, SESSION_ABSENT_PENALTY
from .vehicle import CommandKind


class PollMode(enum.StrEnum):
    NORMAL = "normal"
    ACTIVE = "active"


@dataclasses.dataclass
class DeviceState:
    """Health counter, poll mode and consumer flags of a single car."""

    health: int = HEALTH_MAX
    poll_mode: PollMode = PollMode.NORMAL

    # Consumer flags
    running: bool = False
    busy: bool = False

    restarting: bool = False
    available: bool = False

    last_command: CommandKind | None = None
    # monotonic time of the last stop-charge; None until one was sent
    charger_fix_time: float | None = None

    # ------------------------------------------------------------------
    # Watchdog
    # ------------------------------------------------------------------

    @property
    def watchdog_expired(self) -> bool:
        return self.health <= 0

    def record_success(self) -> None:
        self.health = HEALTH_MAX
        self.available = True

    def record_failure(self) -> None:
        self.health -= 1
        self.busy = False

    def record_session_absent(self) -> None:
        self.health -= SESSION_ABSENT_PENALTY

    def record_skipped_poll(self) -> None:
        self.health -= 1

    # ------------------------------------------------------------------
    # Consumer
    # ------------------------------------------------------------------

    def start_consumer(self) -> bool:
        """Claim the single consumer slot. Returns False if already taken."""
        if self.running:
            return False
        self.running = True
        return True

    def mark_busy(self) -> None:
        self.busy = True

    def stop_consumer(self) -> None:
        self.running = False
        self.busy = False

    def record_command(self, kind: CommandKind, now: float) -> None:
        self.last_command = kind
        if kind == CommandKind.STOP_CHARGE:
            self.charger_fix_time = now

    def in_charger_cooldown(self, now: float) -> bool:
        """True right after a stop-charge, while the charger state settles."""
        if self.last_command == CommandKind.STOP_CHARGE:
            return True
        if self.charger_fix_time is None:
            return False
        return (now - self.charger_fix_time) < CHARGER_FIX_COOLDOWN

    # ------------------------------------------------------------------
    # Poll mode
    # ------------------------------------------------------------------

    def enter_active_mode(self) -> bool:
        if self.poll_mode == PollMode.ACTIVE:
            return False
        self.poll_mode = PollMode.ACTIVE
        return True

    def enter_normal_mode(self) -> bool:
        if self.poll_mode == PollMode.NORMAL:
            return False
        self.poll_mode = PollMode.NORMAL
        return True

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def begin_restart(self) -> bool:
        """Enter the restarting state. Returns False if a restart is already pending."""
        if self.restarting:
            return False
        self.restarting = True
        self.available = False
        return True

    def reset(self) -> None:
        """Back to start-up values; the charger-fix timestamp survives restarts."""
        self.health = HEALTH_MAX
        self.poll_mode = PollMode.NORMAL
        self.running = False
        self.busy = False
        self.restarting = False
        self.last_command = None
