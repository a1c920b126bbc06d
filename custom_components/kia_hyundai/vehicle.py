"""
Vehicle command model and the session interface the integration talks to.

Pure data module with no HA or network dependencies.
"""
from __future__ import annotations

import dataclasses
import enum
from typing import Any, Protocol

from .const import DEFAULT_COMMAND_WAIT, QUOTA_EXCEEDED_CODE, RETRY_CODES


class CommandKind(enum.StrEnum):
    """Remote operations plus the synthetic status poll."""

    POLL = "poll"
    START_CLIMATE = "start_climate"
    STOP_CLIMATE = "stop_climate"
    LOCK = "lock"
    UNLOCK = "unlock"
    START_CHARGE = "start_charge"
    STOP_CHARGE = "stop_charge"
    SET_CHARGE_TARGETS = "set_charge_targets"
    SET_NAVIGATION = "set_navigation"


# Seconds the car needs to physically react before a follow-up command is safe
COMMAND_WAIT: dict[CommandKind, int] = {
    CommandKind.POLL: 5,
    CommandKind.START_CLIMATE: 65,
    CommandKind.STOP_CLIMATE: 5,
    CommandKind.LOCK: 5,
    CommandKind.UNLOCK: 5,
    CommandKind.SET_CHARGE_TARGETS: 25,
    CommandKind.START_CHARGE: 25,
    CommandKind.STOP_CHARGE: 5,
    CommandKind.SET_NAVIGATION: 65,
}


@dataclasses.dataclass(frozen=True)
class Command:
    """A unit of work for the command queue."""

    kind: CommandKind
    args: Any = None

    @property
    def wait_seconds(self) -> int:
        return COMMAND_WAIT.get(self.kind, DEFAULT_COMMAND_WAIT)

    @classmethod
    def poll(cls, force_once: bool = False, log_poll: bool = False) -> "Command":
        return cls(CommandKind.POLL, {"force_once": force_once, "log_poll": log_poll})


class VehicleApiError(Exception):
    """Error returned by the vehicle cloud, with its machine-readable code."""

    def __init__(self, message: str, code: str | None = None) -> None:
        self.code = code
        super().__init__(message)


def _has_code(error: BaseException, codes) -> bool:
    code = getattr(error, "code", None)
    if code is not None and str(code) in codes:
        return True
    # Older clients only carry the raw response body in the message
    text = str(error)
    return any(f'"resCode":"{c}"' in text for c in codes)


def is_duplicate_request(error: BaseException) -> bool:
    """Return True when the remote rejected a command as duplicate or rate-limited."""
    return _has_code(error, RETRY_CODES)


def is_quota_exceeded(error: BaseException) -> bool:
    """Return True when the daily request quota of the account is used up."""
    return _has_code(error, (QUOTA_EXCEEDED_CODE,))


class VehicleSession(Protocol):
    """
    Authenticated connection to one vehicle in the manufacturer cloud.

    Raw status payloads are returned unparsed; the normalizer reconciles the
    three schema shapes the cloud produces. Every method raises
    VehicleApiError on failure.
    """

    @property
    def is_logged_in(self) -> bool: ...

    @property
    def ccs2(self) -> bool: ...

    @property
    def supports_full_status(self) -> bool: ...

    @property
    def supports_navigation(self) -> bool: ...

    @property
    def vehicle_config(self) -> dict: ...

    async def login(self) -> None: ...

    async def status(self, refresh: bool = False, parsed: bool = False) -> dict: ...

    async def full_status(self, refresh: bool = False, parsed: bool = False) -> dict: ...

    async def location(self) -> dict: ...

    async def odometer(self) -> dict: ...

    async def start_climate(self, args: dict) -> None: ...

    async def stop_climate(self, args: dict) -> None: ...

    async def lock(self) -> None: ...

    async def unlock(self) -> None: ...

    async def start_charge(self) -> None: ...

    async def stop_charge(self) -> None: ...

    async def set_charge_targets(self, args: dict) -> None: ...

    async def set_navigation(self, args: list[dict]) -> None: ...
