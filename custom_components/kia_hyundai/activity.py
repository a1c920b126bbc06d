"""
Activity classification from two consecutive VehicleStatus snapshots.

Pure functions, no state. The coordinator threads the previous snapshot and
the stored park location through.
"""
from __future__ import annotations

import dataclasses

from .const import EV_PLUGGED_IN_CHARGING, EV_PLUGGED_OUT, MOVING_THRESHOLD, PARKING_THRESHOLD
from .geo import displaced
from .normalizer import VehicleStatus


@dataclasses.dataclass(frozen=True)
class ActivityResult:
    moving: bool = False
    parking: bool = False
    active: bool = False


def is_moving(current: VehicleStatus, previous: VehicleStatus | None) -> bool:
    """
    True when the car reports speed or has moved since the previous poll.

    An uninitialised previous position (missing or 0) never counts as movement.
    """
    if previous is None or not previous.latitude or current.measure_speed is None:
        return False
    if current.measure_speed > 0:
        return True
    if current.latitude is None or current.longitude is None or previous.longitude is None:
        return False
    return displaced(
        current.latitude, current.longitude, previous.latitude, previous.longitude, MOVING_THRESHOLD
    )


def is_parking(current: VehicleStatus, park_location: VehicleStatus | None) -> bool:
    """True when the engine is off away from the stored park location."""
    if current.engine or not current.has_position:
        return False
    park_lat = park_location.latitude if park_location and park_location.latitude is not None else 0.0
    park_lon = park_location.longitude if park_location and park_location.longitude is not None else 0.0
    return displaced(current.latitude, current.longitude, park_lat, park_lon, PARKING_THRESHOLD)


def is_car_active(current: VehicleStatus, previous: VehicleStatus | None, is_ev: bool = False) -> bool:
    """
    True while someone is plausibly using the car.

    Engine, climate or defrost on, an EV just unplugged after charging, or a
    car that was closed and locked and no longer is.
    """
    if current.engine or current.climate_control or current.defrost:
        return True
    if previous is None:
        return False
    if (
        is_ev
        and previous.ev_charging_state == EV_PLUGGED_IN_CHARGING
        and current.ev_charging_state == EV_PLUGGED_OUT
    ):
        return True
    return bool(previous.closed_locked) and current.closed_locked is False


def classify(
    current: VehicleStatus,
    previous: VehicleStatus | None,
    park_location: VehicleStatus | None,
    is_ev: bool = False,
) -> ActivityResult:
    return ActivityResult(
        moving=is_moving(current, previous),
        parking=is_parking(current, park_location),
        active=is_car_active(current, previous, is_ev),
    )
