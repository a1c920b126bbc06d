"""
Status normalization — three upstream status schemas into one VehicleStatus.

The vehicle cloud answers in one of three shapes depending on car generation
and endpoint:

    legacy-full    {"vehicleStatus": {...legacy-simple...}, "vehicleLocation": ..., "odometer": ...}
    legacy-simple  {"time": ..., "doorLock": ..., "evStatus": ..., ...}
    current        {"Date": ..., "Cabin": ..., "Body": ..., "Green": ..., ...}

detect_schema() tags the raw payload, and one pure function per variant maps
it onto the same canonical field set. Only normalize_status() touches the
outside world, through the optional geocoder.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Protocol

from .const import (
    DEFAULT_BATTERY_ALARM_LEVEL,
    DEFAULT_EV_BATTERY_ALARM_LEVEL,
    EV_PLUGGED_IN,
    EV_PLUGGED_IN_CHARGING,
    EV_PLUGGED_OUT,
    MAX_VALID_SPEED,
    UNIT_KM,
)
from .geo import distance
from .temperature import temperature_from_code

_LOGGER = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Canonical record
# ---------------------------------------------------------------------------

DERIVED_FIELDS = ("closed_locked", "alarm_bat", "alarm_tire_pressure", "charge", "ev_charging_state")


@dataclasses.dataclass(frozen=True)
class VehicleStatus:
    """
    Canonical, schema-independent snapshot of one poll.

    Field names match the capability names exposed by the entities. None means
    the value was not reported. Always replace via dataclasses.replace(), never
    mutate in place.
    """

    date: str | None = None
    measure_odo: float | None = None
    latitude: float | None = None
    longitude: float | None = None
    measure_speed: float | None = None
    meter_distance: float | None = None
    location: str | None = None
    address: str | None = None
    climate_control: bool | None = None
    target_temperature: float | None = None
    locked: bool | None = None
    defrost: bool | None = None
    engine: bool | None = None
    closed_locked: bool | None = None
    alarm_tire_pressure: bool | None = None
    measure_battery_12v: float | None = None
    measure_range: float | None = None
    measure_battery: float | None = None
    measure_power_charge: float | None = None
    meter_power_fuel_economy: float | None = None
    charge: bool | None = None
    charge_target_slow: str | None = None
    charge_target_fast: str | None = None
    ev_charging_state: str | None = None
    alarm_bat: bool | None = None

    def as_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "VehicleStatus":
        """Rebuild a stored snapshot, ignoring keys from other versions."""
        if not data:
            return cls()
        known = {f.name for f in dataclasses.fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def capabilities(self) -> dict[str, Any]:
        """Reported values only, keyed by capability name."""
        return {k: v for k, v in self.as_dict().items() if v is not None}

    def merged_over(self, base: "VehicleStatus | None") -> "VehicleStatus":
        """
        This snapshot laid over base.

        Values this snapshot did not report keep the value in base. Values the
        normalizer derives from several fields always come from this snapshot.
        """
        if base is None:
            return self
        changes = self.capabilities()
        changes.update({name: getattr(self, name) for name in DERIVED_FIELDS})
        return dataclasses.replace(base, **changes)

    @property
    def is_empty(self) -> bool:
        return not self.capabilities()

    @property
    def has_position(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclasses.dataclass(frozen=True)
class NormalizerSettings:
    """User settings that feed derived fields."""

    home_lat: float | None = None
    home_lon: float | None = None
    distance_unit: str = UNIT_KM
    battery_alarm_level: float = DEFAULT_BATTERY_ALARM_LEVEL
    ev_battery_alarm_level: float = DEFAULT_EV_BATTERY_ALARM_LEVEL


class Geocoder(Protocol):
    async def resolve(self, latitude: float, longitude: float) -> Any: ...


# ---------------------------------------------------------------------------
# Schema variants
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class LegacyFullPayload:
    raw: dict


@dataclasses.dataclass(frozen=True)
class LegacySimplePayload:
    raw: dict


@dataclasses.dataclass(frozen=True)
class CurrentPayload:
    raw: dict


RawPayload = LegacyFullPayload | LegacySimplePayload | CurrentPayload


def detect_schema(raw: dict | None) -> RawPayload | None:
    """Tag a raw payload by its discriminating field, or None if unrecognised."""
    if not raw or not isinstance(raw, dict):
        return None
    if raw.get("vehicleStatus"):
        return LegacyFullPayload(raw)
    if raw.get("time"):
        return LegacySimplePayload(raw)
    if raw.get("Date"):
        return CurrentPayload(raw)
    return None


# ---------------------------------------------------------------------------
# Shared derivations
# ---------------------------------------------------------------------------

def _get(data: Any, *path, default=None):
    """Nested lookup that tolerates missing keys, None and short lists."""
    for key in path:
        if isinstance(data, dict):
            data = data.get(key)
        elif isinstance(data, list) and isinstance(key, int) and -len(data) <= key < len(data):
            data = data[key]
        else:
            return default
        if data is None:
            return default
    return data


def charging_phase(plugin: int | None, charging: bool | None) -> str:
    """
    Decode the EV charging phase.

    plugin is 0 = none, 1 = fast, 2 = normal connector. A connector that is
    engaged but idle is recoded by +2 (3 = fast idle, 4 = normal idle).
    """
    code = plugin or 0
    if code and not charging:
        code += 2
    if code in (1, 2):
        return EV_PLUGGED_IN_CHARGING
    if code in (3, 4):
        return EV_PLUGGED_IN
    return EV_PLUGGED_OUT


def battery_alarm(level_12v, ev_level, settings: NormalizerSettings) -> bool:
    low_12v = level_12v is not None and level_12v < settings.battery_alarm_level
    low_ev = ev_level is not None and ev_level < settings.ev_battery_alarm_level
    return low_12v or low_ev


def _speed(value):
    if value is None:
        return None
    return 0 if value > MAX_VALID_SPEED else value


def _distance_from_home(latitude, longitude, settings: NormalizerSettings) -> float | None:
    if None in (latitude, longitude, settings.home_lat, settings.home_lon):
        return None
    km = distance(latitude, longitude, settings.home_lat, settings.home_lon, settings.distance_unit)
    return round(km, 1)


def _position(latitude, longitude, speed, settings: NormalizerSettings) -> dict[str, Any]:
    return {
        "latitude": latitude,
        "longitude": longitude,
        "measure_speed": _speed(speed),
        "meter_distance": _distance_from_home(latitude, longitude, settings),
    }


def _as_str(value) -> str | None:
    return None if value is None else str(value)


def _as_number(value):
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return value
    return value


# ---------------------------------------------------------------------------
# Per-schema normalizers
# ---------------------------------------------------------------------------

def _legacy_closed_locked(sts: dict) -> bool:
    # Sub-fields the car does not report count as closed
    doors_closed = all(not v for v in (sts.get("doorOpen") or {}).values())
    windows_closed = all(not v for v in (sts.get("windowOpen") or {}).values())
    return (
        bool(sts.get("doorLock"))
        and not sts.get("trunkOpen")
        and not sts.get("hoodOpen")
        and not sts.get("sunroofOpen")
        and doors_closed
        and windows_closed
    )


def _legacy_range(sts: dict):
    value = (
        _get(sts, "evStatus", "drvDistance", 0, "rangeByFuel", "totalAvailableRange", "value")
        or _get(sts, "dte", "value")
    )
    if value is None or value < 0:
        return None
    return value


def _legacy_charge_targets(sts: dict) -> dict[str, str | None]:
    targets = _get(sts, "evStatus", "reservChargeInfos", "targetSOClist")
    if not targets:
        return {}
    slow = next((t for t in targets if t.get("plugType") == 1), None)
    fast = next((t for t in targets if t.get("plugType") == 0), None)
    return {
        "charge_target_slow": _as_str(slow.get("targetSOClevel")) if slow else None,
        "charge_target_fast": _as_str(fast.get("targetSOClevel")) if fast else None,
    }


def normalize_legacy_simple(
    sts: dict, settings: NormalizerSettings, previous: VehicleStatus | None = None
) -> dict[str, Any]:
    """Map a legacy status body (keyed by "time") onto canonical fields."""
    charge = _get(sts, "evStatus", "batteryCharge")
    plugin = _get(sts, "evStatus", "batteryPlugin")
    climate_on = sts.get("airCtrlOn")
    if climate_on:
        target_temperature = temperature_from_code(_get(sts, "airTemp", "value"))
    else:
        target_temperature = previous.target_temperature if previous else None
    level_12v = _get(sts, "battery", "batSoc")
    ev_level = _get(sts, "evStatus", "batteryStatus")

    return {
        "climate_control": climate_on,
        "target_temperature": target_temperature,
        "locked": sts.get("doorLock"),
        "defrost": sts.get("defrost"),
        "engine": sts.get("engine"),
        "closed_locked": _legacy_closed_locked(sts),
        "alarm_tire_pressure": bool(_get(sts, "tirePressureLamp", "tirePressureLampAll")),
        "measure_battery_12v": level_12v,
        "measure_range": _legacy_range(sts),
        "measure_battery": ev_level,
        "measure_power_charge": None,
        "meter_power_fuel_economy": None,
        "charge": charge,
        **_legacy_charge_targets(sts),
        "ev_charging_state": charging_phase(plugin, charge),
        "alarm_bat": battery_alarm(level_12v, ev_level, settings),
        "date": sts.get("time"),
    }


def normalize_legacy_full(
    raw: dict, settings: NormalizerSettings, previous: VehicleStatus | None = None
) -> dict[str, Any]:
    """Position and odometer from the envelope, everything else from vehicleStatus."""
    fields = {
        "measure_odo": _get(raw, "odometer", "value"),
        **_position(
            _get(raw, "vehicleLocation", "coord", "lat"),
            _get(raw, "vehicleLocation", "coord", "lon"),
            _get(raw, "vehicleLocation", "speed", "value"),
            settings,
        ),
    }
    body = raw.get("vehicleStatus") or {}
    if body.get("time"):
        fields.update(normalize_legacy_simple(body, settings, previous))
    return fields


def normalize_current(
    sts: dict, settings: NormalizerSettings, previous: VehicleStatus | None = None
) -> dict[str, Any]:
    """Map a current-generation status (keyed by "Date") onto canonical fields."""
    charge = bool(_get(sts, "Green", "ChargingInformation", "Charging", "RemainTime"))
    plugin = _get(sts, "Green", "ChargingInformation", "ConnectorFastening", "State")

    raw_temp = _as_number(_get(sts, "Cabin", "HVAC", "Row1", "Driver", "Temperature", "Value"))
    climate_on = raw_temp is not None and raw_temp != "OFF"
    target_temperature = temperature_from_code(raw_temp) if climate_on else None
    if target_temperature is None:
        target_temperature = previous.target_temperature if previous else None

    # Every reported door and window must be closed; trunk, hood and sunroof must be reported closed
    doors = [
        d for d in (
            _get(sts, "Cabin", "Door", "Row1", "Driver"),
            _get(sts, "Cabin", "Door", "Row1", "Passenger"),
            _get(sts, "Cabin", "Door", "Row2", "Left"),
            _get(sts, "Cabin", "Door", "Row2", "Right"),
        ) if d
    ]
    windows = [
        w for w in (
            _get(sts, "Cabin", "Window", "Row1", "Driver"),
            _get(sts, "Cabin", "Window", "Row1", "Passenger"),
            _get(sts, "Cabin", "Window", "Row2", "Left"),
            _get(sts, "Cabin", "Window", "Row2", "Right"),
        ) if w
    ]
    all_doors_closed = all(d.get("Open") == 0 for d in doors)
    all_doors_locked = all(d.get("Lock") == 0 for d in doors)
    all_windows_closed = all(w.get("Open") == 0 for w in windows)
    trunk_closed = _get(sts, "Body", "Trunk", "Open") == 0
    hood_closed = _get(sts, "Body", "Hood", "Open") == 0
    sunroof_closed = _get(sts, "Body", "Sunroof", "Glass", "Open") == 0

    power = _get(sts, "Green", "Electric", "SmartGrid", "RealTimePower")
    level_12v = _get(sts, "Electronics", "Battery", "Level")
    ev_level = _get(sts, "Green", "BatteryManagement", "BatteryRemain", "Ratio")

    return {
        "measure_odo": _get(sts, "Drivetrain", "Odometer"),
        **_position(
            _get(sts, "Location", "GeoCoord", "Latitude"),
            _get(sts, "Location", "GeoCoord", "Longitude"),
            _get(sts, "Location", "Speed", "Value"),
            settings,
        ),
        "measure_power_charge": power * 1000 if power is not None else None,
        "meter_power_fuel_economy": _get(sts, "Drivetrain", "FuelSystem", "AverageFuelEconomy", "Drive"),
        "climate_control": climate_on,
        "target_temperature": target_temperature,
        "defrost": bool(_get(sts, "Body", "Windshield", "Front", "Defog", "State"))
        or bool(_get(sts, "Body", "Windshield", "Rear", "Defog", "State")),
        "locked": all_doors_locked,
        "closed_locked": (
            all_doors_closed and all_doors_locked and all_windows_closed
            and trunk_closed and hood_closed and sunroof_closed
        ),
        "engine": bool(sts.get("DrivingReady")),
        "alarm_tire_pressure": bool(_get(sts, "Chassis", "Axle", "Tire", "PressureLow")),
        "measure_battery_12v": level_12v,
        "measure_range": _get(sts, "Drivetrain", "FuelSystem", "DTE", "Total"),
        "measure_battery": ev_level,
        "charge": charge,
        "charge_target_slow": _as_str(_get(sts, "Green", "ChargingInformation", "TargetSoC", "Standard")),
        "charge_target_fast": _as_str(_get(sts, "Green", "ChargingInformation", "TargetSoC", "Quick")),
        "ev_charging_state": charging_phase(plugin, charge),
        "alarm_bat": battery_alarm(level_12v, ev_level, settings),
        "date": sts.get("Date"),
    }


def normalize_payload(
    payload: RawPayload, settings: NormalizerSettings, previous: VehicleStatus | None = None
) -> dict[str, Any]:
    if isinstance(payload, LegacyFullPayload):
        return normalize_legacy_full(payload.raw, settings, previous)
    if isinstance(payload, LegacySimplePayload):
        return normalize_legacy_simple(payload.raw, settings, previous)
    return normalize_current(payload.raw, settings, previous)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

async def _resolve_location(geocoder: Geocoder, latitude: float, longitude: float) -> dict[str, Any]:
    try:
        place = await geocoder.resolve(latitude, longitude)
    except Exception as exc:  # noqa: BLE001
        _LOGGER.warning("Reverse geocoding failed for (%.5f, %.5f): %s", latitude, longitude, exc)
        return {}
    if place is None:
        return {}
    return {"location": place.display_location, "address": place.address}


async def normalize_status(
    raw: dict | None,
    settings: NormalizerSettings,
    previous: VehicleStatus | None = None,
    geocoder: Geocoder | None = None,
) -> VehicleStatus:
    """
    Turn any raw status payload into a VehicleStatus.

    An absent or unrecognised payload yields an empty record. A zero or missing
    odometer is replaced by the previous snapshot's value (some cars report 0
    between trips).
    """
    payload = detect_schema(raw)
    if payload is None:
        return VehicleStatus()

    fields = normalize_payload(payload, settings, previous)

    latitude, longitude = fields.get("latitude"), fields.get("longitude")
    if geocoder is not None and latitude is not None and longitude is not None:
        fields.update(await _resolve_location(geocoder, latitude, longitude))

    if not fields.get("measure_odo") and previous is not None:
        fields["measure_odo"] = previous.measure_odo

    return VehicleStatus(**fields)
