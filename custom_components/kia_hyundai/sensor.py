"""
Sensor platform: odometer, speed, range, batteries, distance from home,
location, charging figures and the time of the last server update.
"""
from __future__ import annotations

import datetime
import logging
from typing import Any, NamedTuple

from homeassistant.components.sensor import SensorDeviceClass, SensorEntity, SensorStateClass
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import PERCENTAGE, UnitOfLength, UnitOfPower, UnitOfSpeed, UnitOfTemperature
from homeassistant.core import HomeAssistant

from .const import EV_PLUGGED_IN, EV_PLUGGED_IN_CHARGING, EV_PLUGGED_OUT, UNIT_MI
from .coordinator import CarCoordinator
from .entity import CarEntity

_LOGGER = logging.getLogger(__name__)


class SensorType(NamedTuple):
    key: str
    name: str
    icon: str | None = None
    device_class: SensorDeviceClass | None = None
    unit: str | None = None
    state_class: SensorStateClass | None = None


SENSOR_TYPES: list[SensorType] = [
    SensorType("measure_odo", "Odometer", "mdi:counter", SensorDeviceClass.DISTANCE,
               UnitOfLength.KILOMETERS, SensorStateClass.TOTAL_INCREASING),
    SensorType("measure_speed", "Speed", "mdi:speedometer", SensorDeviceClass.SPEED,
               UnitOfSpeed.KILOMETERS_PER_HOUR, SensorStateClass.MEASUREMENT),
    SensorType("measure_range", "Range", "mdi:map-marker-distance", SensorDeviceClass.DISTANCE,
               UnitOfLength.KILOMETERS, SensorStateClass.MEASUREMENT),
    SensorType("measure_battery", "Battery", None, SensorDeviceClass.BATTERY,
               PERCENTAGE, SensorStateClass.MEASUREMENT),
    SensorType("measure_battery_12v", "12V battery", "mdi:car-battery", SensorDeviceClass.BATTERY,
               PERCENTAGE, SensorStateClass.MEASUREMENT),
    SensorType("target_temperature", "Target temperature", "mdi:thermometer", SensorDeviceClass.TEMPERATURE,
               UnitOfTemperature.CELSIUS, None),
    SensorType("measure_power_charge", "Charging power", "mdi:ev-station", SensorDeviceClass.POWER,
               UnitOfPower.WATT, SensorStateClass.MEASUREMENT),
    SensorType("meter_power_fuel_economy", "Energy economy", "mdi:leaf", None, None, SensorStateClass.MEASUREMENT),
    SensorType("charge_target_slow", "AC charge target", "mdi:battery-charging-60", None, PERCENTAGE, None),
    SensorType("charge_target_fast", "DC charge target", "mdi:battery-charging-100", None, PERCENTAGE, None),
]


class CarSensor(CarEntity, SensorEntity):
    """A numeric VehicleStatus field."""

    def __init__(self, coordinator: CarCoordinator, sensor_type: SensorType) -> None:
        super().__init__(coordinator, sensor_type.key, sensor_type.name, sensor_type.icon)
        self._attr_device_class = sensor_type.device_class
        self._attr_native_unit_of_measurement = sensor_type.unit
        self._attr_state_class = sensor_type.state_class

    @property
    def native_value(self) -> Any:
        return self._value()


class DistanceFromHomeSensor(CarEntity, SensorEntity):
    """Great-circle distance to the configured home, in the configured unit."""

    _attr_device_class = SensorDeviceClass.DISTANCE
    _attr_state_class = SensorStateClass.MEASUREMENT

    def __init__(self, coordinator: CarCoordinator) -> None:
        super().__init__(coordinator, "meter_distance", "Distance from home", "mdi:home-map-marker")
        if coordinator.normalizer_settings.distance_unit == UNIT_MI:
            self._attr_native_unit_of_measurement = UnitOfLength.MILES
        else:
            self._attr_native_unit_of_measurement = UnitOfLength.KILOMETERS

    @property
    def native_value(self) -> float | None:
        return self._value()


class LocationSensor(CarEntity, SensorEntity):
    """Short reverse-geocoded location; the full address is an attribute."""

    def __init__(self, coordinator: CarCoordinator) -> None:
        super().__init__(coordinator, "location", "Location", "mdi:map-marker")

    @property
    def native_value(self) -> str | None:
        return self._value()

    @property
    def extra_state_attributes(self) -> dict[str, Any]:
        data = self.coordinator.data
        if data is None:
            return {}
        return {"address": data.address, "latitude": data.latitude, "longitude": data.longitude}


class ChargingStateSensor(CarEntity, SensorEntity):
    _attr_device_class = SensorDeviceClass.ENUM
    _attr_options = [EV_PLUGGED_OUT, EV_PLUGGED_IN, EV_PLUGGED_IN_CHARGING]

    def __init__(self, coordinator: CarCoordinator) -> None:
        super().__init__(coordinator, "ev_charging_state", "Charging state", "mdi:ev-plug-type2")

    @property
    def native_value(self) -> str | None:
        return self._value()


class LastRefreshSensor(CarEntity, SensorEntity):
    """When the server state last changed."""

    _attr_device_class = SensorDeviceClass.TIMESTAMP

    def __init__(self, coordinator: CarCoordinator) -> None:
        super().__init__(coordinator, "last_refresh", "Last refresh", "mdi:update")

    @property
    def native_value(self) -> datetime.datetime | None:
        if self.coordinator.last_refresh is None:
            return None
        return datetime.datetime.fromtimestamp(self.coordinator.last_refresh, tz=datetime.timezone.utc)


async def async_setup_entry(hass: HomeAssistant, config_entry: ConfigEntry, async_add_entities) -> None:
    """Add sensors for the capabilities of the configured engine type."""
    coordinator: CarCoordinator = config_entry.runtime_data

    entities: list[SensorEntity] = [
        CarSensor(coordinator, sensor_type)
        for sensor_type in SENSOR_TYPES
        if coordinator.has_capability(sensor_type.key)
    ]
    if coordinator.has_capability("meter_distance"):
        entities.append(DistanceFromHomeSensor(coordinator))
    if coordinator.has_capability("location"):
        entities.append(LocationSensor(coordinator))
    if coordinator.has_capability("ev_charging_state"):
        entities.append(ChargingStateSensor(coordinator))
    if coordinator.has_capability("last_refresh"):
        entities.append(LastRefreshSensor(coordinator))

    _LOGGER.debug("Adding %s sensors for %s", len(entities), coordinator.car_name)
    async_add_entities(entities)
