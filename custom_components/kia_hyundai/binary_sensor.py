"""Binary sensor platform: engine, closed and locked, alarms, moving and refreshing."""
from __future__ import annotations

import logging
from typing import NamedTuple

from homeassistant.components.binary_sensor import BinarySensorDeviceClass, BinarySensorEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .coordinator import CarCoordinator
from .entity import CarEntity

_LOGGER = logging.getLogger(__name__)


class BinarySensorType(NamedTuple):
    key: str
    name: str
    icon: str | None = None
    device_class: BinarySensorDeviceClass | None = None


BINARY_SENSOR_TYPES: list[BinarySensorType] = [
    BinarySensorType("engine", "Engine", "mdi:engine", BinarySensorDeviceClass.RUNNING),
    BinarySensorType("closed_locked", "Closed and locked", "mdi:car-door-lock"),
    BinarySensorType("alarm_bat", "Battery alarm", "mdi:battery-alert", BinarySensorDeviceClass.PROBLEM),
    BinarySensorType("alarm_tire_pressure", "Tire pressure alarm", "mdi:car-tire-alert", BinarySensorDeviceClass.PROBLEM),
]


class CarBinarySensor(CarEntity, BinarySensorEntity):
    """A boolean VehicleStatus field."""

    def __init__(self, coordinator: CarCoordinator, sensor_type: BinarySensorType) -> None:
        super().__init__(coordinator, sensor_type.key, sensor_type.name, sensor_type.icon)
        self._attr_device_class = sensor_type.device_class

    @property
    def is_on(self) -> bool | None:
        value = self._value()
        return None if value is None else bool(value)


class MovingSensor(CarEntity, BinarySensorEntity):
    """Outcome of the last movement check."""

    _attr_device_class = BinarySensorDeviceClass.MOVING

    def __init__(self, coordinator: CarCoordinator) -> None:
        super().__init__(coordinator, "moving", "Moving", "mdi:car-arrow-right")

    @property
    def is_on(self) -> bool:
        return self.coordinator.moving


class RefreshingSensor(CarEntity, BinarySensorEntity):
    """On while a status poll is in flight."""

    _attr_device_class = BinarySensorDeviceClass.RUNNING

    def __init__(self, coordinator: CarCoordinator) -> None:
        super().__init__(coordinator, "refresh_status", "Refreshing", "mdi:refresh")

    @property
    def available(self) -> bool:
        return self.coordinator.available

    @property
    def is_on(self) -> bool:
        return self.coordinator.refreshing


async def async_setup_entry(hass: HomeAssistant, config_entry: ConfigEntry, async_add_entities) -> None:
    coordinator: CarCoordinator = config_entry.runtime_data

    entities: list[BinarySensorEntity] = [
        CarBinarySensor(coordinator, sensor_type)
        for sensor_type in BINARY_SENSOR_TYPES
        if coordinator.has_capability(sensor_type.key)
    ]
    if coordinator.has_capability("location"):
        entities.append(MovingSensor(coordinator))
    if coordinator.has_capability("refresh_status"):
        entities.append(RefreshingSensor(coordinator))

    _LOGGER.debug("Adding %s binary sensors for %s", len(entities), coordinator.car_name)
    async_add_entities(entities)
