"""
Switch platform: door lock, climate, defrost and charging.

Turning a switch only queues the command; the state follows once the
confirmation poll has seen the car react.
"""
from __future__ import annotations

import logging
from typing import NamedTuple

from homeassistant.components.switch import SwitchDeviceClass, SwitchEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .coordinator import CarCoordinator
from .entity import CarEntity

_LOGGER = logging.getLogger(__name__)


class SwitchType(NamedTuple):
    key: str
    name: str
    icon: str
    intent: str


SWITCH_TYPES: list[SwitchType] = [
    SwitchType("locked", "Door lock", "mdi:car-key", "async_set_lock"),
    SwitchType("climate_control", "Climate", "mdi:air-conditioner", "async_set_climate"),
    SwitchType("defrost", "Defrost", "mdi:car-defrost-front", "async_set_defrost"),
    SwitchType("charge", "Charging", "mdi:ev-station", "async_set_charging"),
]


class CarSwitch(CarEntity, SwitchEntity):
    """Reflects a VehicleStatus field and queues the matching command on toggle."""

    _attr_device_class = SwitchDeviceClass.SWITCH

    def __init__(self, coordinator: CarCoordinator, switch_type: SwitchType) -> None:
        super().__init__(coordinator, switch_type.key, switch_type.name, switch_type.icon)
        self._intent = switch_type.intent

    @property
    def is_on(self) -> bool | None:
        value = self._value()
        return None if value is None else bool(value)

    async def async_turn_on(self, **kwargs) -> None:
        await getattr(self.coordinator, self._intent)(True, "app")

    async def async_turn_off(self, **kwargs) -> None:
        await getattr(self.coordinator, self._intent)(False, "app")


async def async_setup_entry(hass: HomeAssistant, config_entry: ConfigEntry, async_add_entities) -> None:
    coordinator: CarCoordinator = config_entry.runtime_data

    entities = [
        CarSwitch(coordinator, switch_type)
        for switch_type in SWITCH_TYPES
        if coordinator.has_capability(switch_type.key)
    ]
    _LOGGER.debug("Adding %s switches for %s", len(entities), coordinator.car_name)
    async_add_entities(entities)
