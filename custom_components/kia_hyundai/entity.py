"""Base entity shared by all Kia / Hyundai platforms."""
from __future__ import annotations

from typing import Any

from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .const import DOMAIN
from .coordinator import CarCoordinator


class CarEntity(CoordinatorEntity[CarCoordinator]):
    """
    One capability of the car, backed by a VehicleStatus field of the same name.

    Entities only read coordinator.data; every write goes through a
    coordinator intent so it is queued like any other command.
    """

    _attr_has_entity_name = True

    def __init__(self, coordinator: CarCoordinator, key: str, name: str, icon: str | None = None) -> None:
        super().__init__(coordinator)
        self._key = key
        self._attr_unique_id = f"{DOMAIN}_{coordinator.vin}_{key}"
        self._attr_name = name
        self._attr_icon = icon

    @property
    def device_info(self) -> DeviceInfo:
        return DeviceInfo(**self.coordinator.get_device_info())

    @property
    def available(self) -> bool:
        return self.coordinator.available and self.coordinator.data is not None

    def _value(self) -> Any:
        if self.coordinator.data is None:
            return None
        return getattr(self.coordinator.data, self._key, None)
