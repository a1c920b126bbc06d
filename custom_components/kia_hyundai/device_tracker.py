"""Device tracker platform: the last reported position of the car."""
from __future__ import annotations

from homeassistant.components.device_tracker import SourceType
from homeassistant.components.device_tracker.config_entry import TrackerEntity
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant

from .coordinator import CarCoordinator
from .entity import CarEntity


class CarTracker(CarEntity, TrackerEntity):
    def __init__(self, coordinator: CarCoordinator) -> None:
        super().__init__(coordinator, "position", "Position", "mdi:car")

    @property
    def latitude(self) -> float | None:
        data = self.coordinator.data
        return data.latitude if data is not None else None

    @property
    def longitude(self) -> float | None:
        data = self.coordinator.data
        return data.longitude if data is not None else None

    @property
    def source_type(self) -> SourceType:
        return SourceType.GPS


async def async_setup_entry(hass: HomeAssistant, config_entry: ConfigEntry, async_add_entities) -> None:
    coordinator: CarCoordinator = config_entry.runtime_data
    if coordinator.has_capability("latitude"):
        async_add_entities([CarTracker(coordinator)])
