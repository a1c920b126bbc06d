"""The Kia / Hyundai Connect integration."""
from __future__ import annotations

import logging

import homeassistant.helpers.config_validation as cv
import voluptuous as vol
from homeassistant import config_entries, core
from homeassistant.const import Platform
from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.exceptions import ConfigEntryNotReady
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .api import AUTH_ERROR_CODE, ConnectVehicleSession
from .const import (
    CONF_BRAND,
    CONF_LANGUAGE,
    CONF_PASSWORD,
    CONF_PIN,
    CONF_REGION,
    CONF_USERNAME,
    CONF_VIN,
    DEFAULT_LANGUAGE,
    DOMAIN,
    SETTINGS_RESTART_DELAY,
)
from .coordinator import CarCoordinator
from .geocoding import NominatimGeocoder
from .vehicle import VehicleApiError

PLATFORMS: list[Platform] = [Platform.DEVICE_TRACKER, Platform.SENSOR, Platform.BINARY_SENSOR, Platform.SWITCH]
_LOGGER = logging.getLogger(__name__)

SERVICE_FORCE_REFRESH = "force_refresh"
SERVICE_SET_TARGET_TEMPERATURE = "set_target_temperature"
SERVICE_SET_CHARGE_TARGETS = "set_charge_targets"
SERVICE_SET_DESTINATION = "set_destination"

ATTR_VIN = "vin"
ATTR_TEMPERATURE = "temperature"
ATTR_SLOW = "slow"
ATTR_FAST = "fast"
ATTR_DESTINATION = "destination"
ATTR_LATITUDE = "latitude"
ATTR_LONGITUDE = "longitude"

charge_level = vol.All(vol.Coerce(int), vol.Range(min=50, max=100))

FORCE_REFRESH_SCHEMA = vol.Schema({vol.Optional(ATTR_VIN): cv.string})
SET_TARGET_TEMPERATURE_SCHEMA = vol.Schema({
    vol.Optional(ATTR_VIN): cv.string,
    vol.Required(ATTR_TEMPERATURE): vol.All(vol.Coerce(float), vol.Range(min=14, max=30)),
})
SET_CHARGE_TARGETS_SCHEMA = vol.Schema({
    vol.Optional(ATTR_VIN): cv.string,
    vol.Optional(ATTR_SLOW): charge_level,
    vol.Optional(ATTR_FAST): charge_level,
})
SET_DESTINATION_SCHEMA = vol.All(
    vol.Schema({
        vol.Optional(ATTR_VIN): cv.string,
        vol.Optional(ATTR_DESTINATION): cv.string,
        vol.Inclusive(ATTR_LATITUDE, "coordinates"): cv.latitude,
        vol.Inclusive(ATTR_LONGITUDE, "coordinates"): cv.longitude,
    }),
    cv.has_at_least_one_key(ATTR_DESTINATION, ATTR_LATITUDE),
)


def _coordinators(hass: HomeAssistant, vin: str | None) -> list[CarCoordinator]:
    """Loaded coordinators, all of them or the one for vin."""
    coordinators = [
        entry.runtime_data
        for entry in hass.config_entries.async_entries(DOMAIN)
        if isinstance(getattr(entry, "runtime_data", None), CarCoordinator)
    ]
    if vin:
        coordinators = [c for c in coordinators if c.vin == vin]
        if not coordinators:
            _LOGGER.warning("No loaded car with VIN %s", vin)
    return coordinators


def _register_services(hass: HomeAssistant) -> None:
    async def force_refresh(call: ServiceCall) -> None:
        for coordinator in _coordinators(hass, call.data.get(ATTR_VIN)):
            await coordinator.async_refresh_status("service")

    async def set_target_temperature(call: ServiceCall) -> None:
        for coordinator in _coordinators(hass, call.data.get(ATTR_VIN)):
            await coordinator.async_set_target_temperature(call.data[ATTR_TEMPERATURE], "service")

    async def set_charge_targets(call: ServiceCall) -> None:
        for coordinator in _coordinators(hass, call.data.get(ATTR_VIN)):
            await coordinator.async_set_charge_targets(
                call.data.get(ATTR_SLOW), call.data.get(ATTR_FAST), "service"
            )

    async def set_destination(call: ServiceCall) -> None:
        if ATTR_LATITUDE in call.data:
            destination = {ATTR_LATITUDE: call.data[ATTR_LATITUDE], ATTR_LONGITUDE: call.data[ATTR_LONGITUDE]}
        else:
            destination = call.data[ATTR_DESTINATION]
        for coordinator in _coordinators(hass, call.data.get(ATTR_VIN)):
            await coordinator.async_set_destination(destination, "service")

    hass.services.async_register(DOMAIN, SERVICE_FORCE_REFRESH, force_refresh, schema=FORCE_REFRESH_SCHEMA)
    hass.services.async_register(
        DOMAIN, SERVICE_SET_TARGET_TEMPERATURE, set_target_temperature, schema=SET_TARGET_TEMPERATURE_SCHEMA
    )
    hass.services.async_register(
        DOMAIN, SERVICE_SET_CHARGE_TARGETS, set_charge_targets, schema=SET_CHARGE_TARGETS_SCHEMA
    )
    hass.services.async_register(DOMAIN, SERVICE_SET_DESTINATION, set_destination, schema=SET_DESTINATION_SCHEMA)


async def async_setup(hass: core.HomeAssistant, config: dict) -> bool:
    """Set up the integration."""
    _register_services(hass)
    return True


def _create_session(hass: HomeAssistant, data: dict) -> ConnectVehicleSession:
    return ConnectVehicleSession(
        hass,
        username=data[CONF_USERNAME],
        password=data[CONF_PASSWORD],
        pin=data.get(CONF_PIN, ""),
        region=data[CONF_REGION],
        brand=data[CONF_BRAND],
        vin=data[CONF_VIN],
        language=data.get(CONF_LANGUAGE, DEFAULT_LANGUAGE),
    )


async def _validate_credentials(session: ConnectVehicleSession) -> str | None:
    """Log in once. Returns None on success, otherwise an error key."""
    try:
        await session.login()
    except VehicleApiError as exc:
        if exc.code == AUTH_ERROR_CODE:
            return "invalid_auth"
        _LOGGER.warning("Vehicle API not reachable: %s", exc)
        return "cannot_connect"
    except Exception as exc:  # noqa: BLE001
        _LOGGER.error("Unexpected error logging in: %s", exc)
        return "cannot_connect"
    return None


async def async_setup_entry(
    hass: core.HomeAssistant, entry: config_entries.ConfigEntry
) -> bool:
    """Set up one car from a ConfigEntry."""
    session = await hass.async_add_executor_job(_create_session, hass, dict(entry.data))

    error = await _validate_credentials(session)
    if error == "invalid_auth":
        raise ConfigEntryNotReady("Invalid Kia / Hyundai credentials or unknown VIN")
    if error:
        raise ConfigEntryNotReady("Unable to connect to the Kia / Hyundai API")

    geocoder = NominatimGeocoder(
        async_get_clientsession(hass), language=entry.data.get(CONF_LANGUAGE, DEFAULT_LANGUAGE)
    )
    coordinator = CarCoordinator(hass, entry, session, geocoder)
    entry.runtime_data = coordinator

    await coordinator.async_start()
    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)

    entry.async_on_unload(entry.add_update_listener(_async_update_listener))
    return True


async def _async_update_listener(hass: HomeAssistant, config_entry: config_entries.ConfigEntry) -> None:
    """Options changed: restart the car so the new intervals and levels apply."""
    coordinator: CarCoordinator = config_entry.runtime_data
    _LOGGER.info("Settings changed for %s", coordinator.car_name)
    coordinator.request_restart(SETTINGS_RESTART_DELAY)


async def async_unload_entry(
    hass: core.HomeAssistant, entry: config_entries.ConfigEntry
) -> bool:
    """Unload a config entry."""
    unloaded = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if unloaded:
        await entry.runtime_data.async_shutdown()
    return unloaded
