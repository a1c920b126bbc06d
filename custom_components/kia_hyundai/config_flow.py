"""Config flow for the Kia / Hyundai Connect integration."""
from __future__ import annotations
import logging
from typing import Any, Dict, Optional
import homeassistant.helpers.config_validation as cv
import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import callback

from .const import (
    BRANDS,
    CONF_BATTERY_ALARM_LEVEL,
    CONF_BRAND,
    CONF_DISTANCE_UNIT,
    CONF_ENGINE,
    CONF_EV_BATTERY_ALARM_LEVEL,
    CONF_HOME_LAT,
    CONF_HOME_LON,
    CONF_LANGUAGE,
    CONF_LOGIN_ON_RETRY,
    CONF_PASSWORD,
    CONF_PIN,
    CONF_POLL_INTERVAL,
    CONF_POLL_INTERVAL_ENGINE_ON,
    CONF_POLL_INTERVAL_FORCED,
    CONF_REGION,
    CONF_USERNAME,
    CONF_VIN,
    DEFAULT_BATTERY_ALARM_LEVEL,
    DEFAULT_EV_BATTERY_ALARM_LEVEL,
    DEFAULT_LANGUAGE,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_INTERVAL_ENGINE_ON,
    DEFAULT_POLL_INTERVAL_FORCED,
    DOMAIN,
    ENGINE_CAPABILITIES,
    ENGINE_EV,
    REGIONS,
    UNIT_KM,
    UNIT_MI,
)

_LOGGER = logging.getLogger(__name__)

CONF_NAME = "name"

minutes = vol.All(vol.Coerce(int), vol.Range(min=0, max=1440))
base_minutes = vol.All(vol.Coerce(int), vol.Range(min=1, max=1440))
percentage = vol.All(vol.Coerce(int), vol.Range(min=0, max=100))
vin_validator = vol.All(cv.string, vol.Length(min=17, max=17), vol.Upper)

OPTION_DEFAULTS: Dict[str, Any] = {
    CONF_POLL_INTERVAL: DEFAULT_POLL_INTERVAL,
    CONF_POLL_INTERVAL_ENGINE_ON: DEFAULT_POLL_INTERVAL_ENGINE_ON,
    CONF_POLL_INTERVAL_FORCED: DEFAULT_POLL_INTERVAL_FORCED,
    CONF_BATTERY_ALARM_LEVEL: DEFAULT_BATTERY_ALARM_LEVEL,
    CONF_EV_BATTERY_ALARM_LEVEL: DEFAULT_EV_BATTERY_ALARM_LEVEL,
    CONF_DISTANCE_UNIT: UNIT_KM,
    CONF_LOGIN_ON_RETRY: False,
}


def _user_schema(defaults: Dict[str, Any]) -> vol.Schema:
    return vol.Schema(
        {
            vol.Required(CONF_NAME, default=defaults.get(CONF_NAME, "My car")): cv.string,
            vol.Required(CONF_USERNAME, default=defaults.get(CONF_USERNAME, "")): cv.string,
            vol.Required(CONF_PASSWORD, default=defaults.get(CONF_PASSWORD, "")): cv.string,
            vol.Optional(CONF_PIN, default=defaults.get(CONF_PIN, "")): cv.string,
            vol.Required(CONF_REGION, default=defaults.get(CONF_REGION, 1)): vol.In(REGIONS),
            vol.Required(CONF_BRAND, default=defaults.get(CONF_BRAND, 1)): vol.In(BRANDS),
            vol.Required(CONF_VIN, default=defaults.get(CONF_VIN, "")): cv.string,
            vol.Required(CONF_ENGINE, default=defaults.get(CONF_ENGINE, ENGINE_EV)): vol.In(list(ENGINE_CAPABILITIES)),
            vol.Required(CONF_LANGUAGE, default=defaults.get(CONF_LANGUAGE, DEFAULT_LANGUAGE)): cv.string,
            vol.Required(CONF_HOME_LAT, default=defaults.get(CONF_HOME_LAT, 0.0)): cv.latitude,
            vol.Required(CONF_HOME_LON, default=defaults.get(CONF_HOME_LON, 0.0)): cv.longitude,
        }
    )


def _options_schema(defaults: Dict[str, Any]) -> vol.Schema:
    return vol.Schema(
        {
            vol.Required(CONF_POLL_INTERVAL, default=defaults[CONF_POLL_INTERVAL]): base_minutes,
            vol.Required(CONF_POLL_INTERVAL_ENGINE_ON, default=defaults[CONF_POLL_INTERVAL_ENGINE_ON]): minutes,
            vol.Required(CONF_POLL_INTERVAL_FORCED, default=defaults[CONF_POLL_INTERVAL_FORCED]): minutes,
            vol.Required(CONF_BATTERY_ALARM_LEVEL, default=defaults[CONF_BATTERY_ALARM_LEVEL]): percentage,
            vol.Required(CONF_EV_BATTERY_ALARM_LEVEL, default=defaults[CONF_EV_BATTERY_ALARM_LEVEL]): percentage,
            vol.Required(CONF_DISTANCE_UNIT, default=defaults[CONF_DISTANCE_UNIT]): vol.In([UNIT_KM, UNIT_MI]),
            vol.Required(CONF_LOGIN_ON_RETRY, default=defaults[CONF_LOGIN_ON_RETRY]): cv.boolean,
        }
    )


class CustomFlow(config_entries.ConfigFlow, domain=DOMAIN):
    data: Optional[Dict[str, Any]]

    async def async_step_user(self, user_input: Optional[Dict[str, Any]] = None):
        errors: Dict[str, str] = {}
        defaults: Dict[str, Any] = {
            CONF_HOME_LAT: self.hass.config.latitude,
            CONF_HOME_LON: self.hass.config.longitude,
        }
        if user_input is not None:
            self.data = dict(user_input)
            defaults.update(user_input)
            if not self.data.get(CONF_USERNAME):
                errors['base'] = 'username_required'
            elif not self.data.get(CONF_PASSWORD):
                errors['base'] = 'password_required'
            else:
                try:
                    self.data[CONF_VIN] = vin_validator(self.data.get(CONF_VIN, ""))
                except vol.Invalid:
                    errors['base'] = 'invalid_vin'
            if not errors:
                await self.async_set_unique_id(self.data[CONF_VIN])
                self._abort_if_unique_id_configured()
                title = self.data.pop(CONF_NAME, None) or self.data[CONF_VIN]
                return self.async_create_entry(title=title, data=self.data)

        return self.async_show_form(step_id="user", data_schema=_user_schema(defaults), errors=errors)

    @staticmethod
    @callback
    def async_get_options_flow(config_entry):
        """Get the options flow for this handler."""
        return OptionsFlowHandler(config_entry)


class OptionsFlowHandler(config_entries.OptionsFlow):
    """Polling intervals, alarm levels and the distance unit; credentials stay in entry.data."""

    def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
        self._entry = config_entry

    def _current(self) -> Dict[str, Any]:
        """Defaults, overridden by entry.data, overridden by entry.options."""
        current = dict(OPTION_DEFAULTS)
        for key in OPTION_DEFAULTS:
            if key in self._entry.data:
                current[key] = self._entry.data[key]
            if key in self._entry.options:
                current[key] = self._entry.options[key]
        return current

    async def async_step_init(self, user_input: Dict[str, Any] = None):
        errors: Dict[str, str] = {}
        if user_input is not None:
            if user_input.get(CONF_POLL_INTERVAL, 0) < 1:
                errors['base'] = 'poll_interval_too_short'
            if not errors:
                return self.async_create_entry(title="", data=dict(user_input))

        return self.async_show_form(step_id="init", data_schema=_options_schema(self._current()), errors=errors)
