"""
Unit tests for config_flow.py — CustomFlow (initial setup) and OptionsFlowHandler (options editing).

Coverage:
- CustomFlow.async_step_user:
    * GET (no input) → FORM with step_id "user", home defaults from hass.config
    * Valid input → CREATE_ENTRY titled by "name", VIN upper-cased and used as unique id
    * Empty username / password, malformed VIN → FORM with the matching error
    * Already configured VIN → flow aborts

- OptionsFlowHandler.async_step_init:
    * GET (no input) → FORM with defaults, entry.options over entry.data over built-in defaults
    * Valid input → CREATE_ENTRY with the options
    * Poll interval below one minute → FORM with errors["base"] == "poll_interval_too_short"
"""

from __future__ import annotations

import unittest
from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock

import voluptuous as vol
from homeassistant.data_entry_flow import AbortFlow

from custom_components.kia_hyundai.config_flow import CustomFlow, OptionsFlowHandler

from .test_common import TEST_VIN, make_entry_data


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_flow() -> CustomFlow:
    """Return a CustomFlow with a mocked hass and unique-id handling."""
    flow = CustomFlow()
    flow.hass = MagicMock()
    flow.hass.config.latitude = 52.37
    flow.hass.config.longitude = 4.89
    flow.async_set_unique_id = AsyncMock()
    flow._abort_if_unique_id_configured = MagicMock()
    return flow


def _make_options_flow(data: Dict[str, Any], options: Dict[str, Any] | None = None) -> OptionsFlowHandler:
    entry = MagicMock()
    entry.data = dict(data)
    entry.options = dict(options or {})
    handler = OptionsFlowHandler(entry)
    handler.hass = MagicMock()
    return handler


def _defaults(result) -> Dict[str, Any]:
    """Default value of every field of the form in result."""
    return {
        str(key): key.default()
        for key in result["data_schema"].schema
        if key.default is not vol.UNDEFINED
    }


VALID_USER_INPUT = {
    "name": "Family EV",
    "username": "driver@example.com",
    "password": "s3cr3t",
    "pin": "1234",
    "region": 1,
    "brand": 1,
    "vin": TEST_VIN.lower(),
    "engine": "Full EV",
    "language": "en",
    "lat": 52.0,
    "lon": 5.0,
}

VALID_OPTIONS_INPUT = {
    "poll_interval": 15,
    "poll_interval_engine_on": 1,
    "poll_interval_forced": 0,
    "battery_alarm_level": 55,
    "ev_battery_alarm_level": 10,
    "distance_unit": "mi",
    "login_on_retry": True,
}


# ---------------------------------------------------------------------------
# CustomFlow — initial config
# ---------------------------------------------------------------------------

class TestCustomFlow(unittest.IsolatedAsyncioTestCase):

    async def test_shows_form_on_get(self):
        flow = _make_flow()

        result = await flow.async_step_user(user_input=None)

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["step_id"], "user")
        self.assertEqual(result.get("errors", {}), {})

    async def test_home_defaults_from_hass_config(self):
        result = await _make_flow().async_step_user(user_input=None)

        defaults = _defaults(result)
        self.assertEqual(defaults["lat"], 52.37)
        self.assertEqual(defaults["lon"], 4.89)

    async def test_valid_input_creates_entry(self):
        flow = _make_flow()

        result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT))

        self.assertEqual(result["type"], "create_entry")
        self.assertEqual(result["title"], "Family EV")
        data = result["data"]
        self.assertEqual(data["vin"], TEST_VIN)
        self.assertEqual(data["username"], "driver@example.com")
        self.assertEqual(data["engine"], "Full EV")
        self.assertNotIn("name", data)
        flow.async_set_unique_id.assert_awaited_once_with(TEST_VIN)

    async def test_title_falls_back_to_vin(self):
        user_input = dict(VALID_USER_INPUT, name="")

        result = await _make_flow().async_step_user(user_input=user_input)

        self.assertEqual(result["title"], TEST_VIN)

    async def test_empty_username_returns_form_with_error(self):
        result = await _make_flow().async_step_user(user_input=dict(VALID_USER_INPUT, username=""))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "username_required")

    async def test_empty_password_returns_form_with_error(self):
        result = await _make_flow().async_step_user(user_input=dict(VALID_USER_INPUT, password=""))

        self.assertEqual(result["errors"]["base"], "password_required")

    async def test_short_vin_returns_form_with_error(self):
        flow = _make_flow()

        result = await flow.async_step_user(user_input=dict(VALID_USER_INPUT, vin="KNA123"))

        self.assertEqual(result["errors"]["base"], "invalid_vin")
        flow.async_set_unique_id.assert_not_awaited()

    async def test_form_keeps_entered_values_on_error(self):
        result = await _make_flow().async_step_user(user_input=dict(VALID_USER_INPUT, password=""))

        self.assertEqual(_defaults(result)["username"], "driver@example.com")

    async def test_already_configured_aborts(self):
        flow = _make_flow()
        flow._abort_if_unique_id_configured = MagicMock(side_effect=AbortFlow("already_configured"))

        with self.assertRaises(AbortFlow):
            await flow.async_step_user(user_input=dict(VALID_USER_INPUT))


# ---------------------------------------------------------------------------
# OptionsFlowHandler — editing
# ---------------------------------------------------------------------------

class TestOptionsFlow(unittest.IsolatedAsyncioTestCase):

    async def test_shows_form_with_builtin_defaults(self):
        result = await _make_options_flow(make_entry_data()).async_step_init(user_input=None)

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["step_id"], "init")
        defaults = _defaults(result)
        self.assertEqual(defaults["poll_interval"], 10)
        self.assertEqual(defaults["poll_interval_engine_on"], 2)
        self.assertEqual(defaults["distance_unit"], "km")
        self.assertFalse(defaults["login_on_retry"])

    async def test_entry_data_overrides_builtin_defaults(self):
        result = await _make_options_flow(make_entry_data(poll_interval=20)).async_step_init(user_input=None)

        self.assertEqual(_defaults(result)["poll_interval"], 20)

    async def test_options_override_entry_data(self):
        handler = _make_options_flow(make_entry_data(poll_interval=20), {"poll_interval": 45})

        result = await handler.async_step_init(user_input=None)

        self.assertEqual(_defaults(result)["poll_interval"], 45)

    async def test_credentials_are_not_editable(self):
        result = await _make_options_flow(make_entry_data()).async_step_init(user_input=None)

        self.assertNotIn("username", _defaults(result))
        self.assertNotIn("password", _defaults(result))

    async def test_valid_input_creates_entry(self):
        result = await _make_options_flow(make_entry_data()).async_step_init(user_input=dict(VALID_OPTIONS_INPUT))

        self.assertEqual(result["type"], "create_entry")
        self.assertEqual(result["data"], VALID_OPTIONS_INPUT)

    async def test_zero_poll_interval_returns_form_with_error(self):
        handler = _make_options_flow(make_entry_data())

        result = await handler.async_step_init(user_input=dict(VALID_OPTIONS_INPUT, poll_interval=0))

        self.assertEqual(result["type"], "form")
        self.assertEqual(result["errors"]["base"], "poll_interval_too_short")
