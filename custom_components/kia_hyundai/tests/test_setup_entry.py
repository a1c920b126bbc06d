"""
Unit tests for __init__.py: async_setup_entry, unload, the options listener
and the integration services.

Coverage:
- cannot_connect / invalid_auth -> ConfigEntryNotReady before a coordinator exists
- valid credentials -> coordinator started, runtime_data set, platforms forwarded
- options change -> the car restarts after a short delay
- services resolve the target car by VIN and call the matching intent
"""

from __future__ import annotations

import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import voluptuous as vol
from homeassistant.exceptions import ConfigEntryNotReady

from custom_components.kia_hyundai import (
    PLATFORMS,
    SET_CHARGE_TARGETS_SCHEMA,
    SET_DESTINATION_SCHEMA,
    SET_TARGET_TEMPERATURE_SCHEMA,
    _async_update_listener,
    _validate_credentials,
    async_setup,
    async_setup_entry,
    async_unload_entry,
)
from custom_components.kia_hyundai.const import DOMAIN, SETTINGS_RESTART_DELAY
from custom_components.kia_hyundai.coordinator import CarCoordinator
from custom_components.kia_hyundai.vehicle import VehicleApiError

from .test_common import TEST_VIN, make_entry, make_session


def _make_hass(session=None) -> MagicMock:
    hass = MagicMock()
    hass.async_add_executor_job = AsyncMock(return_value=session or make_session())
    hass.config_entries.async_forward_entry_setups = AsyncMock()
    hass.config_entries.async_unload_platforms = AsyncMock(return_value=True)
    return hass


class TestAsyncSetupEntry(unittest.IsolatedAsyncioTestCase):

    def setUp(self):
        patcher = patch("custom_components.kia_hyundai.async_get_clientsession", return_value=MagicMock())
        patcher.start()
        self.addCleanup(patcher.stop)

    async def test_cannot_connect_raises_config_entry_not_ready(self):
        with patch(
            "custom_components.kia_hyundai._validate_credentials",
            new=AsyncMock(return_value="cannot_connect"),
        ), patch("custom_components.kia_hyundai.CarCoordinator") as MockCoord:
            with self.assertRaises(ConfigEntryNotReady) as ctx:
                await async_setup_entry(_make_hass(), make_entry())

        self.assertIn("Unable to connect", str(ctx.exception))
        MockCoord.assert_not_called()

    async def test_invalid_auth_raises_config_entry_not_ready(self):
        with patch(
            "custom_components.kia_hyundai._validate_credentials",
            new=AsyncMock(return_value="invalid_auth"),
        ), patch("custom_components.kia_hyundai.CarCoordinator") as MockCoord:
            with self.assertRaises(ConfigEntryNotReady) as ctx:
                await async_setup_entry(_make_hass(), make_entry())

        self.assertIn("credentials", str(ctx.exception))
        MockCoord.assert_not_called()

    async def test_valid_credentials_completes_setup(self):
        hass = _make_hass()
        entry = make_entry()
        mock_coordinator = MagicMock()
        mock_coordinator.async_start = AsyncMock(return_value=True)

        with patch(
            "custom_components.kia_hyundai._validate_credentials",
            new=AsyncMock(return_value=None),
        ), patch(
            "custom_components.kia_hyundai.CarCoordinator",
            return_value=mock_coordinator,
        ):
            result = await async_setup_entry(hass, entry)

        self.assertTrue(result)
        self.assertEqual(entry.runtime_data, mock_coordinator)
        mock_coordinator.async_start.assert_awaited_once()
        hass.config_entries.async_forward_entry_setups.assert_awaited_once_with(entry, PLATFORMS)
        entry.add_update_listener.assert_called_once_with(_async_update_listener)

    async def test_start_failure_still_sets_up_entities(self):
        # A failed start schedules its own restart; entities show unavailable meanwhile
        hass = _make_hass()
        mock_coordinator = MagicMock()
        mock_coordinator.async_start = AsyncMock(return_value=False)

        with patch(
            "custom_components.kia_hyundai._validate_credentials",
            new=AsyncMock(return_value=None),
        ), patch(
            "custom_components.kia_hyundai.CarCoordinator",
            return_value=mock_coordinator,
        ):
            self.assertTrue(await async_setup_entry(hass, make_entry()))

        hass.config_entries.async_forward_entry_setups.assert_awaited_once()


class TestValidateCredentials(unittest.IsolatedAsyncioTestCase):

    async def test_success(self):
        self.assertIsNone(await _validate_credentials(make_session()))

    async def test_auth_error(self):
        session = make_session(login=AsyncMock(side_effect=VehicleApiError("nope", code="auth")))
        self.assertEqual(await _validate_credentials(session), "invalid_auth")

    async def test_api_error(self):
        session = make_session(login=AsyncMock(side_effect=VehicleApiError("503")))
        self.assertEqual(await _validate_credentials(session), "cannot_connect")

    async def test_unexpected_error(self):
        session = make_session(login=AsyncMock(side_effect=OSError("dns")))
        self.assertEqual(await _validate_credentials(session), "cannot_connect")


class TestUnloadAndOptions(unittest.IsolatedAsyncioTestCase):

    async def test_unload_shuts_coordinator_down(self):
        hass = _make_hass()
        entry = make_entry()
        entry.runtime_data = MagicMock()
        entry.runtime_data.async_shutdown = AsyncMock()

        self.assertTrue(await async_unload_entry(hass, entry))

        entry.runtime_data.async_shutdown.assert_awaited_once()

    async def test_failed_unload_keeps_coordinator(self):
        hass = _make_hass()
        hass.config_entries.async_unload_platforms = AsyncMock(return_value=False)
        entry = make_entry()
        entry.runtime_data = MagicMock()
        entry.runtime_data.async_shutdown = AsyncMock()

        self.assertFalse(await async_unload_entry(hass, entry))

        entry.runtime_data.async_shutdown.assert_not_awaited()

    async def test_options_change_restarts_car(self):
        entry = make_entry()
        entry.runtime_data = MagicMock()

        await _async_update_listener(_make_hass(), entry)

        entry.runtime_data.request_restart.assert_called_once_with(SETTINGS_RESTART_DELAY)


class TestServices(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.hass = _make_hass()
        self.car = MagicMock(spec=CarCoordinator)
        self.car.vin = TEST_VIN
        self.other = MagicMock(spec=CarCoordinator)
        self.other.vin = "KMHKR81CPNU000002"
        entries = []
        for coordinator in (self.car, self.other):
            entry = MagicMock()
            entry.runtime_data = coordinator
            entries.append(entry)
        self.hass.config_entries.async_entries = MagicMock(return_value=entries)

        await async_setup(self.hass, {})
        self.handlers = {
            c.args[1]: c.args[2] for c in self.hass.services.async_register.call_args_list
        }

    async def _call(self, service, **data):
        call = MagicMock()
        call.data = data
        await self.handlers[service](call)

    async def test_all_services_registered(self):
        self.assertEqual(
            set(self.handlers),
            {"force_refresh", "set_target_temperature", "set_charge_targets", "set_destination"},
        )
        for c in self.hass.services.async_register.call_args_list:
            self.assertEqual(c.args[0], DOMAIN)

    async def test_force_refresh_all_cars(self):
        await self._call("force_refresh")
        self.car.async_refresh_status.assert_awaited_once_with("service")
        self.other.async_refresh_status.assert_awaited_once_with("service")

    async def test_target_by_vin(self):
        await self._call("set_target_temperature", vin=TEST_VIN, temperature=21.5)
        self.car.async_set_target_temperature.assert_awaited_once_with(21.5, "service")
        self.other.async_set_target_temperature.assert_not_awaited()

    async def test_unknown_vin_does_nothing(self):
        await self._call("force_refresh", vin="UNKNOWN")
        self.car.async_refresh_status.assert_not_awaited()

    async def test_charge_targets(self):
        await self._call("set_charge_targets", vin=TEST_VIN, slow=70)
        self.car.async_set_charge_targets.assert_awaited_once_with(70, None, "service")

    async def test_destination_text(self):
        await self._call("set_destination", vin=TEST_VIN, destination="Utrecht Centraal")
        self.car.async_set_destination.assert_awaited_once_with("Utrecht Centraal", "service")

    async def test_destination_coordinates(self):
        await self._call("set_destination", vin=TEST_VIN, latitude=52.1, longitude=5.1)
        self.car.async_set_destination.assert_awaited_once_with({"latitude": 52.1, "longitude": 5.1}, "service")


class TestServiceSchemas(unittest.TestCase):

    def test_destination_needs_text_or_coordinates(self):
        with self.assertRaises(vol.Invalid):
            SET_DESTINATION_SCHEMA({})
        with self.assertRaises(vol.Invalid):
            SET_DESTINATION_SCHEMA({"latitude": 52.1})
        self.assertEqual(SET_DESTINATION_SCHEMA({"destination": "Home"}), {"destination": "Home"})

    def test_temperature_range(self):
        with self.assertRaises(vol.Invalid):
            SET_TARGET_TEMPERATURE_SCHEMA({"temperature": 35})
        self.assertEqual(SET_TARGET_TEMPERATURE_SCHEMA({"temperature": "21"})["temperature"], 21.0)

    def test_charge_level_range(self):
        with self.assertRaises(vol.Invalid):
            SET_CHARGE_TARGETS_SCHEMA({"slow": 40})
        self.assertEqual(SET_CHARGE_TARGETS_SCHEMA({"fast": "90"}), {"fast": 90})
