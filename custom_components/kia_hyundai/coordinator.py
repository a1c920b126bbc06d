"""
DataUpdateCoordinator for one Kia / Hyundai car.

Responsibilities:
- Own the DeviceState, CommandQueue and PollScheduler of the car and drive
  their start-up, restart and shutdown ordering.
- Run the poll command: fetch the raw status that fits the car generation,
  normalize it, classify activity and push the new VehicleStatus to entities.
- Persist the last status and the park location in a per-VIN Store.
- Fire has_moved / has_parked / status_update events on the HA bus.
- Turn user intents (switches, services) into queued commands.

Polling is driven by the PollScheduler, not by HA: update_interval is None.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
import time
from collections.abc import Mapping
from typing import Any

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import HomeAssistantError
from homeassistant.helpers.storage import Store
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator

from .activity import ActivityResult, classify
from .command_queue import CommandQueue
from .const import (
    BRANDS,
    CAR_ACTIVE_WINDOW,
    CONF_BATTERY_ALARM_LEVEL,
    CONF_BRAND,
    CONF_DISTANCE_UNIT,
    CONF_ENGINE,
    CONF_EV_BATTERY_ALARM_LEVEL,
    CONF_HOME_LAT,
    CONF_HOME_LON,
    CONF_LOGIN_ON_RETRY,
    CONF_POLL_INTERVAL,
    CONF_POLL_INTERVAL_ENGINE_ON,
    CONF_POLL_INTERVAL_FORCED,
    CONF_VIN,
    DEFAULT_BATTERY_ALARM_LEVEL,
    DEFAULT_EV_BATTERY_ALARM_LEVEL,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_POLL_INTERVAL_ENGINE_ON,
    DEFAULT_POLL_INTERVAL_FORCED,
    DOMAIN,
    ENGINE_CAPABILITIES,
    ENGINE_ICE,
    EVENT_NAME,
    QUOTA_RESTART_DELAY,
    RESTART_DELAY,
    STARTUP_FAILURE_RESTART_DELAY,
    STATUS_UPDATE_WINDOW,
    STORAGE_VERSION,
    STORE_LAST_STATUS,
    STORE_PARK_LOCATION,
    TRIGGER_HAS_MOVED,
    TRIGGER_HAS_PARKED,
    TRIGGER_STATUS_UPDATE,
    UNIT_KM,
    VERSION,
)
from .device_state import DeviceState, PollMode
from .geocoding import NominatimGeocoder
from .normalizer import NormalizerSettings, VehicleStatus, normalize_status
from .poll_scheduler import PollScheduler
from .vehicle import Command, CommandKind, VehicleSession

_LOGGER = logging.getLogger(__name__)

DEFAULT_TARGET_TEMPERATURE = 22
DEFAULT_CHARGE_TARGET_SLOW = 80
DEFAULT_CHARGE_TARGET_FAST = 100
LOCATION_RETRY_DELAY = 5  # seconds


async def _delay(seconds: float) -> None:
    await asyncio.sleep(seconds)


class CarCoordinator(DataUpdateCoordinator[VehicleStatus | None]):
    """
    Lifecycle controller and data owner for one car.

    self.data is the VehicleStatus last pushed to entities (None until the
    first poll or a restored snapshot).
    """

    def __init__(
        self,
        hass: HomeAssistant,
        entry: ConfigEntry,
        session: VehicleSession,
        geocoder: NominatimGeocoder | None = None,
    ) -> None:
        super().__init__(
            hass,
            _LOGGER,
            config_entry=entry,
            name=f"{DOMAIN}_{entry.data.get(CONF_VIN, '')}",
            update_interval=None,
        )
        self._entry = entry
        self.session = session
        self.geocoder = geocoder
        self.car_name: str = entry.title or entry.data.get(CONF_VIN, "car")

        self.state = DeviceState()
        self.queue = CommandQueue(
            self.state,
            self.async_execute,
            lambda: self.session.is_logged_in,
            relogin=self.session.login,
            on_quota_exceeded=self._on_quota_exceeded,
            name=self.car_name,
        )
        self.scheduler = PollScheduler(
            self.state, self.queue.enqueue, self.request_restart, name=self.car_name
        )

        self.last_status: VehicleStatus | None = None
        self.park_location: VehicleStatus | None = None
        # wall-clock time the server state last changed
        self.last_refresh: float | None = None
        # monotonic time of the last detected human activity
        self.car_last_active: float | None = None
        self.moving = False
        self.refreshing = False

        self._store: Store | None = None
        self._restart_task: asyncio.Task | None = None
        self.data = None

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def _opt(self, key: str, default: Any = None) -> Any:
        """Options override data; data holds the values entered at set-up."""
        if key in self._entry.options:
            return self._entry.options[key]
        return self._entry.data.get(key, default)

    @property
    def vin(self) -> str:
        return self._entry.data.get(CONF_VIN, "")

    @property
    def engine(self) -> str:
        return self._entry.data.get(CONF_ENGINE, ENGINE_ICE)

    @property
    def is_ev(self) -> bool:
        return self.has_capability("ev_charging_state")

    def has_capability(self, name: str) -> bool:
        return name in ENGINE_CAPABILITIES.get(self.engine, ())

    @property
    def poll_interval(self) -> float:
        return self._opt(CONF_POLL_INTERVAL, DEFAULT_POLL_INTERVAL)

    @property
    def poll_interval_engine_on(self) -> float:
        return self._opt(CONF_POLL_INTERVAL_ENGINE_ON, DEFAULT_POLL_INTERVAL_ENGINE_ON)

    @property
    def poll_interval_forced(self) -> float:
        return self._opt(CONF_POLL_INTERVAL_FORCED, DEFAULT_POLL_INTERVAL_FORCED)

    @property
    def normalizer_settings(self) -> NormalizerSettings:
        return NormalizerSettings(
            home_lat=self._opt(CONF_HOME_LAT),
            home_lon=self._opt(CONF_HOME_LON),
            distance_unit=self._opt(CONF_DISTANCE_UNIT, UNIT_KM),
            battery_alarm_level=self._opt(CONF_BATTERY_ALARM_LEVEL, DEFAULT_BATTERY_ALARM_LEVEL),
            ev_battery_alarm_level=self._opt(CONF_EV_BATTERY_ALARM_LEVEL, DEFAULT_EV_BATTERY_ALARM_LEVEL),
        )

    @property
    def available(self) -> bool:
        return self.state.available

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @property
    def store(self) -> Store:
        if self._store is None:
            self._store = Store(self.hass, STORAGE_VERSION, f"{DOMAIN}.{self.vin}")
        return self._store

    async def _async_restore(self) -> None:
        stored = await self.store.async_load() or {}
        if stored.get(STORE_LAST_STATUS):
            self.last_status = VehicleStatus.from_dict(stored[STORE_LAST_STATUS])
            self.data = self.last_status
        if stored.get(STORE_PARK_LOCATION):
            self.park_location = VehicleStatus.from_dict(stored[STORE_PARK_LOCATION])

    async def _async_save(self) -> None:
        data = {
            STORE_LAST_STATUS: self.last_status.as_dict() if self.last_status else None,
            STORE_PARK_LOCATION: self.park_location.as_dict() if self.park_location else None,
        }
        try:
            await self.store.async_save(data)
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("%s: failed to store status: %s", self.car_name, exc)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def async_start(self) -> bool:
        """
        Bring the car online: restore stored state, log in, start polling and
        queue the start-up poll.

        Never raises. A failure schedules a restart after
        STARTUP_FAILURE_RESTART_DELAY and returns False.
        """
        self.state.reset()
        self.queue.disabled = False
        self.queue.login_on_retry = bool(self._opt(CONF_LOGIN_ON_RETRY, False))
        try:
            await self._async_restore()
            await self.session.login()
            _LOGGER.debug("%s vehicle config: %s", self.car_name, self.session.vehicle_config)
            self.scheduler.start(self.poll_interval, self.poll_interval_forced)
            self.queue.enqueue(Command.poll(force_once=True, log_poll=True))
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("%s: start-up failed: %s", self.car_name, exc)
            self.request_restart(STARTUP_FAILURE_RESTART_DELAY)
            return False
        return True

    def request_restart(self, delay: float | None = None) -> None:
        """Schedule a restart in the background. Ignored while one is pending."""
        if not self.state.begin_restart():
            return
        self._restart_task = self.hass.async_create_task(self._async_restart_now(delay))

    async def async_restart(self, delay: float | None = None) -> bool:
        """Restart and wait for it. Returns False if a restart was already pending."""
        if not self.state.begin_restart():
            return False
        await self._async_restart_now(delay)
        return True

    async def _async_restart_now(self, delay: float | None) -> None:
        delay = RESTART_DELAY if delay is None else delay
        self.scheduler.stop()
        self.queue.flush()
        _LOGGER.info("%s will restart in %s seconds", self.car_name, delay)
        self.async_update_listeners()
        await _delay(delay)
        await self.async_start()

    def _on_quota_exceeded(self) -> None:
        _LOGGER.warning("%s: daily quota reached, pausing for %s minutes", self.car_name, QUOTA_RESTART_DELAY // 60)
        self.scheduler.stop()
        self.request_restart(QUOTA_RESTART_DELAY)

    async def async_shutdown(self) -> None:
        """Stop polling, cancel the queue consumer and any pending restart."""
        self.scheduler.stop()
        await self.queue.shutdown()
        task, self._restart_task = self._restart_task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        await super().async_shutdown()

    async def _async_update_data(self) -> VehicleStatus | None:
        """Manual refresh requests from HA go through the queue like any other poll."""
        self.queue.enqueue(Command.poll(force_once=False))
        return self.data

    # ------------------------------------------------------------------
    # Command dispatch
    # ------------------------------------------------------------------

    async def async_execute(self, command: Command) -> None:
        """Run one queued command. Errors propagate to the queue."""
        args = command.args
        kind = command.kind
        if kind == CommandKind.POLL:
            await self.async_poll(**(args or {}))
        elif kind == CommandKind.START_CLIMATE:
            await self.session.start_climate(args or {})
        elif kind == CommandKind.STOP_CLIMATE:
            await self.session.stop_climate(args or {})
        elif kind == CommandKind.LOCK:
            await self.session.lock()
        elif kind == CommandKind.UNLOCK:
            await self.session.unlock()
        elif kind == CommandKind.START_CHARGE:
            await self.session.start_charge()
        elif kind == CommandKind.STOP_CHARGE:
            await self.session.stop_charge()
        elif kind == CommandKind.SET_CHARGE_TARGETS:
            await self.session.set_charge_targets(args)
        elif kind == CommandKind.SET_NAVIGATION:
            await self.session.set_navigation(args)
        else:
            raise ValueError(f"Unknown command {kind}")

    # ------------------------------------------------------------------
    # Poll
    # ------------------------------------------------------------------

    def _forced_poll_due(self) -> bool:
        forced = self.poll_interval_forced
        if not forced or self.last_refresh is None:
            return False
        elapsed = time.time() - self.last_refresh
        soc = self.data.measure_battery_12v if self.data else None
        # Scales with the 12 V charge so a weak battery is woken less often
        min_elapsed = 24 * 60 * (forced / 5) * ((soc or 50) / 100)
        return elapsed > forced * 60 and elapsed > min_elapsed

    def _should_refresh(self, force_once: bool) -> bool:
        """True when the car itself must be woken up instead of reading the server cache."""
        if self.state.poll_mode == PollMode.ACTIVE:
            return True
        level = self.last_status.measure_battery_12v if self.last_status else None
        battery_good = level is not None and level > self._opt(CONF_BATTERY_ALARM_LEVEL, DEFAULT_BATTERY_ALARM_LEVEL)
        return battery_good and (force_once or self._forced_poll_due())

    async def _safe_location(self) -> dict:
        try:
            return await self.session.location() or {}
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("%s: failed to fetch location: %s", self.car_name, exc)
            return {}

    async def _safe_odometer(self) -> dict:
        try:
            return await self.session.odometer() or {}
        except Exception as exc:  # noqa: BLE001
            _LOGGER.warning("%s: failed to fetch odometer: %s", self.car_name, exc)
            return {}

    async def _fetch_status(self, refresh: bool) -> dict:
        """Fetch the raw status in the shape this car generation supports."""
        if self.session.ccs2:
            return await self.session.status(refresh=refresh, parsed=False)

        if self.session.supports_full_status:
            full = await self.session.full_status(refresh=refresh, parsed=False)
            if not full.get("vehicleLocation"):
                await _delay(LOCATION_RETRY_DELAY)
                location = await self._safe_location()
                full = {
                    **full,
                    "vehicleLocation": {"coord": {"lat": location.get("latitude"), "lon": location.get("longitude")}},
                }
            return full

        # Older accounts: status only; position and odometer are separate calls
        body = await self.session.status(refresh=refresh, parsed=False)
        current = self.data or VehicleStatus()
        full = {
            "vehicleStatus": body,
            "vehicleLocation": {
                "coord": {"lat": current.latitude, "lon": current.longitude},
                "speed": {"value": current.measure_speed},
            },
            "odometer": {"value": current.measure_odo},
        }
        last_date = self.last_status.date if self.last_status else None
        if body.get("time") != last_date:
            location = await self._safe_location()
            full["vehicleLocation"] = {
                "coord": {"lat": location.get("latitude"), "lon": location.get("longitude")},
            }
            full["odometer"] = await self._safe_odometer()
        return full

    async def async_poll(self, force_once: bool = False, log_poll: bool = False) -> VehicleStatus | None:
        """
        The poll command: fetch, normalize, classify and publish.

        Values the poll did not report keep their published value. A poll
        without any usable value publishes and stores nothing.
        Raises whatever the session raises so the queue can account for it.
        """
        self.refreshing = True
        self.async_update_listeners()
        try:
            raw = await self._fetch_status(self._should_refresh(force_once))
            if log_poll:
                _LOGGER.debug("%s raw status: %s", self.car_name, raw)

            previous = self.last_status
            snapshot = await normalize_status(raw, self.normalizer_settings, previous, self.geocoder)
            if snapshot.is_empty:
                _LOGGER.warning("%s: status without usable values, keeping the previous state", self.car_name)
                return self.data
            status = snapshot.merged_over(self.data)
            previous_date = previous.date if previous else None
            if status.date != previous_date:
                _LOGGER.info("%s server info changed. %s %s", self.car_name, previous_date, status.date)
                self.last_refresh = time.time()

            self.last_status = status
            await self._async_save()

            activity = classify(status, self.data, self.park_location, self.is_ev)
            if activity.active:
                self.car_last_active = time.monotonic()
            await self._async_handle_info(status, activity)
        finally:
            self.refreshing = False
            self.async_update_listeners()

        self._update_poll_mode()
        return status

    async def _async_handle_info(self, status: VehicleStatus, activity: ActivityResult) -> None:
        self.moving = activity.moving
        self.async_set_updated_data(status)

        if activity.moving:
            self._fire(TRIGGER_HAS_MOVED)

        if activity.parking:
            self.park_location = status
            await self._async_save()
            _LOGGER.info("%s new park location: %s", self.car_name, status.location)
            self._fire(
                TRIGGER_HAS_PARKED,
                address=status.address,
                map=f"https://www.google.com/maps?q={status.latitude},{status.longitude}",
            )

        if self.last_refresh is not None and time.time() - self.last_refresh < STATUS_UPDATE_WINDOW:
            self._fire(TRIGGER_STATUS_UPDATE)

    def _fire(self, trigger: str, **tokens: Any) -> None:
        self.hass.bus.async_fire(
            EVENT_NAME, {"type": trigger, "device_id": self.vin, "name": self.car_name, **tokens}
        )

    @property
    def car_just_active(self) -> bool:
        if self.car_last_active is None:
            return False
        return time.monotonic() - self.car_last_active < CAR_ACTIVE_WINDOW

    def _update_poll_mode(self) -> None:
        """Poll faster while the car is in use, back to normal when the window lapses."""
        just_active = self.car_just_active
        if self.poll_interval_engine_on and just_active:
            if self.state.enter_active_mode():
                self.scheduler.start(self.poll_interval_engine_on, self.poll_interval_forced)
        elif not just_active and self.state.enter_normal_mode():
            self.scheduler.start(self.poll_interval, self.poll_interval_forced)

    # ------------------------------------------------------------------
    # User intents
    # ------------------------------------------------------------------

    def _require_engine_off(self) -> None:
        if self.data is not None and self.data.engine:
            raise HomeAssistantError("Control not possible; engine is on")

    def _require_ev(self) -> None:
        if not self.is_ev:
            raise HomeAssistantError("Control not possible; not an EV")

    def _set_optimistic(self, **changes: Any) -> None:
        if self.data is not None:
            self.async_set_updated_data(dataclasses.replace(self.data, **changes))

    def _target_temperature(self) -> float:
        if self.data is not None and self.data.target_temperature:
            return self.data.target_temperature
        return DEFAULT_TARGET_TEMPERATURE

    async def async_set_climate(self, on: bool, source: str = "app") -> None:
        self._require_engine_off()
        if on:
            _LOGGER.info("%s: A/C on via %s", self.car_name, source)
            self.queue.enqueue(Command(CommandKind.START_CLIMATE, {"temperature": self._target_temperature()}))
        else:
            _LOGGER.info("%s: A/C off via %s", self.car_name, source)
            self.queue.enqueue(Command(CommandKind.STOP_CLIMATE, {}))
            self._set_optimistic(defrost=False)

    async def async_set_defrost(self, on: bool, source: str = "app") -> None:
        self._require_engine_off()
        if on:
            _LOGGER.info("%s: defrost on via %s", self.car_name, source)
            self.queue.enqueue(Command(CommandKind.START_CLIMATE, {
                "defrost": True,
                "heating": True,
                "temperature": self._target_temperature(),
            }))
        else:
            _LOGGER.info("%s: defrost off via %s", self.car_name, source)
            args = {"defrost": False, "heating": False}
            # The car only reports defrost off after a second stop
            self.queue.enqueue(Command(CommandKind.STOP_CLIMATE, args))
            self.queue.enqueue(Command(CommandKind.STOP_CLIMATE, args))
            self._set_optimistic(climate_control=False)

    async def async_set_charging(self, on: bool, source: str = "app") -> None:
        self._require_ev()
        _LOGGER.info("%s: charging %s via %s", self.car_name, "on" if on else "off", source)
        self.queue.enqueue(Command(CommandKind.START_CHARGE if on else CommandKind.STOP_CHARGE))

    async def async_set_lock(self, locked: bool, source: str = "app") -> None:
        _LOGGER.info("%s: %s doors via %s", self.car_name, "locking" if locked else "unlocking", source)
        self.queue.enqueue(Command(CommandKind.LOCK if locked else CommandKind.UNLOCK))

    async def async_set_target_temperature(self, temperature: float, source: str = "app") -> None:
        self._require_engine_off()
        if self.data is None or not self.data.climate_control:
            raise HomeAssistantError("Climate control not on")
        _LOGGER.info("%s: temperature set by %s to %s", self.car_name, source, temperature)
        self.queue.enqueue(Command(
            CommandKind.START_CLIMATE, {"temperature": temperature or DEFAULT_TARGET_TEMPERATURE}
        ))

    async def async_set_charge_targets(
        self, slow: int | None = None, fast: int | None = None, source: str = "app"
    ) -> None:
        """Set AC (slow) and DC (fast) charge limits; a missing value keeps the current one."""
        self._require_ev()
        current = self.data or VehicleStatus()
        slow = int(slow or current.charge_target_slow or DEFAULT_CHARGE_TARGET_SLOW)
        fast = int(fast or current.charge_target_fast or DEFAULT_CHARGE_TARGET_FAST)
        _LOGGER.info("%s: charge target set by %s to slow:%s fast:%s", self.car_name, source, slow, fast)
        self.queue.enqueue(Command(CommandKind.SET_CHARGE_TARGETS, {"slow": slow, "fast": fast}))

    async def async_set_destination(self, destination: str | Mapping, source: str = "app") -> None:
        """Send a destination (free text or a latitude/longitude mapping) to the navigation."""
        if not self.session.supports_navigation:
            raise HomeAssistantError("Sending a destination is not supported for this car")
        _LOGGER.info("%s: destination set by %s to %s", self.car_name, source, destination)
        query = destination
        if isinstance(destination, Mapping):
            if destination.get("latitude") is None or destination.get("longitude") is None:
                raise HomeAssistantError("Destination needs a latitude and a longitude")
            query = f"{destination['latitude']},{destination['longitude']}"
        found = await self.geocoder.search(str(query)) if self.geocoder is not None else None
        if found is None:
            raise HomeAssistantError("Failed to find location")
        args = [{
            "phone": found.phone,
            "waypointID": 0,
            "lang": 1,
            "src": "HOMEASSISTANT",
            "coord": {"lat": found.lat, "lon": found.lon, "type": 0},
            "addr": found.display_name,
            "zip": found.postcode,
            "placeid": found.display_name,
            "name": found.name or found.display_name,
        }]
        self.queue.enqueue(Command(CommandKind.SET_NAVIGATION, args))

    async def async_refresh_status(self, source: str = "app") -> None:
        """Queue a poll that wakes the car. A request from the UI also counts as activity."""
        _LOGGER.info("%s: forcing status refresh via %s", self.car_name, source)
        if source in ("app", "cloud"):
            self.car_last_active = time.monotonic()
        self.queue.enqueue(Command.poll(force_once=True))

    # ------------------------------------------------------------------
    # Entity helper
    # ------------------------------------------------------------------

    def get_device_info(self) -> dict:
        """Return the HA DeviceInfo dict for this car."""
        config = self.session.vehicle_config
        return {
            "identifiers": {(DOMAIN, self.vin)},
            "name": self.car_name,
            "manufacturer": BRANDS.get(self._entry.data.get(CONF_BRAND), "Kia"),
            "model": config.get("model") or self.engine,
            "sw_version": VERSION,
            "serial_number": self.vin,
        }
