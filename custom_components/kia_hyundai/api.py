"""
VehicleSession adapter over hyundai_kia_connect_api.

The library is synchronous; every call is pushed to the HA executor. Library
exceptions are translated into VehicleApiError with the upstream result code so
the command queue can tell duplicate requests and quota exhaustion apart.
"""
from __future__ import annotations

import logging
from typing import Any, Callable

from homeassistant.core import HomeAssistant

from hyundai_kia_connect_api import ClimateRequestOptions, VehicleManager
from hyundai_kia_connect_api.exceptions import (
    AuthenticationError,
    DuplicateRequestError,
    HyundaiKiaException,
    RateLimitingError,
)

from .const import DEFAULT_LANGUAGE, QUOTA_EXCEEDED_CODE
from .vehicle import VehicleApiError

_LOGGER = logging.getLogger(__name__)

DUPLICATE_REQUEST_CODE = "4004"
AUTH_ERROR_CODE = "auth"
UNSUPPORTED_CODE = "unsupported"

DEFAULT_TEMPERATURE = 22
CLIMATE_DURATION = 10  # minutes


def _translate(exc: Exception) -> VehicleApiError:
    if isinstance(exc, VehicleApiError):
        return exc
    if isinstance(exc, DuplicateRequestError):
        return VehicleApiError(f"Duplicate request: {exc}", code=DUPLICATE_REQUEST_CODE)
    if isinstance(exc, RateLimitingError):
        return VehicleApiError(f"Exceeds number of requests: {exc}", code=QUOTA_EXCEEDED_CODE)
    if isinstance(exc, AuthenticationError):
        return VehicleApiError(f"Authentication failed: {exc}", code=AUTH_ERROR_CODE)
    if isinstance(exc, HyundaiKiaException):
        return VehicleApiError(str(exc))
    return VehicleApiError(f"Unexpected vehicle API error: {exc}")


def climate_options(args: dict | None) -> ClimateRequestOptions:
    """Map start-climate args (temperature, defrost, heating) onto the library request."""
    args = args or {}
    return ClimateRequestOptions(
        climate=True,
        set_temp=args.get("temperature") or DEFAULT_TEMPERATURE,
        duration=CLIMATE_DURATION,
        defrost=bool(args.get("defrost", False)),
        heating=1 if args.get("heating") else 0,
    )


class ConnectVehicleSession:
    """One vehicle of a Kia/Hyundai/Genesis account, selected by VIN."""

    def __init__(
        self,
        hass: HomeAssistant,
        username: str,
        password: str,
        pin: str,
        region: int,
        brand: int,
        vin: str,
        language: str = DEFAULT_LANGUAGE,
    ) -> None:
        self._hass = hass
        self._vin = vin
        self._manager = VehicleManager(
            region=region,
            brand=brand,
            username=username,
            password=password,
            pin=pin or "",
            language=language,
        )
        self._vehicle = None

    async def _call(self, func: Callable, *args) -> Any:
        try:
            return await self._hass.async_add_executor_job(func, *args)
        except Exception as exc:  # noqa: BLE001
            raise _translate(exc) from exc

    def _require_vehicle(self):
        if self._vehicle is None:
            raise VehicleApiError(f"Vehicle {self._vin} not available; not logged in", code=AUTH_ERROR_CODE)
        return self._vehicle

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    @property
    def is_logged_in(self) -> bool:
        return self._vehicle is not None and self._manager.token is not None

    @property
    def ccs2(self) -> bool:
        return bool(getattr(self._vehicle, "ccu_ccs2_protocol_support", 0))

    @property
    def supports_full_status(self) -> bool:
        return True

    @property
    def supports_navigation(self) -> bool:
        # Not exposed by hyundai_kia_connect_api
        return False

    @property
    def vehicle_config(self) -> dict:
        if self._vehicle is None:
            return {}
        return {
            "vin": self._vehicle.VIN,
            "name": self._vehicle.name,
            "model": self._vehicle.model,
            "ccuCCS2ProtocolSupport": self.ccs2,
        }

    async def login(self) -> None:
        await self._call(self._manager.check_and_refresh_token)
        if not self._manager.vehicles:
            await self._call(self._manager.initialize_vehicles)
        vehicle = next(
            (v for v in self._manager.vehicles.values() if v.VIN == self._vin), None
        )
        if vehicle is None:
            self._vehicle = None
            raise VehicleApiError(f"Vehicle {self._vin} not found in account", code=AUTH_ERROR_CODE)
        if self._vehicle is None:
            _LOGGER.info("Connected to %s (%s)", vehicle.name, vehicle.model)
        self._vehicle = vehicle

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    async def status(self, refresh: bool = False, parsed: bool = False) -> dict:
        vehicle = self._require_vehicle()
        await self._call(self._manager.check_and_refresh_token)
        if refresh:
            await self._call(self._manager.force_refresh_vehicle_state, vehicle.id)
        await self._call(self._manager.update_vehicle_with_cached_state, vehicle.id)
        return dict(vehicle.data or {})

    async def full_status(self, refresh: bool = False, parsed: bool = False) -> dict:
        return await self.status(refresh=refresh, parsed=parsed)

    async def location(self) -> dict:
        vehicle = self._require_vehicle()
        return {"latitude": vehicle.location_latitude, "longitude": vehicle.location_longitude}

    async def odometer(self) -> dict:
        vehicle = self._require_vehicle()
        return {"value": vehicle.odometer}

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start_climate(self, args: dict) -> None:
        vehicle = self._require_vehicle()
        await self._call(self._manager.start_climate, vehicle.id, climate_options(args))

    async def stop_climate(self, args: dict) -> None:
        vehicle = self._require_vehicle()
        await self._call(self._manager.stop_climate, vehicle.id)

    async def lock(self) -> None:
        vehicle = self._require_vehicle()
        await self._call(self._manager.lock, vehicle.id)

    async def unlock(self) -> None:
        vehicle = self._require_vehicle()
        await self._call(self._manager.unlock, vehicle.id)

    async def start_charge(self) -> None:
        vehicle = self._require_vehicle()
        await self._call(self._manager.start_charge, vehicle.id)

    async def stop_charge(self) -> None:
        vehicle = self._require_vehicle()
        await self._call(self._manager.stop_charge, vehicle.id)

    async def set_charge_targets(self, args: dict) -> None:
        vehicle = self._require_vehicle()
        await self._call(
            self._manager.set_charge_limits, vehicle.id, int(args["slow"]), int(args["fast"])
        )

    async def set_navigation(self, args: list[dict]) -> None:
        raise VehicleApiError("Sending a destination is not supported for this account", code=UNSUPPORTED_CODE)
