"""
Reverse geocoding and destination search against OpenStreetMap Nominatim.

No HA imports. Every lookup returns None on any error so the normalizer and the
navigation intent can degrade gracefully.
"""
from __future__ import annotations

import asyncio
import dataclasses
import logging
from typing import Any

import aiohttp

from .const import GEOCODE_TIMEOUT, NOMINATIM_URL, VERSION

_LOGGER = logging.getLogger(__name__)

USER_AGENT = f"homeassistant-kia-hyundai/{VERSION}"


@dataclasses.dataclass(frozen=True)
class GeoLocation:
    display_location: str
    address: str


@dataclasses.dataclass(frozen=True)
class Destination:
    lat: float
    lon: float
    display_name: str
    postcode: str = ""
    phone: str = ""
    name: str = ""


def _short_location(address: dict) -> str:
    """Street and house number plus locality, e.g. "Dorpsstraat 12, Utrecht"."""
    street = " ".join(
        part for part in (address.get("road") or address.get("pedestrian"), address.get("house_number")) if part
    )
    locality = (
        address.get("city") or address.get("town") or address.get("village")
        or address.get("municipality") or address.get("county") or ""
    )
    return ", ".join(part for part in (street, locality) if part)


class NominatimGeocoder:
    """
    Thin async client for the two Nominatim endpoints the integration needs.

    Pass a shared aiohttp session in production; without one a short-lived
    session is opened per request.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        base_url: str = NOMINATIM_URL,
        language: str = "en",
    ) -> None:
        self._session = session
        self._base_url = base_url.rstrip("/")
        self._language = language

    async def _get_json(self, path: str, params: dict) -> Any:
        url = f"{self._base_url}/{path}"
        headers = {"accept": "application/json", "User-Agent": USER_AGENT}
        params = {"format": "json", "accept-language": self._language, **params}
        timeout = aiohttp.ClientTimeout(total=GEOCODE_TIMEOUT)

        async def _fetch(session: aiohttp.ClientSession) -> Any:
            async with session.get(url, headers=headers, params=params, timeout=timeout) as resp:
                if resp.status != 200:
                    _LOGGER.warning("Nominatim %s returned HTTP %s", path, resp.status)
                    return None
                return await resp.json()

        try:
            if self._session is not None:
                return await _fetch(self._session)
            async with aiohttp.ClientSession() as session:
                return await _fetch(session)
        except asyncio.TimeoutError:
            _LOGGER.warning("Timeout calling Nominatim %s", path)
            return None
        except Exception as exc:  # noqa: BLE001
            _LOGGER.error("Unexpected error calling Nominatim %s: %s", path, exc)
            return None

    async def resolve(self, latitude: float, longitude: float) -> GeoLocation | None:
        """Reverse-geocode a coordinate to a short location and a full address."""
        raw = await self._get_json(
            "reverse",
            {"lat": round(latitude, 5), "lon": round(longitude, 5), "zoom": 18, "addressdetails": 1},
        )
        if not raw or "display_name" not in raw:
            _LOGGER.warning("Unexpected reverse geocoding response for (%.5f, %.5f): %s", latitude, longitude, raw)
            return None
        address = raw.get("address") or {}
        return GeoLocation(
            display_location=_short_location(address) or raw["display_name"],
            address=raw["display_name"],
        )

    async def search(self, query: str) -> Destination | None:
        """Best match for free text or a "lat,lon" string."""
        raw = await self._get_json(
            "search",
            {"q": query, "limit": 1, "addressdetails": 1, "extratags": 1, "namedetails": 1},
        )
        if not raw:
            _LOGGER.info("No destination found for %r", query)
            return None
        hit = raw[0]
        try:
            lat, lon = float(hit["lat"]), float(hit["lon"])
        except (KeyError, TypeError, ValueError):
            _LOGGER.warning("Unexpected search response for %r: %s", query, hit)
            return None
        return Destination(
            lat=lat,
            lon=lon,
            display_name=hit.get("display_name", query),
            postcode=(hit.get("address") or {}).get("postcode", ""),
            phone=(hit.get("extratags") or {}).get("phone", ""),
            name=(hit.get("namedetails") or {}).get("name", ""),
        )
