"""
Rainwatch - Geocoding

Turns free-text location queries into coordinates and coordinates back into
short display names. Also hosts the LocationFetcher used for "use my current
location".
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx

from rainwatch.core.exceptions import LocationNotFound, ProviderError
from rainwatch.core.http import decode_json, http_get
from rainwatch.forecast.models import Coordinate
from rainwatch.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocationSuggestion:
    """One geocoding match offered for disambiguation."""
    coordinate: Coordinate
    title: str
    subtitle: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.subtitle:
            if self.title in self.subtitle:
                return self.subtitle
            return f"{self.title}, {self.subtitle}"
        return self.title


def _subtitle(region: Optional[str], country: Optional[str]) -> Optional[str]:
    if region and country:
        return f"{region}, {country}"
    return region or country


class Geocoder(ABC):
    """Forward and reverse geocoding."""

    @abstractmethod
    async def geocode_forward(self, query: str) -> List[LocationSuggestion]:
        """Resolve a query to matches, best first.

        Raises:
            LocationNotFound: Nothing matched
            ProviderError: The lookup itself failed
        """
        pass

    @abstractmethod
    async def geocode_reverse(self, coordinate: Coordinate) -> Optional[str]:
        """Best-effort display name for a coordinate (None when unknown)."""
        pass


class OpenMeteoGeocoder(Geocoder):
    """
    Open-Meteo geocoding for forward lookups, Nominatim for reverse ones.

    Neither service needs an API key.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, count: Optional[int] = None, language: Optional[str] = None):
        self._client = client
        self.count = count or settings.GEOCODING["result_count"]
        self.language = language or settings.GEOCODING["language"]

    async def geocode_forward(self, query: str) -> List[LocationSuggestion]:
        query = query.strip()
        if not query:
            raise LocationNotFound("empty location query")

        response = await http_get(
            settings.OPEN_METEO["geocoding_url"],
            params={"name": query, "count": self.count, "language": self.language, "format": "json"},
            client=self._client,
        )
        payload = decode_json(response)
        if not isinstance(payload, dict):
            raise ProviderError("geocoding response has an unexpected shape")

        suggestions = []
        for item in payload.get("results") or []:
            suggestion = self._to_suggestion(item)
            if suggestion is not None:
                suggestions.append(suggestion)

        if not suggestions:
            logger.info(f"[GEOCODE] No matches for '{query}'")
            raise LocationNotFound(f"no matches for '{query}'")

        logger.debug(f"[GEOCODE] '{query}' -> {len(suggestions)} match(es)")
        return suggestions

    @staticmethod
    def _to_suggestion(item: Dict[str, Any]) -> Optional[LocationSuggestion]:
        try:
            coordinate = Coordinate(float(item["latitude"]), float(item["longitude"]))
        except (KeyError, TypeError, ValueError):
            return None
        title = item.get("name")
        if not title:
            return None
        return LocationSuggestion(
            coordinate=coordinate,
            title=title,
            subtitle=_subtitle(item.get("admin1"), item.get("country")),
        )

    async def geocode_reverse(self, coordinate: Coordinate) -> Optional[str]:
        try:
            response = await http_get(
                settings.GEOCODING["reverse_url"],
                params={
                    "lat": f"{coordinate.latitude:.4f}",
                    "lon": f"{coordinate.longitude:.4f}",
                    "format": "jsonv2",
                },
                headers={"User-Agent": settings.GEOCODING["user_agent"]},
                client=self._client,
            )
            payload = decode_json(response)
        except ProviderError as e:
            logger.warning(f"[GEOCODE] Reverse lookup for {coordinate} failed: {e}")
            return None
        if not isinstance(payload, dict):
            return None
        return compact_address(payload.get("address") or {})


def compact_address(address: Dict[str, Any]) -> Optional[str]:
    """'Locality, Region', or just the country when neither is known."""
    components = []
    locality = address.get("city") or address.get("town") or address.get("village") or address.get("hamlet")
    if locality:
        components.append(locality)
    if address.get("state"):
        components.append(address["state"])
    if not components and address.get("country"):
        components.append(address["country"])
    return ", ".join(components) if components else None


class LocationFetcher(ABC):
    """Source of the device's current position."""

    @abstractmethod
    async def current_location(self) -> Coordinate:
        """Raises LocationNotFound when the position cannot be determined."""
        pass


class IpLocationFetcher(LocationFetcher):
    """Approximates the current position from the public IP address."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client

    async def current_location(self) -> Coordinate:
        response = await http_get(
            settings.GEOCODING["ip_location_url"],
            headers={"User-Agent": settings.GEOCODING["user_agent"]},
            client=self._client,
        )
        payload = decode_json(response)
        try:
            return Coordinate(float(payload["latitude"]), float(payload["longitude"]))
        except (KeyError, TypeError, ValueError) as e:
            raise LocationNotFound("position lookup returned no coordinates") from e
