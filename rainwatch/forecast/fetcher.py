"""
Rainwatch - Forecast Fetcher

Resolves a location query to coordinates, requests the hourly precipitation
forecast from Open-Meteo, decodes it into a ForecastSeries and partitions it
into the lookahead and next-24-hour windows.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, Tuple

import httpx
import pytz
from pydantic import BaseModel, ValidationError

from rainwatch.core.config import Lookahead
from rainwatch.core.exceptions import LocationNotFound, ProviderError, TimestampParseFailure
from rainwatch.core.http import decode_json, http_get
from rainwatch.forecast import validation
from rainwatch.forecast.models import Coordinate, ForecastPoint, ForecastSeries
from rainwatch.geocoding import Geocoder
from rainwatch.settings import settings

logger = logging.getLogger(__name__)

HOURLY_TIME_FORMAT = "%Y-%m-%dT%H:%M"
HOURLY_VARIABLES = "precipitation_probability,rain"


# =============================================================================
# Provider response schema
# =============================================================================

class OpenMeteoHourly(BaseModel):
    time: List[str]
    precipitation_probability: Optional[List[Optional[float]]] = None
    rain: Optional[List[Optional[float]]] = None


class OpenMeteoResponse(BaseModel):
    timezone: str
    utc_offset_seconds: int
    hourly: OpenMeteoHourly


# =============================================================================
# Decoding helpers
# =============================================================================

def resolve_timezone(name: str, utc_offset_seconds: int):
    """Resolve the response zone, falling back to a fixed UTC offset."""
    try:
        return pytz.timezone(name)
    except pytz.UnknownTimeZoneError:
        logger.warning(f"[FETCH] Unknown timezone '{name}', using fixed offset {utc_offset_seconds}s")
    try:
        return pytz.FixedOffset(utc_offset_seconds // 60)
    except (TypeError, ValueError) as e:
        raise ProviderError(f"unusable timezone in forecast response ({name}, {utc_offset_seconds}s)") from e


def parse_hourly_timestamp(raw: str, tz) -> datetime:
    """Parse a local wall-clock timestamp, attaching ``tz`` as part of the parse."""
    try:
        naive = datetime.strptime(raw, HOURLY_TIME_FORMAT)
    except (TypeError, ValueError) as e:
        raise TimestampParseFailure(raw) from e
    return tz.localize(naive)


def _values_or_zeros(values: Optional[Sequence[Optional[float]]], length: int) -> List[float]:
    if values is None:
        return [0.0] * length
    return [float(v) if v is not None else 0.0 for v in values]


def select_window(
    points: Sequence[ForecastPoint],
    start: datetime,
    hours: int,
    fallback_count: int,
    limit: Optional[int] = None,
) -> Tuple[ForecastPoint, ...]:
    """Points with start <= t <= start + hours.

    When provider and local clocks disagree so much that nothing qualifies,
    the first ``fallback_count`` points are used instead, so stale data can
    still produce a verdict.
    """
    end = start + timedelta(hours=hours)
    selected = [p for p in points if start <= p.timestamp <= end]
    if not selected:
        logger.warning(f"[FETCH] No points inside the {hours}h window, falling back to the first {fallback_count}")
        return tuple(points[:fallback_count])
    return tuple(selected[:limit] if limit else selected)


# =============================================================================
# Fetcher
# =============================================================================

class ForecastFetcher:
    """
    Fetches and decodes hourly precipitation forecasts.

    A coordinate picked during disambiguation is remembered for its exact
    query string, so repeated checks with unchanged input skip geocoding.
    """

    def __init__(
        self,
        geocoder: Geocoder,
        client: Optional[httpx.AsyncClient] = None,
        clock: Optional[Callable[[], datetime]] = None,
        validate: Optional[bool] = None,
    ):
        self.geocoder = geocoder
        self._client = client
        self._clock = clock or (lambda: datetime.now(pytz.utc))
        self._validate = validate
        self._selection: Optional[Tuple[str, Coordinate]] = None
        self.last_request_url: Optional[str] = None

    # -------------------------------------------------------------------------
    # Location resolution
    # -------------------------------------------------------------------------

    def remember_selection(self, query: str, coordinate: Coordinate):
        """Pin ``coordinate`` as the answer for exactly ``query``."""
        self._selection = (query, coordinate)

    def forget_selection(self):
        self._selection = None

    @property
    def selected_coordinate(self) -> Optional[Coordinate]:
        return self._selection[1] if self._selection else None

    async def resolve(self, query: str) -> Coordinate:
        """Resolve a query to a coordinate.

        Raises:
            LocationNotFound: Geocoding yielded nothing
            ProviderError: The geocoding service failed
        """
        if self._selection is not None and self._selection[0] == query:
            logger.debug(f"[FETCH] Reusing selected coordinate for '{query}'")
            return self._selection[1]

        matches = await self.geocoder.geocode_forward(query)
        if not matches:
            raise LocationNotFound(f"no matches for '{query}'")
        return matches[0].coordinate

    # -------------------------------------------------------------------------
    # Forecast retrieval
    # -------------------------------------------------------------------------

    def forecast_link(self, coordinate: Coordinate, lookahead: Lookahead) -> str:
        """Exact provider URL for a coordinate and lookahead."""
        lookahead = Lookahead(lookahead)
        return (
            f"{settings.OPEN_METEO['forecast_url']}"
            f"?latitude={coordinate.latitude:.4f}"
            f"&longitude={coordinate.longitude:.4f}"
            f"&hourly={HOURLY_VARIABLES}"
            f"&forecast_days={lookahead.forecast_days}"
            f"&timezone=auto"
        )

    async def fetch(self, location_query: str, lookahead: Lookahead) -> ForecastSeries:
        """Resolve ``location_query`` and fetch its forecast."""
        coordinate = await self.resolve(location_query)
        return await self.fetch_for_coordinate(coordinate, lookahead)

    async def fetch_for_coordinate(self, coordinate: Coordinate, lookahead: Lookahead) -> ForecastSeries:
        """Fetch and decode the forecast for a coordinate.

        Raises:
            ProviderError: Network failure, non-200 status or undecodable body
        """
        lookahead = Lookahead(lookahead)
        url = self.forecast_link(coordinate, lookahead)
        self.last_request_url = url

        logger.info(f"[FETCH] Requesting {lookahead.description} forecast for {coordinate}")
        response = await http_get(url, client=self._client)
        payload = decode_json(response)

        try:
            decoded = OpenMeteoResponse.model_validate(payload)
        except ValidationError as e:
            logger.error(f"[FETCH] Forecast response failed schema validation: {e.error_count()} error(s)")
            raise ProviderError("forecast response has an unexpected shape") from e

        return self._build_series(decoded, lookahead, response.text)

    def _build_series(self, decoded: OpenMeteoResponse, lookahead: Lookahead, raw_json: str) -> ForecastSeries:
        tz = resolve_timezone(decoded.timezone, decoded.utc_offset_seconds)

        times = decoded.hourly.time
        probabilities = _values_or_zeros(decoded.hourly.precipitation_probability, len(times))
        rainfall = _values_or_zeros(decoded.hourly.rain, len(times))
        count = min(len(times), len(probabilities), len(rainfall))
        if count < len(times):
            logger.warning(f"[FETCH] Hourly arrays differ in length, truncating {len(times)} timestamps to {count}")

        points = []
        dropped = 0
        for raw, probability, rain in zip(times[:count], probabilities, rainfall):
            try:
                timestamp = parse_hourly_timestamp(raw, tz)
            except TimestampParseFailure as e:
                dropped += 1
                logger.debug(f"[FETCH] {e}")
                continue
            points.append(ForecastPoint(
                timestamp=timestamp,
                probability_percent=max(0.0, min(100.0, probability)),
                rainfall_amount_mm=max(0.0, rain),
            ))
        if dropped:
            logger.warning(f"[FETCH] Dropped {dropped} of {count} hourly points with unparseable timestamps")

        now = self._clock()
        series = ForecastSeries(
            all_points=tuple(points),
            timezone=tz,
            lookahead_hours=int(lookahead),
            window_points=select_window(points, now, int(lookahead), fallback_count=int(lookahead)),
            next_24_hour_points=select_window(points, now, 24, fallback_count=24, limit=24),
            raw_response_json=raw_json,
        )

        if validation.is_enabled(self._validate):
            validation.check_response(
                time_strings=times,
                probability_count=len(decoded.hourly.precipitation_probability)
                if decoded.hourly.precipitation_probability is not None else None,
                rain_count=len(decoded.hourly.rain) if decoded.hourly.rain is not None else None,
                parsed_count=len(points),
                utc_offset_seconds=decoded.utc_offset_seconds,
                series=series,
                now=now,
            )

        logger.info(
            f"[FETCH] Decoded {len(points)} hourly points ({series.timezone_name}), "
            f"window={len(series.window_points)}, next24={len(series.next_24_hour_points)}"
        )
        return series
