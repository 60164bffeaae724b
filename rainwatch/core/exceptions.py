"""
Rainwatch - Error Taxonomy

Every failure the agent can recover from is a RainwatchError. The agent
converts these into short status strings; none of them is fatal.
"""


class RainwatchError(Exception):
    """Base exception for rainwatch errors."""
    pass


class LocationNotFound(RainwatchError):
    """Raised when geocoding yields no coordinate for a query."""
    pass


class ProviderError(RainwatchError):
    """Raised when the forecast or geocoding provider fails.

    Covers network failures, non-200 responses and payloads that do not
    decode into the expected shape.
    """
    pass


class PermissionDenied(RainwatchError):
    """Notification permission was refused. Recorded as status, never raised out of the agent."""
    pass


class TimestampParseFailure(RainwatchError):
    """A single hourly timestamp could not be parsed. The point is dropped."""

    def __init__(self, raw: str):
        super().__init__(f"Unparseable hourly timestamp: {raw!r}")
        self.raw = raw


class ForecastIntegrityError(RainwatchError, AssertionError):
    """Raised by the debug validation layer when a forecast breaks an invariant."""

    def __init__(self, problems):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))
