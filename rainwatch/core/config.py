"""
Rainwatch - Agent Configuration

The persisted part of the agent: where to watch, how often to poll, how far
ahead to look and whether to report dry results. Loaded once from a
SettingsStore at start and written back in full on every mutation.
"""

import logging
import math
from enum import IntEnum
from typing import Any, Type, TypeVar

from pydantic import BaseModel, field_validator

from rainwatch.core.store import SettingsStore

logger = logging.getLogger(__name__)


class PollInterval(IntEnum):
    """How often the agent checks, in seconds."""
    EVERY_30_MINUTES = 1800
    EVERY_HOUR = 3600
    EVERY_3_HOURS = 10800
    EVERY_6_HOURS = 21600

    @property
    def description(self) -> str:
        return {
            PollInterval.EVERY_30_MINUTES: "30 minutes",
            PollInterval.EVERY_HOUR: "1 hour",
            PollInterval.EVERY_3_HOURS: "3 hours",
            PollInterval.EVERY_6_HOURS: "6 hours",
        }[self]


class Lookahead(IntEnum):
    """How far ahead the agent watches for rain, in hours."""
    SIX_HOURS = 6
    TWELVE_HOURS = 12
    TWENTY_FOUR_HOURS = 24
    FORTY_EIGHT_HOURS = 48

    @property
    def description(self) -> str:
        return f"{self.value} hours"

    @property
    def forecast_days(self) -> int:
        """Forecast days needed to cover the window (at least one)."""
        return max(1, math.ceil(self.value / 24))


class SettingsKey:
    """Keys under which the configuration is persisted."""
    LOCATION_QUERY = "locationQuery"
    POLL_INTERVAL = "pollIntervalSeconds"
    LOOKAHEAD = "lookaheadHours"
    NOTIFY_ON_DRY = "notifyOnDryResult"
    IS_ACTIVE = "isActive"


DEFAULT_POLL_INTERVAL = PollInterval.EVERY_HOUR
DEFAULT_LOOKAHEAD = Lookahead.TWELVE_HOURS

E = TypeVar("E", bound=IntEnum)


def _coerce_enum(enum_cls: Type[E], value: Any, default: E) -> E:
    """Map a stored value onto an enum member, falling back to the default."""
    try:
        return enum_cls(int(value))
    except (TypeError, ValueError):
        if value is not None:
            logger.warning(f"Ignoring invalid stored {enum_cls.__name__} value {value!r}, using {default.value}")
        return default


class AgentConfig(BaseModel):
    """Persisted agent configuration."""
    location_query: str = ""
    poll_interval: PollInterval = DEFAULT_POLL_INTERVAL
    lookahead: Lookahead = DEFAULT_LOOKAHEAD
    notify_on_dry_result: bool = False
    is_active: bool = False

    model_config = {"validate_assignment": True}

    @field_validator("location_query", mode="before")
    @classmethod
    def _none_is_empty(cls, value):
        return "" if value is None else value

    @property
    def has_location(self) -> bool:
        return bool(self.location_query.strip())

    @classmethod
    def load(cls, store: SettingsStore) -> "AgentConfig":
        """Load configuration, tolerating missing or invalid stored values."""
        config = cls(
            location_query=str(store.get(SettingsKey.LOCATION_QUERY, "") or ""),
            poll_interval=_coerce_enum(
                PollInterval, store.get(SettingsKey.POLL_INTERVAL), DEFAULT_POLL_INTERVAL
            ),
            lookahead=_coerce_enum(Lookahead, store.get(SettingsKey.LOOKAHEAD), DEFAULT_LOOKAHEAD),
            notify_on_dry_result=bool(store.get(SettingsKey.NOTIFY_ON_DRY, False)),
            is_active=bool(store.get(SettingsKey.IS_ACTIVE, False)),
        )
        logger.debug(f"Loaded agent config: {config}")
        return config

    def save(self, store: SettingsStore) -> None:
        """Write every persisted key."""
        store.set(SettingsKey.LOCATION_QUERY, self.location_query)
        store.set(SettingsKey.POLL_INTERVAL, int(self.poll_interval))
        store.set(SettingsKey.LOOKAHEAD, int(self.lookahead))
        store.set(SettingsKey.NOTIFY_ON_DRY, self.notify_on_dry_result)
        store.set(SettingsKey.IS_ACTIVE, self.is_active)
