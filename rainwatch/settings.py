"""
Rainwatch Configuration Settings

Every tunable lives here as an upper-case module constant, read from the
environment (or a ``.env`` file beside the package) with a sensible default.

Usage:
    from rainwatch.settings import settings
    print(settings.OPEN_METEO["forecast_url"])
"""

import os
import sys
from pathlib import Path

import pytz
from dotenv import load_dotenv

# ==============================================================================
# Base Configuration
# ==============================================================================

# Repository root, one level above the package
BASE_DIR = Path(__file__).resolve().parent.parent

# Optional overrides for local runs
ENV_FILE = BASE_DIR / ".env"
if ENV_FILE.exists():
    load_dotenv(ENV_FILE)


# ==============================================================================
# Core System Settings
# ==============================================================================

# Turns on the forecast integrity checks (rainwatch.forecast.validation)
DEBUG = os.getenv("RAINWATCH_DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("RAINWATCH_LOG_LEVEL", "INFO")


# ==============================================================================
# Paths Configuration
# ==============================================================================

_DEFAULT_HOME = Path.home() / ".rainwatch"

PATHS = {
    "root": Path(os.getenv("RAINWATCH_HOME", _DEFAULT_HOME)),
    "data": Path(os.getenv("RAINWATCH_DATA_PATH", _DEFAULT_HOME / "data")),
    "logs": Path(os.getenv("RAINWATCH_LOGS_PATH", _DEFAULT_HOME / "logs")),
}

# Durable key-value store holding the agent configuration
SETTINGS_FILE = Path(os.getenv("RAINWATCH_SETTINGS_FILE", PATHS["data"] / "agent_settings.json"))


# ==============================================================================
# User Configuration
# ==============================================================================

USER = {
    "timezone": os.getenv("RAINWATCH_TIMEZONE", "UTC"),
}

# Timezone used for agent bookkeeping (last check, next check)
TIMEZONE = pytz.timezone(USER["timezone"])


# ==============================================================================
# External Services - Weather
# ==============================================================================

OPEN_METEO = {
    "forecast_url": os.getenv("OPEN_METEO_FORECAST_URL", "https://api.open-meteo.com/v1/forecast"),
    "geocoding_url": os.getenv(
        "OPEN_METEO_GEOCODING_URL", "https://geocoding-api.open-meteo.com/v1/search"
    ),
    "timeout": float(os.getenv("OPEN_METEO_TIMEOUT", "10.0")),
}

GEOCODING = {
    "result_count": int(os.getenv("GEOCODING_RESULT_COUNT", "5")),
    "language": os.getenv("GEOCODING_LANGUAGE", "en"),
    "reverse_url": os.getenv(
        "GEOCODING_REVERSE_URL", "https://nominatim.openstreetmap.org/reverse"
    ),
    "ip_location_url": os.getenv("IP_LOCATION_URL", "https://ipapi.co/json/"),
    "user_agent": os.getenv("GEOCODING_USER_AGENT", "rainwatch/0.3 (personal weather agent)"),
}


# ==============================================================================
# External Services - Telegram
# ==============================================================================

TELEGRAM_BOT_TOKEN = os.getenv("TELEGRAM_BOT_TOKEN", "")
TELEGRAM_USER_ID = os.getenv("TELEGRAM_USER_ID", "")


# ==============================================================================
# Delivery Channels Configuration
# ==============================================================================

DELIVERY_CHANNELS = {
    "channels": [
        {"type": "console", "enabled": os.getenv("NOTIFY_CONSOLE", "true").lower() == "true"},
        {"type": "telegram", "enabled": os.getenv("NOTIFY_TELEGRAM", "false").lower() == "true"},
    ],
}


class Settings:
    """Snapshot of this module's upper-case constants as attributes."""

    def __init__(self):
        module = sys.modules[__name__]
        names = [name for name in vars(module) if name.isupper()]
        self.__dict__.update({name: getattr(module, name) for name in names})

    def __repr__(self):
        return f"<Settings {len(self.__dict__)} values>"


settings = Settings()
