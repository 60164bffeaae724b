"""
Rainwatch - Channel Loader

Builds the notifier from ``settings.DELIVERY_CHANNELS``.
"""

import logging
from typing import Any, Dict, List, Optional

from rainwatch.delivery.channels import ConsoleNotifier, MultiChannelNotifier, Notifier
from rainwatch.settings import settings

logger = logging.getLogger(__name__)


def create_channel(channel_type: str, config: Dict[str, Any]) -> Notifier:
    """Create a notifier channel instance.

    Raises:
        ValueError: If channel type is not supported
    """
    if channel_type == "console":
        return ConsoleNotifier(config)
    if channel_type == "telegram":
        from rainwatch.delivery.telegram import TelegramNotifier
        return TelegramNotifier(config)
    raise ValueError(f"Unknown channel type: {channel_type}")


def build_notifier(channels_config: Optional[Dict[str, Any]] = None) -> MultiChannelNotifier:
    """Create every configured channel and wrap them in one notifier."""
    channels_config = channels_config or settings.DELIVERY_CHANNELS
    channels: List[Notifier] = []
    for entry in channels_config.get("channels", []):
        channel_type = entry.get("type")
        if not entry.get("enabled", True):
            logger.debug(f"[DELIVERY] Channel {channel_type} disabled in settings")
            continue
        try:
            channels.append(create_channel(channel_type, entry))
        except ValueError as e:
            logger.error(f"[DELIVERY] {e}")
    logger.info(f"[DELIVERY] Initialized {len(channels)} notification channel(s)")
    return MultiChannelNotifier(channels)
