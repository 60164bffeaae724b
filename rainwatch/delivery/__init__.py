"""
Rainwatch - Delivery Layer

Sends rain alerts to the user's notification channels.
"""

from rainwatch.delivery.channels import ConsoleNotifier, MultiChannelNotifier, Notifier
from rainwatch.delivery.loader import build_notifier, create_channel
from rainwatch.delivery.telegram import TelegramNotifier

__all__ = [
    "Notifier",
    "ConsoleNotifier",
    "MultiChannelNotifier",
    "TelegramNotifier",
    "build_notifier",
    "create_channel",
]
