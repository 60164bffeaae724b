"""
Rainwatch - Notification Channels

Abstract base class and implementations for delivering rain alerts.
Delivery is best-effort: a channel without permission drops alerts
silently instead of failing.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.panel import Panel

from rainwatch.settings import settings

logger = logging.getLogger(__name__)


class Notifier(ABC):
    """
    Abstract base class for notification channels.

    ``request_permission`` is the gate: until it has granted, ``send``
    is a no-op.
    """

    def __init__(self, name: str, config: Optional[Dict[str, Any]] = None):
        """Initialize channel.

        Args:
            name: Channel name (e.g., "console", "telegram")
            config: Channel-specific configuration
        """
        self.name = name
        self.config = config or {}
        self.enabled = self.config.get("enabled", True)
        self.permission_granted = False
        # Set once request_permission has run in this process
        self.permission_requested = False

    async def request_permission(self) -> bool:
        """Ask for permission to show alerts.

        Returns:
            True if alerts will be delivered
        """
        self.permission_requested = True
        self.permission_granted = self.enabled and self._is_authorized()
        if not self.permission_granted:
            logger.warning(f"[DELIVERY] Permission denied for channel {self.name}")
        return self.permission_granted

    def _is_authorized(self) -> bool:
        return True

    async def send(self, title: str, body: str) -> bool:
        """Send an alert if permitted.

        Returns:
            True if delivered
        """
        if not self.permission_granted:
            logger.debug(f"[DELIVERY] {self.name}: no permission, dropping '{title}'")
            return False
        return await self._deliver(title, body)

    @abstractmethod
    async def _deliver(self, title: str, body: str) -> bool:
        pass


class ConsoleNotifier(Notifier):
    """Prints alerts to the terminal."""

    def __init__(self, config: Optional[Dict[str, Any]] = None, console: Optional[Console] = None):
        super().__init__("console", config)
        self.console = console or Console()

    async def _deliver(self, title: str, body: str) -> bool:
        timestamp = datetime.now(settings.TIMEZONE).strftime("%H:%M:%S")
        self.console.print(Panel(f"{body}\n\n[dim]{timestamp}[/dim]", title=f"[bold]{title}[/bold]", expand=False))
        logger.info(f"[DELIVERY] Sent alert via console: {title}")
        return True


class MultiChannelNotifier(Notifier):
    """Fans alerts out to every enabled channel."""

    def __init__(self, channels: List[Notifier]):
        super().__init__("multi", {"enabled": True})
        self.channels = channels

    async def request_permission(self) -> bool:
        self.permission_requested = True
        granted = False
        for channel in self.channels:
            if not channel.enabled:
                continue
            if await channel.request_permission():
                granted = True
        self.permission_granted = granted
        return granted

    async def _deliver(self, title: str, body: str) -> bool:
        any_success = False
        for channel in self.channels:
            if not channel.enabled:
                continue
            try:
                if await channel.send(title, body):
                    any_success = True
            except Exception as e:
                logger.error(f"[DELIVERY] Failed to send via {channel.name}: {e}")
        return any_success

    def list_channels(self) -> List[str]:
        return [channel.name for channel in self.channels]
