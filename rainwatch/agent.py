"""
Rainwatch - Weather Agent

The scheduling agent owns the active/inactive state machine, the periodic
timer, in-flight check de-duplication and dispatch of alerts.

States:
    inactive -> active-idle      enable (needs a location query)
    active-idle -> active-checking   manual check, timer fire, activation
    active-checking -> active-idle   check finished (timer re-armed from now)
    any -> inactive              disable (timer cancelled)

All state lives on one asyncio loop and is only mutated between await
points, so no locks are needed.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Set, Tuple

from rainwatch.core.config import AgentConfig, Lookahead, PollInterval
from rainwatch.core.exceptions import LocationNotFound, PermissionDenied, ProviderError, RainwatchError
from rainwatch.core.store import SettingsStore
from rainwatch.delivery.channels import Notifier
from rainwatch.forecast.evaluator import evaluate, format_day_time, format_short_time
from rainwatch.forecast.fetcher import ForecastFetcher
from rainwatch.forecast.models import Coordinate, ForecastSeries, Verdict
from rainwatch.geocoding import Geocoder, LocationFetcher, LocationSuggestion
from rainwatch.settings import settings
from rainwatch.timer import CheckTimer

logger = logging.getLogger(__name__)


class AgentMode(Enum):
    INACTIVE = "inactive"
    ACTIVE_IDLE = "active-idle"
    ACTIVE_CHECKING = "active-checking"


class CheckReason(Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


@dataclass
class AgentRuntimeState:
    """In-memory agent state. Overwritten by every check, never persisted."""
    is_check_in_flight: bool = False
    next_scheduled_check_at: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None
    last_verdict: Optional[Verdict] = None
    last_forecast: Optional[ForecastSeries] = None
    last_resolved_coordinate: Optional[Coordinate] = None
    status_message: Optional[str] = None
    provider_link_url: Optional[str] = None
    location_suggestions: List[LocationSuggestion] = field(default_factory=list)
    is_searching_locations: bool = False
    is_resolving_location: bool = False


StateListener = Callable[[AgentRuntimeState], None]


class WeatherAgent:
    """
    Personal rain-watch agent.

    Collaborators are injected so the agent runs without a real network,
    timer or settings file.
    """

    def __init__(
        self,
        store: SettingsStore,
        fetcher: ForecastFetcher,
        notifier: Notifier,
        timer: Optional[CheckTimer] = None,
        location_fetcher: Optional[LocationFetcher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.fetcher = fetcher
        self.notifier = notifier
        self.timer = timer or CheckTimer()
        self.location_fetcher = location_fetcher
        self._clock = clock or (lambda: datetime.now(settings.TIMEZONE))

        self.config = AgentConfig.load(store)
        self.state = AgentRuntimeState()

        self._listeners: List[StateListener] = []
        self._pending_notifications: Set[asyncio.Task] = set()

        logger.info(
            f"[AGENT] Loaded config: location='{self.config.location_query}', "
            f"every {self.config.poll_interval.description}, lookahead {self.config.lookahead.description}, "
            f"active={self.config.is_active}"
        )

    @property
    def geocoder(self) -> Geocoder:
        return self.fetcher.geocoder

    @property
    def mode(self) -> AgentMode:
        if not self.config.is_active:
            return AgentMode.INACTIVE
        if self.state.is_check_in_flight:
            return AgentMode.ACTIVE_CHECKING
        return AgentMode.ACTIVE_IDLE

    # =========================================================================
    # Observation
    # =========================================================================

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register a listener called after every state transition.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def _publish(self):
        for listener in list(self._listeners):
            try:
                listener(self.state)
            except Exception as e:
                logger.error(f"[AGENT] State listener failed: {e}", exc_info=True)

    def _set_status(self, message: str):
        self.state.status_message = message
        logger.info(f"[AGENT] {message}")
        self._publish()

    def _save(self):
        self.config.save(self.store)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self):
        """Resume a previously enabled agent: arm the timer, no immediate check."""
        if not self.config.is_active:
            return
        # Channel authorisation is held in memory only
        await self.notifier.request_permission()
        self._schedule_timer()
        self._set_status(f"The agent will check every {self.config.poll_interval.description}.")

    async def shutdown(self):
        """Cancel the timer and wait for in-flight alerts. Persisted state is left alone."""
        self.timer.cancel()
        self.timer.shutdown()
        await self.wait_for_notifications()

    async def set_active(self, enabled: bool):
        """Enable or disable the agent."""
        if enabled:
            await self._activate()
        else:
            self._deactivate()

    async def toggle(self):
        await self.set_active(not self.config.is_active)

    async def _activate(self):
        if self.config.is_active:
            return
        if not self.config.has_location:
            # Never flips to active, so no timer is armed without a target
            self._set_status("Enter a location before enabling the agent.")
            return

        self.config.is_active = True
        self._save()

        cadence = f"The agent will check every {self.config.poll_interval.description}."
        try:
            await self._request_permission()
            self._set_status(cadence)
        except PermissionDenied as e:
            # Activation proceeds, alerts are dropped by the notifier
            self._set_status(f"{e} {cadence}")

        self._schedule_timer()
        await self._run_check(CheckReason.SCHEDULED)

    async def _request_permission(self):
        if not await self.notifier.request_permission():
            raise PermissionDenied("Notification permission denied. Alerts will not be shown.")

    def _deactivate(self):
        self.timer.cancel()
        self.state.next_scheduled_check_at = None
        if self.config.is_active:
            self.config.is_active = False
            self._save()
        self._set_status("Agent disabled.")

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_location_query(self, query: str):
        """Change the watched location, invalidating everything derived from the old one."""
        self._update_query(query, keep_selection=False)

    def _update_query(self, query: str, keep_selection: bool):
        if query != self.config.location_query:
            self.config.location_query = query
            if not keep_selection:
                self.fetcher.forget_selection()
            self.state.location_suggestions = []
            self.state.last_resolved_coordinate = None
            self.state.provider_link_url = None
            self.state.last_forecast = None
            self.state.last_verdict = None
        self._save()
        self._publish()

    def set_poll_interval(self, interval):
        """Change the poll interval. An active timer restarts from now."""
        interval = PollInterval(interval)
        if interval == self.config.poll_interval:
            return
        self.config.poll_interval = interval
        self._save()
        if self.config.is_active:
            self._schedule_timer()
        self._publish()

    def set_lookahead(self, lookahead):
        lookahead = Lookahead(lookahead)
        if lookahead == self.config.lookahead:
            return
        self.config.lookahead = lookahead
        self._save()
        if self.state.last_resolved_coordinate is not None:
            self.state.provider_link_url = self.fetcher.forecast_link(self.state.last_resolved_coordinate, lookahead)
        self._publish()

    def set_notify_on_dry_result(self, enabled: bool):
        self.config.notify_on_dry_result = bool(enabled)
        self._save()
        self._publish()

    # =========================================================================
    # Location disambiguation
    # =========================================================================

    async def search_locations(self):
        """Look up matches for the current query and offer them as suggestions."""
        query = self.config.location_query.strip()
        if not query:
            self.state.location_suggestions = []
            self._set_status("Enter a location to search for matches.")
            return

        self.state.is_searching_locations = True
        self.state.location_suggestions = []
        self._publish()
        try:
            suggestions = await self.geocoder.geocode_forward(query)
            self.state.location_suggestions = list(suggestions)
            if suggestions:
                self._set_status("Select a location below.")
            else:
                self._set_status("No matching locations found.")
        except LocationNotFound:
            self._set_status("No matching locations found.")
        except ProviderError as e:
            self._set_status(f"Location lookup failed: {e}")
        finally:
            self.state.is_searching_locations = False
            self._publish()

    def select_suggestion(self, suggestion: LocationSuggestion):
        """Adopt a suggestion's name as the query and pin its coordinate."""
        self._apply_selection(suggestion.display_name, suggestion.coordinate)
        self._set_status(f"Using {suggestion.display_name}")

    def _apply_selection(self, name: str, coordinate: Coordinate):
        self.state.location_suggestions = []
        self._update_query(name, keep_selection=True)
        self.fetcher.remember_selection(name, coordinate)

    async def use_current_location(self):
        """Resolve the device position and use it as the watched location."""
        if self.location_fetcher is None:
            self._set_status("Current location is not available on this device.")
            return

        self.state.is_resolving_location = True
        self._publish()
        try:
            coordinate = await self.location_fetcher.current_location()
            name = await self.geocoder.geocode_reverse(coordinate) or str(coordinate)
            self._apply_selection(name, coordinate)
            self._set_status(f"Using {name}")
        except LocationNotFound:
            self._set_status("Unable to determine your current location.")
        except ProviderError as e:
            self._set_status(f"Could not resolve current location: {e}")
        finally:
            self.state.is_resolving_location = False
            self._publish()

    # =========================================================================
    # Checks
    # =========================================================================

    async def perform_manual_check(self):
        await self._run_check(CheckReason.MANUAL)

    async def perform_scheduled_check(self):
        await self._run_check(CheckReason.SCHEDULED)

    async def _run_check(self, reason: CheckReason):
        if self.state.is_check_in_flight:
            logger.debug(f"[AGENT] {reason.value} check ignored, one is already running")
            return

        query = self.config.location_query
        if not query.strip():
            self._set_status("Please enter a location first.")
            return

        self.state.is_check_in_flight = True
        self.state.provider_link_url = None
        self._set_status("Checking now…" if reason is CheckReason.MANUAL else "Scheduled check running…")

        try:
            coordinate = await self.fetcher.resolve(query)
            series = await self.fetcher.fetch_for_coordinate(coordinate, self.config.lookahead)
            if query != self.config.location_query:
                logger.info(f"[AGENT] Location changed during check, discarding forecast for '{query}'")
                self.state.status_message = "Location changed during the check; result discarded."
            else:
                self.state.last_resolved_coordinate = coordinate
                self._handle_forecast(series)
        except LocationNotFound:
            self.state.status_message = "Could not resolve that location. Please refine your search."
        except RainwatchError as e:
            logger.error(f"[AGENT] Check failed: {e}")
            self.state.status_message = f"Weather check failed: {e}"
        finally:
            self.state.is_check_in_flight = False
            self.state.last_checked_at = self._clock()
            self._schedule_timer()
            self._publish()

    def _handle_forecast(self, series: ForecastSeries):
        verdict = evaluate(series, now=self._clock())
        self.state.last_verdict = verdict
        self.state.last_forecast = series
        self.state.status_message = verdict.headline_summary
        self.state.provider_link_url = self.fetcher.last_request_url or self.fetcher.forecast_link(
            self.state.last_resolved_coordinate, self.config.lookahead
        )
        logger.info(f"[AGENT] {verdict.category.value}: {verdict.headline_summary}")
        self._dispatch_notification(verdict, series)

    def _schedule_timer(self):
        self.timer.cancel()
        if not self.config.is_active:
            return
        self.state.next_scheduled_check_at = self.timer.arm(
            int(self.config.poll_interval), self.perform_scheduled_check
        )

    # =========================================================================
    # Notification dispatch
    # =========================================================================

    def _dispatch_notification(self, verdict: Verdict, series: ForecastSeries):
        if verdict.is_rain_likely:
            title, body = self._rain_alert(verdict, series)
        elif self.config.notify_on_dry_result:
            title, body = "No rain detected", f"The latest check for {self.config.location_query} looks dry."
        else:
            return

        # Fire-and-forget; the agent never waits for display
        task = asyncio.get_running_loop().create_task(self._send_alert(title, body))
        self._pending_notifications.add(task)
        task.add_done_callback(self._notification_done)

    def _rain_alert(self, verdict: Verdict, series: ForecastSeries) -> Tuple[str, str]:
        moment = verdict.reference_time.astimezone(series.timezone)
        if moment.date() == self._clock().astimezone(series.timezone).date():
            return "Rain likely today", f"Rain is expected around {format_short_time(moment)}."
        return "Rain likely", f"Rain is expected around {format_day_time(moment)}."

    async def _send_alert(self, title: str, body: str) -> bool:
        if not self.notifier.permission_requested:
            # A refusal leaves send() as a no-op
            await self.notifier.request_permission()
        return await self.notifier.send(title, body)

    def _notification_done(self, task: asyncio.Task):
        self._pending_notifications.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(f"[DELIVERY] Alert delivery failed: {task.exception()}")

    async def wait_for_notifications(self):
        """Wait until every dispatched alert has been handed to its channel."""
        while self._pending_notifications:
            await asyncio.gather(*list(self._pending_notifications), return_exceptions=True)
