"""
Rainwatch CLI

Command-line interface for configuring and running the rain agent.

Usage:
    rainwatch status                 - Show agent configuration and state
    rainwatch set-location "Paris"   - Change the watched location
    rainwatch search "Springfield"   - Pick a location among geocoding matches
    rainwatch here                   - Use the current (IP-based) location
    rainwatch interval 3600          - Poll interval in seconds
    rainwatch lookahead 12           - Lookahead window in hours
    rainwatch notify-dry --on/--off  - Also alert when the check is dry
    rainwatch enable / disable       - Turn the agent on or off
    rainwatch check                  - Run one check now
    rainwatch run                    - Run the agent until interrupted
"""

import asyncio
import logging
import signal
from typing import Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from rainwatch import __version__
from rainwatch.agent import AgentRuntimeState, WeatherAgent
from rainwatch.core.config import Lookahead, PollInterval
from rainwatch.core.logging import get_logger
from rainwatch.core.store import JsonFileSettingsStore
from rainwatch.delivery.loader import build_notifier
from rainwatch.forecast.evaluator import format_day_time
from rainwatch.forecast.fetcher import ForecastFetcher
from rainwatch.geocoding import IpLocationFetcher, OpenMeteoGeocoder
from rainwatch.settings import settings

app = typer.Typer(
    name="rainwatch",
    help="Rainwatch - personal rain alert agent",
    add_completion=False,
)
console = Console()

T = TypeVar("T")


# =============================================================================
# Helper Functions
# =============================================================================

def build_agent() -> WeatherAgent:
    """Wire the agent to the real providers and the on-disk settings store."""
    return WeatherAgent(
        store=JsonFileSettingsStore(settings.SETTINGS_FILE),
        fetcher=ForecastFetcher(OpenMeteoGeocoder()),
        notifier=build_notifier(),
        location_fetcher=IpLocationFetcher(),
    )


def run_with_agent(action: Callable[[WeatherAgent], Awaitable[T]]) -> T:
    """Run ``action`` against a fresh agent on a new event loop."""

    async def _session():
        agent = build_agent()
        try:
            return await action(agent)
        finally:
            await agent.shutdown()

    return asyncio.run(_session())


def print_status(agent: WeatherAgent):
    state = agent.state
    if state.status_message:
        console.print(f"[cyan]Status:[/cyan] {state.status_message}")


def print_verdict(agent: WeatherAgent, show_hours: bool = True):
    state = agent.state
    verdict = state.last_verdict
    if verdict is None:
        print_status(agent)
        return

    color = {"rain-likely": "red", "showers-possible": "yellow", "dry": "green"}[verdict.category.value]
    console.print(f"\n{verdict.icon}  [bold {color}]{verdict.headline_summary}[/bold {color}]")
    if verdict.detail_line:
        console.print(f"   {verdict.detail_line}")

    forecast = state.last_forecast
    if forecast is not None and show_hours and forecast.window_points:
        table = Table(title=f"Next {forecast.lookahead_hours} hours ({forecast.timezone_name})")
        table.add_column("Time", style="cyan")
        table.add_column("Chance", justify="right")
        table.add_column("Rain (mm)", justify="right")
        for point in forecast.window_points:
            local = point.timestamp.astimezone(forecast.timezone)
            table.add_row(
                format_day_time(local),
                f"{round(point.probability_percent)}%",
                f"{point.rainfall_amount_mm:.1f}",
            )
        console.print(table)

    if state.provider_link_url:
        console.print(f"[dim]Source: {state.provider_link_url}[/dim]")


# =============================================================================
# Status Command
# =============================================================================

@app.command()
def status():
    """Show the agent configuration."""

    async def _status(agent: WeatherAgent):
        config = agent.config
        table = Table(title="Rainwatch Agent", style="bold white")
        table.add_column("Setting", style="cyan", width=20)
        table.add_column("Value")
        table.add_row("Location", config.location_query or "[yellow]not set[/yellow]")
        table.add_row("Agent", "[green]enabled[/green]" if config.is_active else "[yellow]disabled[/yellow]")
        table.add_row("Check every", config.poll_interval.description)
        table.add_row("Look ahead", config.lookahead.description)
        table.add_row("Notify when dry", "yes" if config.notify_on_dry_result else "no")
        table.add_row("Settings file", str(settings.SETTINGS_FILE))
        console.print(table)

    run_with_agent(_status)


# =============================================================================
# Configuration Commands
# =============================================================================

@app.command("set-location")
def set_location(query: str = typer.Argument(..., help="City, region or address")):
    """Change the watched location."""

    async def _set(agent: WeatherAgent):
        agent.set_location_query(query)
        console.print(f"[green]Location set to[/green] {query}")

    run_with_agent(_set)


@app.command()
def search(query: str = typer.Argument(..., help="Text to search for")):
    """Search for a location and pick one of the matches."""

    async def _search(agent: WeatherAgent):
        agent.set_location_query(query)
        await agent.search_locations()
        suggestions = agent.state.location_suggestions
        if not suggestions:
            print_status(agent)
            return

        table = Table(title=f"Matches for '{query}'")
        table.add_column("#", justify="right", style="cyan")
        table.add_column("Location")
        table.add_column("Coordinates", style="dim")
        for index, suggestion in enumerate(suggestions, start=1):
            table.add_row(str(index), suggestion.display_name, str(suggestion.coordinate))
        console.print(table)

        choice = typer.prompt("Pick a location", type=int, default=1)
        if not 1 <= choice <= len(suggestions):
            console.print("[red]Invalid choice[/red]")
            raise typer.Exit(code=1)
        agent.select_suggestion(suggestions[choice - 1])
        print_status(agent)

    run_with_agent(_search)


@app.command()
def here():
    """Use the current location."""

    async def _here(agent: WeatherAgent):
        await agent.use_current_location()
        print_status(agent)

    run_with_agent(_here)


@app.command()
def interval(seconds: int = typer.Argument(..., help="1800, 3600, 10800 or 21600")):
    """Set how often the agent checks."""
    try:
        value = PollInterval(seconds)
    except ValueError:
        choices = ", ".join(str(int(i)) for i in PollInterval)
        console.print(f"[red]Invalid interval {seconds}. Choose one of: {choices}[/red]")
        raise typer.Exit(code=1)

    async def _set(agent: WeatherAgent):
        agent.set_poll_interval(value)
        console.print(f"[green]Checking every[/green] {value.description}")

    run_with_agent(_set)


@app.command()
def lookahead(hours: int = typer.Argument(..., help="6, 12, 24 or 48")):
    """Set how far ahead to watch for rain."""
    try:
        value = Lookahead(hours)
    except ValueError:
        choices = ", ".join(str(int(h)) for h in Lookahead)
        console.print(f"[red]Invalid lookahead {hours}. Choose one of: {choices}[/red]")
        raise typer.Exit(code=1)

    async def _set(agent: WeatherAgent):
        agent.set_lookahead(value)
        console.print(f"[green]Looking ahead[/green] {value.description}")

    run_with_agent(_set)


@app.command("notify-dry")
def notify_dry(enabled: bool = typer.Option(True, "--on/--off", help="Alert on dry results too")):
    """Choose whether dry results also raise an alert."""

    async def _set(agent: WeatherAgent):
        agent.set_notify_on_dry_result(enabled)
        console.print(f"[green]Dry-result alerts[/green] {'on' if enabled else 'off'}")

    run_with_agent(_set)


# =============================================================================
# Agent Commands
# =============================================================================

@app.command()
def enable():
    """Enable the agent and run a first check."""

    async def _enable(agent: WeatherAgent):
        await agent.set_active(True)
        if not agent.config.is_active:
            print_status(agent)
            raise typer.Exit(code=1)
        print_verdict(agent)
        console.print("[dim]Use 'rainwatch run' to keep checking in the background.[/dim]")

    run_with_agent(_enable)


@app.command()
def disable():
    """Disable the agent."""

    async def _disable(agent: WeatherAgent):
        await agent.set_active(False)
        print_status(agent)

    run_with_agent(_disable)


@app.command()
def check(hours: bool = typer.Option(True, "--hours/--no-hours", help="Show the hourly table")):
    """Run one check now."""

    async def _check(agent: WeatherAgent):
        await agent.perform_manual_check()
        print_verdict(agent, show_hours=hours)

    run_with_agent(_check)


@app.command()
def run():
    """Run the agent until interrupted."""

    async def _daemon():
        agent = build_agent()
        if not agent.config.is_active:
            console.print("[yellow]Agent is disabled. Run 'rainwatch enable' first.[/yellow]")
            return

        logger = logging.getLogger("rainwatch")
        logger.info(f"Starting Rainwatch agent for '{agent.config.location_query}'")

        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for signum in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(signum, stop.set)

        last_seen: Optional[str] = None

        def _on_change(state: AgentRuntimeState):
            nonlocal last_seen
            if state.status_message and state.status_message != last_seen:
                last_seen = state.status_message
                console.print(f"[cyan]{state.status_message}[/cyan]")

        agent.subscribe(_on_change)
        await agent.start()
        if agent.state.next_scheduled_check_at:
            console.print(f"[dim]Next check at {agent.state.next_scheduled_check_at:%H:%M}[/dim]")

        try:
            await stop.wait()
        finally:
            logger.info("Shutting down Rainwatch agent...")
            await agent.shutdown()

    asyncio.run(_daemon())


@app.command()
def version():
    """Show Rainwatch version."""
    console.print(f"[bold]Rainwatch {__version__}[/bold]")
    console.print("Personal rain alert agent")


# =============================================================================
# Main Entry Point
# =============================================================================

def main():
    """Main entry point for the CLI."""
    get_logger()
    app()


if __name__ == "__main__":
    main()
