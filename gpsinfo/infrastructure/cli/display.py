import logging
from typing import Any, Optional, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text
from rich.box import ROUNDED, SIMPLE

from gpsinfo.domain.interfaces.user_interface import UserInterface
from gpsinfo.domain.models.common import UsageStats
from gpsinfo.domain.models.speed_limit import SpeedLimitResult

logger = logging.getLogger(__name__)

ACCURACY_STYLES = {"high": "green", "medium": "yellow", "low": "dark_orange"}
SOURCE_LABELS = {"primary": "HERE", "fallback": "OSM", "default": "Default"}

def format_limit(result: Optional[SpeedLimitResult]) -> str:
    if result is None or result.speed_limit is None:
        return "--"
    return f"{result.speed_limit} {result.unit}"

def format_speed(speed_kmh: Optional[float]) -> str:
    return "--" if speed_kmh is None else f"{speed_kmh:.0f} km/h"

class ConsoleDisplay(UserInterface):
    """Concrete implementation of UserInterface using the rich library for console output."""

    def __init__(self, console: Optional[Console] = None):
        self._console = console or Console()

    @property
    def console(self) -> Console:
        """Get the Rich console instance for direct operations."""
        return self._console

    def display_speed_limit(
        self,
        result: Optional[SpeedLimitResult],
        speed_kmh: Optional[float] = None,
        is_speeding: bool = False,
    ) -> None:
        """Renders one speed limit as a panel, red when speeding."""
        if result is None:
            self.display_warning("No speed limit available for this location.")
            return

        body = Text()
        body.append(f"{format_limit(result)}\n", style="bold")
        if result.road and result.road != "Unknown Road":
            body.append(f"{result.road}\n")
        body.append("accuracy: ")
        body.append(result.accuracy.upper(), style=ACCURACY_STYLES.get(result.accuracy, "white"))
        if result.source:
            body.append(f"  source: {SOURCE_LABELS.get(result.source, result.source)}")
        if speed_kmh is not None:
            body.append(f"\ncurrent speed: {format_speed(speed_kmh)}")

        border = "red" if is_speeding else "blue"
        title = "[bold red]SPEEDING[/bold red]" if is_speeding else "Speed limit"
        self.console.print(Panel(body, title=title, title_align="left", border_style=border, box=ROUNDED))

    def display_statuses(self, statuses: Sequence[Any]) -> None:
        """Renders monitor statuses (SpeedStatus) as a table."""
        table = Table(box=SIMPLE, header_style="bold")
        table.add_column("#", justify="right")
        table.add_column("Position")
        table.add_column("Speed", justify="right")
        table.add_column("Limit", justify="right")
        table.add_column("Road")
        table.add_column("Accuracy")
        table.add_column("Source")
        table.add_column("Alert")

        for index, status in enumerate(statuses, start=1):
            result = status.speed_limit
            accuracy = result.accuracy if result else None
            table.add_row(
                str(index),
                f"{status.location.latitude:.5f}, {status.location.longitude:.5f}",
                format_speed(status.speed_kmh),
                format_limit(result),
                (result.road or "") if result else "",
                Text(accuracy.upper(), style=ACCURACY_STYLES[accuracy]) if accuracy else Text("-"),
                SOURCE_LABELS.get(result.source, "") if result and result.source else "",
                Text("SPEEDING", style="bold red") if status.is_speeding else Text(""),
            )
        self.console.print(table)

    def display_usage(self, stats: Optional[UsageStats]) -> None:
        if stats is None:
            self.display_info("HERE API disabled; no quota usage to report.")
            return
        self.console.print(
            f"HERE usage: {stats['request_count']} requests, "
            f"{stats['remaining_requests']} remaining, resets {stats['reset_time']:%Y-%m-%d %H:%M} UTC"
        )

    def display_error(self, error_message: str, **kwargs: Any) -> None:
        logger.debug(f"display_error: {error_message}")
        self.console.print(f"[bold red]Error:[/bold red] {error_message}")

    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        self.console.print(f"[yellow]Warning:[/yellow] {warning_message}")

    def display_info(self, info_message: str, **kwargs: Any) -> None:
        self.console.print(f"[cyan]{info_message}[/cyan]")
