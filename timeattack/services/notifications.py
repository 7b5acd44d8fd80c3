import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional
from rich.console import Console

logger = logging.getLogger(__name__)

class NotificationSink(ABC):
    """One-shot alerts, used to signal the end of a rest"""

    @abstractmethod
    def schedule_alert(self, after_seconds: float, message: str) -> None:
        ...

    @abstractmethod
    def cancel_alert(self) -> None:
        ...

class ConsoleNotificationSink(NotificationSink):
    """Prints alerts to the terminal.

    With ``fire_alerts`` the alert is armed on the running event loop and
    fires after the delay, provided the loop is still running by then.
    Without it, or without a running loop, only the schedule is announced.
    One-shot CLI commands close their loop right after dispatching, so
    they pass ``fire_alerts=False``.
    """

    def __init__(self, console: Optional[Console] = None, fire_alerts: bool = True):
        self.console = console or Console()
        self.fire_alerts = fire_alerts
        self._pending: Optional[asyncio.TimerHandle] = None

    @property
    def has_pending_alert(self) -> bool:
        return self._pending is not None and not self._pending.cancelled()

    def schedule_alert(self, after_seconds: float, message: str) -> None:
        self.cancel_alert()
        loop = None
        if self.fire_alerts:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        if loop is not None:
            self._pending = loop.call_later(max(after_seconds, 0), self._fire, message)
        minutes = after_seconds / 60
        self.console.print(f"[dim]⏰ Alert scheduled in {minutes:.0f} min: {message}[/dim]")
        logger.info(f"Scheduled alert in {after_seconds:.0f}s: {message}")

    def cancel_alert(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
            logger.info("Cancelled pending alert")

    def _fire(self, message: str) -> None:
        self._pending = None
        self.console.print(f"\n[bold yellow]⏰ {message}[/bold yellow]")
        self.console.bell()
