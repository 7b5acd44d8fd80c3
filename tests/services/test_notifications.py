import asyncio
import pytest
from io import StringIO
from rich.console import Console

from timeattack.services.notifications import ConsoleNotificationSink

@pytest.fixture
def output():
    return StringIO()

@pytest.fixture
def sink(output):
    return ConsoleNotificationSink(Console(file=output, force_terminal=False))

def test_schedule_without_loop_only_announces(sink, output):
    sink.schedule_alert(300, "Rest is over")
    assert not sink.has_pending_alert
    assert "Alert scheduled in 5 min" in output.getvalue()

@pytest.mark.asyncio
async def test_alert_fires_inside_loop(sink, output):
    sink.schedule_alert(0.01, "Rest is over")
    assert sink.has_pending_alert
    await asyncio.sleep(0.05)
    assert not sink.has_pending_alert
    assert output.getvalue().count("Rest is over") == 2

@pytest.mark.asyncio
async def test_cancel_prevents_alert(sink, output):
    sink.schedule_alert(0.01, "Rest is over")
    sink.cancel_alert()
    await asyncio.sleep(0.05)
    assert not sink.has_pending_alert
    assert output.getvalue().count("Rest is over") == 1

@pytest.mark.asyncio
async def test_announce_only_sink_never_arms_timer(output):
    sink = ConsoleNotificationSink(Console(file=output, force_terminal=False), fire_alerts=False)
    sink.schedule_alert(0.01, "Rest is over")
    assert not sink.has_pending_alert
    await asyncio.sleep(0.05)
    assert output.getvalue().count("Rest is over") == 1
