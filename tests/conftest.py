import math
from typing import Callable, List

import httpx
import pytest
from typer.testing import CliRunner

from gpsinfo.domain.events.api_events import DomainEvent
from gpsinfo.infrastructure.config.settings import clear_test_config

START_MS = 1_000_000


class FakeClock:
    """Manually driven time source.

    Call it for epoch milliseconds, use ``seconds`` for a monotonic clock and
    ``sleep`` as an asyncio.sleep replacement that advances time instead of
    waiting.
    """

    def __init__(self, start_ms: int = START_MS):
        self.now_ms = start_ms
        self.sleeps: List[float] = []

    def __call__(self) -> int:
        return self.now_ms

    def seconds(self) -> float:
        return self.now_ms / 1000

    def advance(self, ms: int) -> None:
        self.now_ms += ms

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now_ms += math.ceil(seconds * 1000)


class EventRecorder:
    """Event sink that keeps every event it receives."""

    def __init__(self):
        self.events: List[DomainEvent] = []

    def __call__(self, event: DomainEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: type) -> List[DomainEvent]:
        return [e for e in self.events if isinstance(e, event_type)]


def make_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by ``handler``."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def events() -> EventRecorder:
    return EventRecorder()


@pytest.fixture(scope="session")
def runner():
    """Provides a Typer CliRunner instance."""
    return CliRunner()


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch):
    """Keeps real API keys and test overrides from leaking between tests."""
    monkeypatch.delenv("HERE_API_KEY", raising=False)
    monkeypatch.delenv("GPSINFO_HERE_API_KEY", raising=False)
    yield
    clear_test_config()
