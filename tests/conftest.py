"""Shared test fixtures for dashboard-sync tests."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx
import pytest

from dashboard_sync.api_client import BotApiClient
from dashboard_sync.config import (
    ApiConfig,
    ConnectionConfig,
    PollingConfig,
    SessionConfig,
)
from dashboard_sync.models import LogEntry, Position

BASE_URL = "http://bot.test"
WS_URL = "ws://bot.test/ws"
T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _clear_endpoint_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("BOT_API_URL", raising=False)
    monkeypatch.delenv("BOT_WS_URL", raising=False)


# --- Fake WebSocket ---


class FakeWebSocket:
    """Yields the given frames, then ends with ``close_code``.

    With ``hold_open`` the stream stays open after the frames until close()
    is called.
    """

    def __init__(
        self,
        frames: list[str] | None = None,
        close_code: int | None = 1006,
        hold_open: bool = False,
    ) -> None:
        self.frames = list(frames or [])
        self.close_code: int | None = None
        self.closed_with: int | None = None
        self._final_code = close_code
        self._hold_open = hold_open
        self._closed = asyncio.Event()

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame
        if self._hold_open:
            await self._closed.wait()
        if self.close_code is None:
            self.close_code = self._final_code

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.close_code is None:
            self.close_code = code
        self.closed_with = code
        self._closed.set()


class FakeConnector:
    """Stands in for websockets.connect.

    Each call consumes the next outcome: a FakeWebSocket is returned, an
    exception is raised. Once outcomes run out every call is refused.
    """

    def __init__(self, outcomes: list[Any] | None = None) -> None:
        self.outcomes = list(outcomes or [])
        self.calls = 0
        self.kwargs: list[dict] = []

    async def __call__(self, url: str, **kwargs: Any) -> FakeWebSocket:
        self.calls += 1
        self.kwargs.append(kwargs)
        outcome = (
            self.outcomes.pop(0)
            if self.outcomes
            else ConnectionRefusedError("connection refused")
        )
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


# --- Fake HTTP API ---


def healthy_routes() -> dict[tuple[str, str], Any]:
    return {
        ("GET", "/api/status"): (
            200,
            {
                "isRunning": True,
                "positions": [
                    {"symbol": "ETHUSDT", "quantity": 0.5, "buyPrice": 3100.0}
                ],
                "config": {
                    "purchasePercentage": 0.1,
                    "profitLossMargin": 0.03,
                    "tradingCount": 4,
                },
            },
        ),
        ("GET", "/api/balance"): (200, {"balance": 1234.5}),
        ("GET", "/api/logs"): (
            200,
            [
                {
                    "type": "success",
                    "message": "Bought ETHUSDT",
                    "createdAt": "2024-05-01T12:00:05Z",
                },
                {
                    "type": "info",
                    "message": "Scanning market",
                    "createdAt": "2024-05-01T12:00:00Z",
                },
            ],
        ),
        ("GET", "/api/positions/stats"): (200, {"closed": {"totalProfit": 42.5}}),
        ("POST", "/api/start"): (200, {"ok": True}),
        ("POST", "/api/stop"): (200, {"ok": True}),
        ("POST", "/api/config"): (200, {"ok": True}),
    }


class FakeApi:
    """Route table served through httpx.MockTransport."""

    def __init__(self, routes: dict[tuple[str, str], Any] | None = None) -> None:
        self.routes = routes if routes is not None else healthy_routes()
        self.requests: list[httpx.Request] = []

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.routes.get((request.method, request.url.path))
        if outcome is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(outcome, Exception):
            raise outcome
        status, body = outcome
        return httpx.Response(status, json=body)

    def client(self) -> BotApiClient:
        http = httpx.AsyncClient(
            transport=httpx.MockTransport(self.handler), base_url=BASE_URL
        )
        return BotApiClient(BASE_URL, client=http)

    def paths(self, method: str | None = None) -> list[str]:
        return [
            r.url.path
            for r in self.requests
            if method is None or r.method == method
        ]


def make_session_config(
    ws_url: str | None = WS_URL,
    max_attempts: int = 5,
    reconnect_delay: float = 0,
    poll_interval: float = 3600,
    refresh_delay: float = 0,
) -> SessionConfig:
    return SessionConfig(
        api=ApiConfig(base_url=BASE_URL, ws_url=ws_url),
        connection=ConnectionConfig(
            reconnect_delay_seconds=reconnect_delay,
            max_reconnect_attempts=max_attempts,
        ),
        polling=PollingConfig(
            interval_seconds=poll_interval,
            post_action_refresh_delay_seconds=refresh_delay,
        ),
    )


@pytest.fixture
def fake_api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def positions() -> list[Position]:
    return [
        Position(symbol="BTCUSDT", quantity=0.01, buy_price=65000.0),
        Position(symbol="ETHUSDT", quantity=0.5, buy_price=3100.0),
    ]


def make_entry(kind: str, message: str, seconds: int) -> LogEntry:
    return LogEntry(kind=kind, message=message, timestamp=T0 + timedelta(seconds=seconds))


_real_sleep = asyncio.sleep


async def wait_until(predicate, steps: int = 500) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    for _ in range(steps):
        if predicate():
            return
        await _real_sleep(0)
    raise AssertionError("condition not reached")
