"""Tests for the polling scheduler and poll result merging."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from dashboard_sync.config import PollingConfig
from dashboard_sync.events import PollCompleted
from dashboard_sync.log_buffer import LogBuffer
from dashboard_sync.models import DisplayConfig
from dashboard_sync.polling import PollingScheduler, apply_poll_result
from dashboard_sync.state_store import StateStore

from conftest import FakeApi, make_entry

RESOURCES = {
    "status": ("GET", "/api/status"),
    "balance": ("GET", "/api/balance"),
    "logs": ("GET", "/api/logs"),
    "stats": ("GET", "/api/positions/stats"),
}


class Harness:
    """Scheduler wired to a store the way a session wires it."""

    def __init__(self, api: FakeApi, config: PollingConfig | None = None) -> None:
        self.store = StateStore()
        self.logs = LogBuffer()
        self.events: list[PollCompleted] = []
        self.scheduler = PollingScheduler(
            api.client(), self._sink, config or PollingConfig()
        )

    def _sink(self, event: PollCompleted) -> None:
        self.events.append(event)
        apply_poll_result(self.store, self.logs, event.result)


class TestPollCycle:
    @pytest.mark.asyncio
    async def test_all_resources_applied(self, fake_api: FakeApi) -> None:
        h = Harness(fake_api)
        result = await h.scheduler.poll_once()

        assert result.failures() == []
        assert h.store.status.is_running is True
        assert h.store.status.balance == 1234.5
        assert h.store.status.total_pnl == 42.5
        assert [p.symbol for p in h.store.status.positions] == ["ETHUSDT"]
        assert h.store.display_config == DisplayConfig(10, 3, 4)
        assert [e.message for e in h.logs] == ["Bought ETHUSDT", "Scanning market"]
        assert sorted(fake_api.paths()) == sorted(p for _, p in RESOURCES.values())

    @pytest.mark.asyncio
    async def test_config_scaled_for_display(self, fake_api: FakeApi) -> None:
        fake_api.routes[("GET", "/api/status")] = (
            200,
            {
                "isRunning": False,
                "positions": [],
                "config": {
                    "purchasePercentage": 0.05,
                    "profitLossMargin": 0.02,
                    "tradingCount": 10,
                },
            },
        )
        h = Harness(fake_api)
        await h.scheduler.poll_once()
        assert h.store.display_config.as_dict() == {
            "purchasePercentage": 5,
            "profitLossMargin": 2,
            "tradingCount": 10,
        }

    @pytest.mark.asyncio
    async def test_invalid_config_keeps_other_groups(self, fake_api: FakeApi) -> None:
        fake_api.routes[("GET", "/api/status")] = (
            200,
            {
                "isRunning": True,
                "positions": [
                    {"symbol": "BTCUSDT", "quantity": 0.01, "buyPrice": 65000}
                ],
                "config": {
                    "purchasePercentage": 5,
                    "profitLossMargin": 0.02,
                    "tradingCount": 10,
                },
            },
        )
        h = Harness(fake_api)
        before = h.store.display_config

        result = await h.scheduler.poll_once()

        assert result.failures() == []
        assert h.store.status.is_running is True
        assert [p.symbol for p in h.store.status.positions] == ["BTCUSDT"]
        assert h.store.display_config == before

    @pytest.mark.asyncio
    @pytest.mark.parametrize("failing", list(RESOURCES))
    async def test_single_failure_tolerated(
        self, fake_api: FakeApi, failing: str
    ) -> None:
        fake_api.routes[RESOURCES[failing]] = (503, {"error": "unavailable"})
        h = Harness(fake_api)
        h.store.apply_total_pnl(7.0)

        result = await h.scheduler.poll_once()

        assert [name for name, _ in result.failures()] == [failing]
        if failing != "status":
            assert h.store.status.is_running is True
        if failing != "balance":
            assert h.store.status.balance == 1234.5
        if failing != "logs":
            assert "Bought ETHUSDT" in [e.message for e in h.logs]
        expected_pnl = 0.0 if failing == "stats" else 42.5
        assert h.store.status.total_pnl == expected_pnl
        assert h.logs.latest.kind == "warning"
        assert failing in h.logs.latest.message

    @pytest.mark.asyncio
    async def test_transport_failure_does_not_escape(self, fake_api: FakeApi) -> None:
        fake_api.routes[("GET", "/api/balance")] = httpx.ConnectError("down")
        h = Harness(fake_api)
        result = await h.scheduler.poll_once()
        assert not result.balance.ok
        assert h.store.status.balance == 0.0

    @pytest.mark.asyncio
    async def test_everything_down(self, fake_api: FakeApi) -> None:
        fake_api.routes = {}
        h = Harness(fake_api)
        result = await h.scheduler.poll_once()
        assert len(result.failures()) == 4
        assert len(h.logs) == 4

    @pytest.mark.asyncio
    async def test_empty_logs_snapshot_keeps_buffer(self, fake_api: FakeApi) -> None:
        fake_api.routes[("GET", "/api/logs")] = (200, [])
        h = Harness(fake_api)
        h.logs.append(make_entry("info", "kept", 0))
        await h.scheduler.poll_once()
        assert [e.message for e in h.logs] == ["kept"]

    @pytest.mark.asyncio
    async def test_logs_snapshot_replaces_push_entries(self, fake_api: FakeApi) -> None:
        h = Harness(fake_api)
        h.logs.append(make_entry("info", "from push", 999))
        await h.scheduler.poll_once()
        assert "from push" not in [e.message for e in h.logs]

    @pytest.mark.asyncio
    async def test_recent_logs_limit(self, fake_api: FakeApi) -> None:
        h = Harness(fake_api, PollingConfig(recent_logs_limit=25))
        await h.scheduler.poll_once()
        logs_request = [r for r in fake_api.requests if r.url.path == "/api/logs"][0]
        assert logs_request.url.params["limit"] == "25"


class TestRefreshing:
    @pytest.mark.asyncio
    async def test_user_refresh_sets_indicator(self, fake_api: FakeApi) -> None:
        release = asyncio.Event()
        seen: list[bool] = []
        original = fake_api.handler

        async def slow_handler(request: httpx.Request) -> httpx.Response:
            await release.wait()
            return await original(request)

        fake_api.handler = slow_handler  # type: ignore[method-assign]
        h = Harness(fake_api)

        task = asyncio.create_task(h.scheduler.refresh())
        await asyncio.sleep(0)
        seen.append(h.scheduler.refreshing)
        release.set()
        result = await task

        assert seen == [True]
        assert h.scheduler.refreshing is False
        assert result.user_initiated is True

    @pytest.mark.asyncio
    async def test_indicator_cleared_after_failures(self, fake_api: FakeApi) -> None:
        fake_api.routes = {}
        h = Harness(fake_api)
        await h.scheduler.refresh()
        assert h.scheduler.refreshing is False

    @pytest.mark.asyncio
    async def test_background_cycle_never_sets_indicator(
        self, fake_api: FakeApi
    ) -> None:
        h = Harness(fake_api)
        flags: list[bool] = []
        h.scheduler._sink = lambda event: flags.append(h.scheduler.refreshing)
        await h.scheduler.poll_once()
        assert flags == [False]


class TestTimer:
    @pytest.mark.asyncio
    async def test_periodic_ticks(
        self, fake_api: FakeApi, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        h = Harness(fake_api, PollingConfig(interval_seconds=15))
        sleeps: list[float] = []
        real_sleep = asyncio.sleep

        async def fast_sleep(delay: float) -> None:
            sleeps.append(delay)
            await real_sleep(0)

        monkeypatch.setattr("dashboard_sync.polling.asyncio.sleep", fast_sleep)
        h.scheduler.start()
        try:
            for _ in range(1000):
                if len(h.events) >= 2:
                    break
                await real_sleep(0)
        finally:
            await h.scheduler.stop()

        assert len(h.events) >= 2
        assert sleeps[0] == 15
        assert all(not e.result.user_initiated for e in h.events)

    @pytest.mark.asyncio
    async def test_stop_cancels_timer(self, fake_api: FakeApi) -> None:
        h = Harness(fake_api, PollingConfig(interval_seconds=3600))
        h.scheduler.start()
        assert h.scheduler.running
        await h.scheduler.stop()
        assert not h.scheduler.running
        assert h.events == []
