"""Periodic and on-demand pull refresh.

A cycle requests status, balance, recent logs and position statistics
concurrently. Each request settles on its own; one failing resource never
blocks or discards the others.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

from .api_client import BotApiClient, StatusSnapshot
from .config import PollingConfig
from .events import PollCompleted, PollResult, ResourceResult, SessionEvent
from .log_buffer import LogBuffer
from .messages import StatusUpdate
from .models import make_log_entry
from .state_store import StateStore

logger = logging.getLogger(__name__)


class PollingScheduler:
    """Drives pull refreshes on a timer and on request."""

    def __init__(
        self,
        client: BotApiClient,
        sink: Callable[[SessionEvent], None],
        polling_config: PollingConfig,
    ) -> None:
        self._client = client
        self._sink = sink
        self._config = polling_config
        self._task: asyncio.Task | None = None
        self._refreshing = 0

    @property
    def refreshing(self) -> bool:
        """True while a user-triggered refresh is in flight."""
        return self._refreshing > 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the periodic refresh task."""
        if self.running:
            return
        self._task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        """Cancel the periodic task, including any cycle it has in flight."""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def refresh(self) -> PollResult:
        """User-triggered refresh; exposes ``refreshing`` until settled."""
        self._refreshing += 1
        try:
            return await self.poll_once(user_initiated=True)
        finally:
            self._refreshing -= 1

    async def poll_once(self, user_initiated: bool = False) -> PollResult:
        """Run one cycle and post its result. Never raises for failed resources."""
        limit = self._config.recent_logs_limit
        status, balance, logs, stats = await asyncio.gather(
            self._client.get_status(),
            self._client.get_balance(),
            self._client.get_logs(limit=limit),
            self._client.get_total_profit(),
            return_exceptions=True,
        )
        result = PollResult(
            status=_settle(status),
            balance=_settle(balance),
            logs=_settle(logs),
            stats=_settle(stats),
            user_initiated=user_initiated,
        )
        for name, error in result.failures():
            logger.warning("Failed to refresh %s: %s", name, error)
        self._sink(PollCompleted(result))
        return result

    async def _poll_loop(self) -> None:
        interval = self._config.interval_seconds
        while True:
            await asyncio.sleep(interval)
            logger.debug("Background refresh...")
            try:
                await self.poll_once()
            except Exception as e:
                logger.error("Background refresh failed: %s", e)


def _settle(outcome: Any) -> ResourceResult:
    if isinstance(outcome, asyncio.CancelledError):
        raise outcome
    if isinstance(outcome, BaseException):
        return ResourceResult(error=outcome)
    return ResourceResult(value=outcome)


def apply_poll_result(
    store: StateStore, log_buffer: LogBuffer, result: PollResult
) -> None:
    """Apply a settled cycle to the store and log buffer.

    The logs snapshot goes first so that failure warnings from this cycle
    are not wiped out by it. An empty snapshot leaves the buffer untouched.
    """
    if result.logs.ok and result.logs.value:
        log_buffer.replace_all(result.logs.value)

    if result.status.ok:
        snapshot: StatusSnapshot = result.status.value
        store.apply_status(
            StatusUpdate(
                is_running=snapshot.is_running, positions=snapshot.positions
            )
        )
        if snapshot.config is not None:
            store.apply_config(snapshot.config)

    if result.balance.ok:
        store.apply_balance(result.balance.value)

    # A failed stats request resets the profit to 0
    store.apply_total_pnl(result.stats.value if result.stats.ok else 0.0)

    for name, error in result.failures():
        log_buffer.append(
            make_log_entry("warning", f"Failed to refresh {name}: {error}")
        )

