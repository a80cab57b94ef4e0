"""Dashboard session — owns the channels and the state they feed.

Creates the push-channel ConnectionManager (when a WebSocket URL is
configured) and the PollingScheduler, and applies everything they produce
through one dispatch point, ``_handle()``. Tearing the session down stops
that dispatch point before any timer or socket is released, so nothing that
is still in flight can mutate state afterwards.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Mapping

from .api_client import ApiError, BotApiClient
from .config import SessionConfig
from .connection import ConnectionManager
from .dispatcher import MessageDispatcher
from .events import (
    ChannelFrame,
    ChannelStateChanged,
    LogEmitted,
    PollCompleted,
    PollResult,
    SessionEvent,
)
from .log_buffer import LogBuffer
from .models import (
    BotStatus,
    ConnectionState,
    DisplayConfig,
    LogEntry,
    make_log_entry,
    parse_display_config,
)
from .polling import PollingScheduler, apply_poll_result
from .state_store import StateStore

logger = logging.getLogger(__name__)


class SessionClosedError(RuntimeError):
    """An action was requested on a session that has been torn down."""


@dataclass(frozen=True)
class DashboardSnapshot:
    """Read-only view handed to the rendering layer."""

    status: BotStatus
    config: DisplayConfig
    logs: tuple[LogEntry, ...]
    connection_state: ConnectionState
    reconnect_attempt: int
    push_enabled: bool
    refreshing: bool
    busy: bool


class DashboardSession:
    """Keeps a local view of one remote bot in sync."""

    def __init__(
        self,
        config: SessionConfig,
        client: BotApiClient | None = None,
        connect: Callable[..., Any] | None = None,
    ) -> None:
        self._config = config
        self.store = StateStore()
        self.logs = LogBuffer(config.logs.capacity)
        self._dispatcher = MessageDispatcher(self.store, self.logs)
        self._client = client or BotApiClient(
            config.api.base_url, timeout=config.api.request_timeout_seconds
        )
        self._owns_client = client is None
        self._poller = PollingScheduler(self._client, self._handle, config.polling)

        self._connection: ConnectionManager | None = None
        if config.api.ws_url:
            kwargs = {"connect": connect} if connect is not None else {}
            self._connection = ConnectionManager(
                config.api.ws_url, self._handle, config.connection, **kwargs
            )

        self._pending_refreshes: set[asyncio.Task] = set()
        self._busy = 0
        self._opened = False
        self._closed = False

        self._log("info", "Trading bot initialized and ready...")

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def busy(self) -> bool:
        """True while a start/stop/config action is in flight."""
        return self._busy > 0

    @property
    def refreshing(self) -> bool:
        return self._poller.refreshing

    @property
    def connection_state(self) -> ConnectionState:
        if self._connection is None:
            return ConnectionState.DISCONNECTED
        return self._connection.state

    def snapshot(self) -> DashboardSnapshot:
        """Copy of the current state for rendering."""
        return DashboardSnapshot(
            status=self.store.status_copy(),
            config=self.store.display_config,
            logs=self.logs.entries,
            connection_state=self.connection_state,
            reconnect_attempt=(
                self._connection.reconnect_attempt if self._connection else 0
            ),
            push_enabled=self._connection is not None,
            refreshing=self.refreshing,
            busy=self.busy,
        )

    # --- Lifecycle ---

    async def open(self) -> None:
        """Connect the push channel, load initial data, start polling."""
        self._ensure_open()
        if self._opened:
            return
        self._opened = True

        if self._connection is not None:
            self._connection.open()
        else:
            logger.info("No WebSocket URL configured; running pull-only")

        self._log("info", "Loading initial data...")
        result = await self._poller.poll_once()
        if self._closed:
            return
        if len(result.failures()) < 4:
            self._log("success", "Initial data loaded successfully")
        else:
            self._log("error", "Failed to load initial data")
        self._poller.start()

    async def close(self) -> None:
        """Tear the session down. Idempotent."""
        if self._closed:
            return
        # Drop anything still in flight from here on
        self._closed = True

        await self._poller.stop()
        for task in list(self._pending_refreshes):
            task.cancel()
        if self._pending_refreshes:
            await asyncio.gather(*self._pending_refreshes, return_exceptions=True)
        self._pending_refreshes.clear()

        if self._connection is not None:
            await self._connection.close()
        if self._owns_client:
            await self._client.aclose()
        logger.info("Session closed")

    async def __aenter__(self) -> DashboardSession:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # --- Actions ---

    async def start(self) -> None:
        """Ask the bot to start trading."""
        await self._run_action(self._client.start_bot, "Bot started successfully")

    async def stop(self) -> None:
        """Ask the bot to stop trading."""
        await self._run_action(self._client.stop_bot, "Bot stopped successfully")

    async def update_config(
        self, display: DisplayConfig | Mapping[str, Any]
    ) -> None:
        """Send display-unit values (percent) to the bot as fractions."""
        self._ensure_open()
        try:
            if not isinstance(display, DisplayConfig):
                display = parse_display_config(dict(display))
            wire = display.to_wire()
        except (KeyError, TypeError, ValueError) as e:
            self._log("error", f"Invalid configuration: {e}")
            raise ValueError(f"Invalid configuration: {e}") from e

        await self._run_action(
            lambda: self._client.update_config(wire),
            "Configuration updated successfully",
        )
        if not self._closed:
            self.store.apply_config(wire)

    async def refresh(self) -> PollResult:
        """User-triggered pull refresh."""
        self._ensure_open()
        return await self._poller.refresh()

    async def _run_action(
        self, call: Callable[[], Awaitable[Any]], success_message: str
    ) -> None:
        self._ensure_open()
        self._busy += 1
        try:
            await call()
        except ApiError as e:
            logger.error("Action failed: %s", e)
            self._log("error", e.message)
            raise
        finally:
            self._busy -= 1
        self._log("success", success_message)
        self._schedule_refresh()

    def _schedule_refresh(self) -> None:
        if self._closed:
            return
        task = asyncio.create_task(self._delayed_refresh())
        self._pending_refreshes.add(task)
        task.add_done_callback(self._pending_refreshes.discard)

    async def _delayed_refresh(self) -> None:
        await asyncio.sleep(self._config.polling.post_action_refresh_delay_seconds)
        if self._closed:
            return
        try:
            await self._poller.refresh()
        except Exception as e:
            logger.error("Post-action refresh failed: %s", e)

    # --- Dispatch point ---

    def _handle(self, event: SessionEvent) -> None:
        """Apply one event from a channel, timer or action."""
        if self._closed:
            logger.debug("Session closed; dropping %s", type(event).__name__)
            return

        try:
            if isinstance(event, ChannelFrame):
                self._dispatcher.dispatch(event.raw, event.received_at)
            elif isinstance(event, LogEmitted):
                self.logs.append(make_log_entry(event.kind, event.message))
            elif isinstance(event, PollCompleted):
                apply_poll_result(self.store, self.logs, event.result)
            elif isinstance(event, ChannelStateChanged):
                logger.debug(
                    "Connection %s (attempt %d)",
                    event.state.value,
                    event.reconnect_attempt,
                )
        except Exception as e:
            logger.error("Failed to apply %s: %s", type(event).__name__, e)

    def _log(self, kind: str, message: str) -> None:
        self._handle(LogEmitted(kind, message))

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionClosedError("session has been closed")
