"""Push-channel connection manager with bounded reconnection.

Holds at most one WebSocket connection to the bot, forwards every text frame
to the session, and reconnects after a loss with a linear backoff
(``delay × attempt``) until the attempt ceiling is reached.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

import websockets
from websockets.exceptions import ConnectionClosed

from .config import ConnectionConfig
from .events import ChannelFrame, ChannelStateChanged, LogEmitted, SessionEvent
from .models import ConnectionState

logger = logging.getLogger(__name__)

# Close code for a clean, caller-initiated shutdown
NORMAL_CLOSURE = 1000
INTERNAL_ERROR = 1011


class ConnectionStateError(RuntimeError):
    """open() was called in a state that does not allow it."""


class ConnectionManager:
    """WebSocket client for the bot's push channel."""

    def __init__(
        self,
        url: str,
        sink: Callable[[SessionEvent], None],
        connection_config: ConnectionConfig,
        connect: Callable[..., Any] = websockets.connect,
    ):
        self.url = url
        self._sink = sink
        self._config = connection_config
        self._connect = connect
        self.state = ConnectionState.DISCONNECTED
        self.reconnect_attempt = 0
        self.exhausted = False
        self._ws: Any = None
        self._task: asyncio.Task | None = None
        self._shutdown = False

    @property
    def max_attempts(self) -> int:
        return self._config.max_reconnect_attempts

    def open(self) -> None:
        """Start connecting. Valid only from disconnected or error."""
        if self.state not in (ConnectionState.DISCONNECTED, ConnectionState.ERROR):
            raise ConnectionStateError(f"cannot open while {self.state.value}")
        if self._task is not None and not self._task.done():
            raise ConnectionStateError("connection task already running")
        if self.exhausted:
            raise ConnectionStateError(
                "reconnection attempts exhausted; start a new session"
            )
        self._shutdown = False
        self._set_state(ConnectionState.CONNECTING)
        self._task = asyncio.create_task(self._run())

    async def close(self) -> None:
        """Caller-initiated shutdown. Never reconnects; safe to call twice."""
        self._shutdown = True
        ws, self._ws = self._ws, None
        if ws is not None:
            try:
                await ws.close(code=NORMAL_CLOSURE, reason="Session closing")
            except Exception as e:
                logger.debug("Error closing WebSocket: %s", e)
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self.state = ConnectionState.DISCONNECTED

    async def wait_closed(self) -> None:
        """Wait for the connection task to finish (exhaustion or shutdown)."""
        if self._task is not None:
            await asyncio.wait({self._task})

    # --- Connection loop ---

    async def _run(self) -> None:
        """Main loop: connect, receive frames, reconnect on failure."""
        while not self._shutdown:
            should_retry = await self._connect_once()
            if not should_retry or self._shutdown:
                return

            if self.reconnect_attempt >= self.max_attempts:
                self.exhausted = True
                logger.error(
                    "Giving up on %s after %d reconnection attempts",
                    self.url,
                    self.reconnect_attempt,
                )
                self._log("error", "Maximum reconnection attempts reached")
                return

            self.reconnect_attempt += 1
            delay = self._config.reconnect_delay_seconds * self.reconnect_attempt
            self._log(
                "info",
                f"Attempting to reconnect... "
                f"({self.reconnect_attempt}/{self.max_attempts})",
            )
            logger.info("Reconnecting to %s in %ss...", self.url, delay)
            await asyncio.sleep(delay)
            if not self._shutdown:
                self._set_state(ConnectionState.CONNECTING)

    async def _connect_once(self) -> bool:
        """Run one connection until it ends. Returns True to reconnect."""
        logger.info("Connecting to %s...", self.url)
        try:
            ws = await self._connect(
                self.url,
                ping_interval=self._config.ping_interval_seconds,
                open_timeout=self._config.open_timeout_seconds,
            )
        except Exception as e:
            if self._shutdown:
                return False
            logger.warning("Failed to connect to %s: %s", self.url, e)
            self._set_state(ConnectionState.ERROR)
            self._log("error", f"WebSocket connection failed: {e}")
            return True

        if self._shutdown:
            await ws.close(code=NORMAL_CLOSURE)
            return False

        self._ws = ws
        self.reconnect_attempt = 0
        self._set_state(ConnectionState.CONNECTED)
        self._log("success", "WebSocket connected successfully")
        logger.info("Connected to %s", self.url)

        try:
            async for raw_message in ws:
                if self._shutdown:
                    break
                self._sink(ChannelFrame(raw=raw_message))
        except ConnectionClosed as e:
            logger.warning("WS disconnected from %s: %s", self.url, e)
        except Exception as e:
            logger.error("Unexpected error in WS client %s: %s", self.url, e)
            if not self._shutdown:
                self._log("error", "WebSocket connection error")
            try:
                await ws.close(code=INTERNAL_ERROR)
            except Exception as close_error:
                logger.debug("Error closing WebSocket: %s", close_error)
        finally:
            self._ws = None

        if self._shutdown:
            return False

        code = getattr(ws, "close_code", None)
        self._set_state(ConnectionState.DISCONNECTED)
        self._log("warning", f"WebSocket disconnected ({code})")
        if code == NORMAL_CLOSURE:
            logger.info("%s closed the connection normally", self.url)
            return False
        return True

    # --- Helpers ---

    def _set_state(self, state: ConnectionState) -> None:
        self.state = state
        self._sink(ChannelStateChanged(state, self.reconnect_attempt))

    def _log(self, kind: str, message: str) -> None:
        self._sink(LogEmitted(kind, message))
