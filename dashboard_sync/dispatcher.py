"""Routes decoded push frames into the state store and log buffer."""

from __future__ import annotations

import logging
from datetime import datetime

from .log_buffer import LogBuffer
from .messages import (
    ConfigMessage,
    FrameDecodeError,
    LogMessage,
    Message,
    PositionsMessage,
    StatusMessage,
    UnknownMessage,
    decode_frame,
)
from .state_store import StateStore

logger = logging.getLogger(__name__)


class MessageDispatcher:
    """Decodes one frame at a time and applies it."""

    def __init__(self, store: StateStore, log_buffer: LogBuffer) -> None:
        self._store = store
        self._log_buffer = log_buffer

    def dispatch(
        self, raw: str | bytes, received_at: datetime | None = None
    ) -> Message | None:
        """Decode and route a raw frame.

        Malformed frames are dropped with a warning so one bad frame never
        interrupts the stream. Returns the decoded message, or None.
        """
        try:
            message = decode_frame(raw, received_at)
        except FrameDecodeError as e:
            logger.warning("Dropping malformed frame: %s", e)
            return None

        if isinstance(message, LogMessage):
            self._log_buffer.append(message.entry)
        elif isinstance(message, PositionsMessage):
            self._store.apply_positions(message.positions)
        elif isinstance(message, StatusMessage):
            self._store.apply_status(message.update)
        elif isinstance(message, ConfigMessage):
            self._store.apply_config(message.config)
        elif isinstance(message, UnknownMessage):
            logger.debug("Ignoring unknown message type: %s", message.type)
        return message
