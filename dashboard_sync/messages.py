"""Push-channel frame decoding.

Each frame is a JSON object ``{"type": ..., "data": ...}``. Known types decode
into one of the message dataclasses below; anything else becomes an
UnknownMessage so new server-side kinds do not break older clients.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Union

from .models import (
    BotConfig,
    LogEntry,
    Position,
    parse_bot_config,
    parse_log_entry,
    parse_positions,
    utc_now,
)


class FrameDecodeError(ValueError):
    """A push frame could not be decoded."""


@dataclass(frozen=True)
class StatusUpdate:
    """Partial status. ``None`` means the field was absent from the payload."""

    is_running: bool | None = None
    balance: float | None = None
    positions: list[Position] | None = None


@dataclass(frozen=True)
class LogMessage:
    entry: LogEntry


@dataclass(frozen=True)
class PositionsMessage:
    positions: list[Position]


@dataclass(frozen=True)
class StatusMessage:
    update: StatusUpdate


@dataclass(frozen=True)
class ConfigMessage:
    config: BotConfig


@dataclass(frozen=True)
class UnknownMessage:
    type: str
    data: Any


Message = Union[
    LogMessage, PositionsMessage, StatusMessage, ConfigMessage, UnknownMessage
]


def parse_status_update(data: dict) -> StatusUpdate:
    """Parse a status payload, keeping only the fields that are present.

    ``totalPnL`` is deliberately not read: profit figures come from the
    position-statistics pull resource only.
    """
    if not isinstance(data, dict):
        raise ValueError(f"status must be an object, got {type(data).__name__}")
    is_running = data.get("isRunning")
    if is_running is not None and not isinstance(is_running, bool):
        raise ValueError(f"isRunning must be a boolean, got {is_running!r}")
    balance = data.get("balance")
    positions = data.get("positions")
    return StatusUpdate(
        is_running=is_running,
        balance=float(balance) if balance is not None else None,
        positions=parse_positions(positions) if positions is not None else None,
    )


def decode_frame(
    raw: str | bytes, received_at: datetime | None = None
) -> Message:
    """Decode one text frame into a Message.

    Raises FrameDecodeError on malformed JSON, a non-object frame, a missing
    ``type``, or a payload that does not fit its declared type.
    """
    try:
        frame = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FrameDecodeError(f"invalid JSON: {e}") from e

    if not isinstance(frame, dict):
        raise FrameDecodeError("frame is not a JSON object")

    msg_type = frame.get("type")
    if not isinstance(msg_type, str) or not msg_type:
        raise FrameDecodeError("frame has no type")
    data = frame.get("data")

    try:
        if msg_type == "log":
            return LogMessage(
                entry=parse_log_entry(data, received_at or utc_now())
            )
        elif msg_type == "positions":
            return PositionsMessage(positions=parse_positions(data))
        elif msg_type == "status":
            return StatusMessage(update=parse_status_update(data))
        elif msg_type == "config":
            return ConfigMessage(config=parse_bot_config(data))
    except (KeyError, TypeError, ValueError) as e:
        raise FrameDecodeError(f"malformed {msg_type} payload: {e}") from e

    return UnknownMessage(type=msg_type, data=data)
