"""Data models for the bot state mirrored by the dashboard client.

Wire payloads (push frames and pull responses) use camelCase keys; the
parse_* helpers convert them into these dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

LogKind = Literal["info", "success", "warning", "error"]
LOG_KINDS: tuple[str, ...] = ("info", "success", "warning", "error")

# Display values are the wire fractions scaled by this factor
DISPLAY_SCALE = 100

DEFAULT_PURCHASE_PERCENTAGE = 0.05
DEFAULT_PROFIT_LOSS_MARGIN = 0.02
DEFAULT_TRADING_COUNT = 10


class ConnectionState(str, Enum):
    """Lifecycle of the push channel."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


@dataclass
class Position:
    """An open position, identified by symbol."""

    symbol: str
    quantity: float
    buy_price: float


@dataclass
class BotStatus:
    """Mutable status of the remote bot."""

    is_running: bool = False
    balance: float = 0.0
    positions: list[Position] = field(default_factory=list)
    total_pnl: float = 0.0


@dataclass(frozen=True)
class LogEntry:
    kind: str  # one of LOG_KINDS
    message: str
    timestamp: datetime


@dataclass(frozen=True)
class BotConfig:
    """Trading configuration in wire units (fractions)."""

    purchase_percentage: float = DEFAULT_PURCHASE_PERCENTAGE
    profit_loss_margin: float = DEFAULT_PROFIT_LOSS_MARGIN
    trading_count: int = DEFAULT_TRADING_COUNT

    def __post_init__(self) -> None:
        _check_range("purchase_percentage", self.purchase_percentage, 1.0)
        _check_range("profit_loss_margin", self.profit_loss_margin, 1.0)
        _as_count(self.trading_count)
        if self.trading_count < 1:
            raise ValueError(
                f"trading_count must be >= 1, got {self.trading_count}"
            )

    def to_display(self) -> DisplayConfig:
        """Scale the fractions up for human editing."""
        return DisplayConfig(
            purchase_percentage=_scale(self.purchase_percentage, DISPLAY_SCALE),
            profit_loss_margin=_scale(self.profit_loss_margin, DISPLAY_SCALE),
            trading_count=self.trading_count,
        )

    def to_payload(self) -> dict[str, Any]:
        """Request body for POST /api/config."""
        return {
            "purchasePercentage": self.purchase_percentage,
            "profitLossMargin": self.profit_loss_margin,
            "tradingCount": self.trading_count,
        }


@dataclass(frozen=True)
class DisplayConfig:
    """Trading configuration in display units (percent)."""

    purchase_percentage: float
    profit_loss_margin: float
    trading_count: int

    def to_wire(self) -> BotConfig:
        """Scale back down to fractions. Raises ValueError when out of range."""
        return BotConfig(
            purchase_percentage=_scale(self.purchase_percentage, 1 / DISPLAY_SCALE),
            profit_loss_margin=_scale(self.profit_loss_margin, 1 / DISPLAY_SCALE),
            trading_count=_as_count(self.trading_count),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "purchasePercentage": self.purchase_percentage,
            "profitLossMargin": self.profit_loss_margin,
            "tradingCount": self.trading_count,
        }


def _scale(value: float, factor: float) -> float:
    # Rounded so that e.g. 0.05 -> 5.0 rather than 5.000000000000001
    return round(value * factor, 10)


def _check_range(name: str, value: float, upper: float) -> None:
    if not 0 < value <= upper:
        raise ValueError(f"{name} must be in (0, {upper:g}], got {value}")


def _as_count(value: Any) -> int:
    """Whole-number trading count; 2.7 is rejected rather than truncated."""
    count = float(value)
    if not count.is_integer():
        raise ValueError(f"trading_count must be a whole number, got {value}")
    return int(count)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any, default: datetime | None = None) -> datetime:
    """Parse an ISO-8601 string into an aware UTC datetime.

    Falls back to ``default`` (or the current time) when the value is missing
    or unparseable.
    """
    fallback = default if default is not None else utc_now()
    if isinstance(value, datetime):
        ts = value
    elif isinstance(value, str) and value:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            ts = datetime.fromisoformat(text)
        except ValueError:
            return fallback
    else:
        return fallback
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def make_log_entry(
    kind: str, message: str, timestamp: datetime | None = None
) -> LogEntry:
    """Build a LogEntry, normalizing unknown kinds to ``info``."""
    if kind not in LOG_KINDS:
        kind = "info"
    return LogEntry(
        kind=kind,
        message=message,
        timestamp=timestamp if timestamp is not None else utc_now(),
    )


def parse_log_entry(
    data: dict, default_timestamp: datetime | None = None
) -> LogEntry:
    """Parse a log payload.

    Push frames carry ``timestamp``; the pull logs resource carries
    ``createdAt``. Either is accepted.
    """
    if not isinstance(data, dict):
        raise ValueError(f"log entry must be an object, got {type(data).__name__}")
    raw_ts = data.get("timestamp", data.get("createdAt"))
    return make_log_entry(
        kind=str(data.get("type", "info")),
        message=str(data.get("message", "")),
        timestamp=parse_timestamp(raw_ts, default_timestamp),
    )


def parse_position(data: dict) -> Position:
    """Parse a position payload dict into a Position."""
    return Position(
        symbol=str(data["symbol"]),
        quantity=float(data["quantity"]),
        buy_price=float(data["buyPrice"]),
    )


def parse_positions(data: Any) -> list[Position]:
    if not isinstance(data, list):
        raise ValueError(f"positions must be a list, got {type(data).__name__}")
    return [parse_position(item) for item in data]


def parse_bot_config(data: dict) -> BotConfig:
    """Parse a fractional config payload.

    Missing or zero fields fall back to the defaults.
    """
    if not isinstance(data, dict):
        raise ValueError(f"config must be an object, got {type(data).__name__}")
    return BotConfig(
        purchase_percentage=float(
            data.get("purchasePercentage") or DEFAULT_PURCHASE_PERCENTAGE
        ),
        profit_loss_margin=float(
            data.get("profitLossMargin") or DEFAULT_PROFIT_LOSS_MARGIN
        ),
        trading_count=_as_count(data.get("tradingCount") or DEFAULT_TRADING_COUNT),
    )


def parse_display_config(data: dict) -> DisplayConfig:
    """Parse display values as typed into the dashboard form."""
    return DisplayConfig(
        purchase_percentage=float(data["purchasePercentage"]),
        profit_loss_margin=float(data["profitLossMargin"]),
        trading_count=_as_count(data["tradingCount"]),
    )
