"""Typed events posted into a session's dispatch point.

The connection task, the poll task and the session's own actions never touch
shared state directly; they post one of these and the session applies it,
unless it has already been torn down.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Union

from .models import ConnectionState, utc_now


@dataclass(frozen=True)
class ChannelFrame:
    """A raw text frame from the push channel."""

    raw: str | bytes
    received_at: datetime = field(default_factory=utc_now)


@dataclass(frozen=True)
class ChannelStateChanged:
    state: ConnectionState
    reconnect_attempt: int


@dataclass(frozen=True)
class LogEmitted:
    """A user-visible log line raised by the client itself."""

    kind: str
    message: str


@dataclass(frozen=True)
class ResourceResult:
    """Outcome of one pull request: either ``value`` or ``error`` is set."""

    value: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class PollResult:
    """One settled polling cycle, one entry per resource."""

    status: ResourceResult
    balance: ResourceResult
    logs: ResourceResult
    stats: ResourceResult
    user_initiated: bool = False

    def failures(self) -> list[tuple[str, BaseException]]:
        out = []
        for name in ("status", "balance", "logs", "stats"):
            result: ResourceResult = getattr(self, name)
            if result.error is not None:
                out.append((name, result.error))
        return out


@dataclass(frozen=True)
class PollCompleted:
    result: PollResult


SessionEvent = Union[ChannelFrame, ChannelStateChanged, LogEmitted, PollCompleted]
