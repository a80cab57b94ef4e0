"""Plain-text rendering of a dashboard snapshot.

Used by the headless CLI for its periodic status report:
  - format_snapshot():   multi-line summary (status, config, positions, logs)
  - format_log_entry():  one log line
"""

from __future__ import annotations

from .models import ConnectionState, LogEntry, Position
from .session import DashboardSnapshot

_KIND_TAGS = {
    "info": "INFO",
    "success": " OK ",
    "warning": "WARN",
    "error": "ERR ",
}


def format_snapshot(snapshot: DashboardSnapshot, max_logs: int = 5) -> str:
    """Full status block for the periodic report."""
    s = snapshot.status
    c = snapshot.config
    pnl_sign = "+" if s.total_pnl >= 0 else ""
    lines = [
        f"bot              {'running' if s.is_running else 'stopped'}",
        f"push channel     {_format_connection(snapshot)}",
        f"balance          ${_fp(s.balance)}",
        f"total pnl        {pnl_sign}{s.total_pnl:.2f}",
        f"positions        {len(s.positions)}",
    ]
    lines.extend(f"  {_format_position(p)}" for p in s.positions)
    lines.append(
        f"config           buy {c.purchase_percentage:g}%  "
        f"margin {c.profit_loss_margin:g}%  "
        f"count {c.trading_count}"
    )
    if snapshot.logs:
        lines.append("recent")
        lines.extend(
            f"  {format_log_entry(e)}" for e in snapshot.logs[:max_logs]
        )
    return "\n".join(lines)


def format_log_entry(entry: LogEntry) -> str:
    tag = _KIND_TAGS.get(entry.kind, "INFO")
    return f"{entry.timestamp:%H:%M:%S} [{tag}] {entry.message}"


def _format_connection(snapshot: DashboardSnapshot) -> str:
    if not snapshot.push_enabled:
        return "off (polling only)"
    state = snapshot.connection_state
    if state is ConnectionState.CONNECTED:
        return "connected"
    if snapshot.reconnect_attempt:
        return f"{state.value} (retry {snapshot.reconnect_attempt})"
    return state.value


def _format_position(p: Position) -> str:
    return f"{p.symbol:<10} {p.quantity:g} @ ${_fp(p.buy_price)}"


def _fp(price: float) -> str:
    """Format a price: thousands separators, more decimals for small values."""
    if abs(price) >= 1000:
        if price == int(price):
            return f"{price:,.0f}"
        return f"{price:,.2f}"
    if 0 < abs(price) < 1:
        return f"{price:.4f}"
    return f"{price:.2f}"
