"""Single source of truth for the mirrored bot state.

Both the push and the pull channel write here with no ordering guarantee
between them. Each field group (status, positions, balance, config, pnl) is
replaced as a unit; the last write to a group wins.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

from .messages import StatusUpdate
from .models import BotConfig, BotStatus, DisplayConfig, Position, utc_now

logger = logging.getLogger(__name__)

FIELD_GROUPS = ("status", "positions", "balance", "config", "pnl")


class StateStore:
    """Mutable state container for one dashboard session."""

    def __init__(self, config: BotConfig | None = None) -> None:
        self.status = BotStatus()
        # Wire copy and the display copy derived from it
        self.config = config if config is not None else BotConfig()
        self.display_config: DisplayConfig = self.config.to_display()
        self.updated_at: dict[str, datetime | None] = {
            group: None for group in FIELD_GROUPS
        }

    def apply_status(self, update: StatusUpdate) -> None:
        """Shallow-merge a partial status; absent fields are left untouched."""
        if update.is_running is not None:
            self.status.is_running = update.is_running
            self._touch("status")
        if update.positions is not None:
            self.apply_positions(update.positions)
        if update.balance is not None:
            self.apply_balance(update.balance)

    def apply_positions(self, positions: list[Position]) -> None:
        """Replace the position list wholesale."""
        self.status.positions = [replace(p) for p in positions]
        self._touch("positions")

    def apply_balance(self, balance: float) -> None:
        self.status.balance = float(balance)
        self._touch("balance")

    def apply_total_pnl(self, total_pnl: float) -> None:
        self.status.total_pnl = float(total_pnl)
        self._touch("pnl")

    def apply_config(self, config: BotConfig) -> None:
        """Replace the configuration with a fractional (wire) copy."""
        self.config = config
        self.display_config = config.to_display()
        self._touch("config")
        logger.debug("Config updated: %s", self.display_config)

    def status_copy(self) -> BotStatus:
        return replace(
            self.status, positions=[replace(p) for p in self.status.positions]
        )

    def _touch(self, group: str) -> None:
        self.updated_at[group] = utc_now()
