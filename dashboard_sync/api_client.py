"""Async HTTP client for the bot's REST resources."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from .models import (
    BotConfig,
    LogEntry,
    Position,
    parse_bot_config,
    parse_log_entry,
    parse_positions,
    utc_now,
)

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """A request failed; ``message`` is the server's ``error`` field if any."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass(frozen=True)
class StatusSnapshot:
    """Parsed body of GET /api/status."""

    is_running: bool
    positions: list[Position] = field(default_factory=list)
    config: BotConfig | None = None


class BotApiClient:
    """Thin wrapper around the bot's HTTP API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        # A shared client passed in is not closed by aclose()
        if client is not None:
            self._client = client
            self._owns_client = False
        else:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
            self._owns_client = True

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise ApiError(f"{method} {path} failed: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            message = "Request failed"
            if isinstance(data, dict) and data.get("error"):
                message = str(data["error"])
            logger.debug(
                "%s %s -> %d: %s", method, path, response.status_code, message
            )
            raise ApiError(message, response.status_code)
        return data

    # --- Pull resources ---

    async def get_status(self) -> StatusSnapshot:
        data = await self._request("GET", "/api/status")
        if not isinstance(data, dict):
            raise ApiError("Malformed status response")
        return StatusSnapshot(
            is_running=bool(data.get("isRunning", False)),
            positions=parse_positions(data.get("positions") or []),
            config=_parse_status_config(data.get("config")),
        )

    async def get_balance(self) -> float:
        data = await self._request("GET", "/api/balance")
        if not isinstance(data, dict):
            raise ApiError("Malformed balance response")
        return float(data.get("balance") or 0)

    async def get_logs(self, limit: int = 50) -> list[LogEntry]:
        data = await self._request("GET", "/api/logs", params={"limit": limit})
        if not isinstance(data, list):
            raise ApiError("Malformed logs response")
        now = utc_now()
        return [parse_log_entry(item, now) for item in data]

    async def get_total_profit(self) -> float:
        """Realized profit from GET /api/positions/stats (0 when absent)."""
        data = await self._request("GET", "/api/positions/stats")
        if not isinstance(data, dict):
            raise ApiError("Malformed position stats response")
        closed = data.get("closed") or {}
        return float(closed.get("totalProfit") or 0)

    # --- Actions ---

    async def start_bot(self) -> Any:
        return await self._request("POST", "/api/start")

    async def stop_bot(self) -> Any:
        return await self._request("POST", "/api/stop")

    async def update_config(self, config: BotConfig) -> Any:
        return await self._request("POST", "/api/config", json=config.to_payload())


def _parse_status_config(raw: Any) -> BotConfig | None:
    # An invalid config leaves the running flag and positions usable
    if not raw:
        return None
    try:
        return parse_bot_config(raw)
    except (TypeError, ValueError) as e:
        logger.warning("Ignoring invalid config in status response: %s", e)
        return None


__all__ = ["ApiError", "BotApiClient", "StatusSnapshot"]
