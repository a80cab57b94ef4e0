"""Bot Dashboard Sync — Entry Point.

Headless client that mirrors a trading bot's state over its WebSocket push
channel and REST pull resources, and logs a periodic status report.

Usage:
    python main.py configs/example.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from dashboard_sync.config import load_config
from dashboard_sync.formatter import format_snapshot
from dashboard_sync.logging_utils import configure_logging
from dashboard_sync.session import DashboardSession

logger = logging.getLogger(__name__)


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Trading Bot Dashboard Sync Client"
    )
    parser.add_argument(
        "config_file",
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override the log level from the config file",
    )
    args = parser.parse_args()

    # Load config
    config = load_config(args.config_file)
    configure_logging(args.log_level or config.logs.level)

    logger.info(
        "Starting dashboard sync for %s (push: %s)...",
        config.api.base_url,
        config.api.ws_url or "off",
    )

    session = DashboardSession(config)

    # Signal handling for graceful shutdown
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    await session.open()

    interval = config.reporting.interval_seconds
    while not stop_event.is_set():
        try:
            await asyncio.wait_for(
                stop_event.wait(), timeout=interval if interval > 0 else None
            )
        except asyncio.TimeoutError:
            logger.info("Status report:\n%s", format_snapshot(session.snapshot()))

    # Graceful shutdown
    logger.info("Shutting down...")
    await session.close()
    logger.info("Client stopped.")


if __name__ == "__main__":
    asyncio.run(main())
