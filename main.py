"""Portfolio Feed Daemon — Entry Point.

Standalone daemon that streams live portfolio updates from the bot
manager API and keeps bucketed chart series for the 1h, 24h, 7d and 30d
horizons.

Usage:
    python main.py configs/example.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal

from portfolio_feed.config import load_config
from portfolio_feed.formatter import format_portfolio_status
from portfolio_feed.logging_utils import configure_logging
from portfolio_feed.monitor import PortfolioMonitor

logger = logging.getLogger(__name__)


async def main() -> None:
    parser = argparse.ArgumentParser(
        description="Portfolio chart feed daemon"
    )
    parser.add_argument(
        "config_file",
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override reporting.log_level from the config file",
    )
    args = parser.parse_args()

    # Load config
    config = load_config(args.config_file)
    configure_logging(
        args.log_level or config.reporting.log_level,
        log_file=config.reporting.log_file,
        fmt=config.reporting.log_format,
    )

    logger.info(
        "Starting portfolio-feed-daemon (%s transport, %s)...",
        config.stream.transport,
        config.api.base_url,
    )

    monitor = PortfolioMonitor(config)

    # Signal handling for graceful shutdown
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received...")
        stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, _signal_handler)

    # Start monitor (runs the stream client + periodic reporter)
    monitor_task = asyncio.create_task(monitor.run())

    # Wait for shutdown signal
    await stop_event.wait()

    # Graceful shutdown
    logger.info("Shutting down...")
    for line in format_portfolio_status(
        monitor.state, monitor.get_all_charts()
    ).splitlines():
        logger.info(line)
    await monitor.stop()

    monitor_task.cancel()
    try:
        await monitor_task
    except asyncio.CancelledError:
        pass

    logger.info("Daemon stopped.")


if __name__ == "__main__":
    asyncio.run(main())
