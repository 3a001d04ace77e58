#!/usr/bin/env python3
"""
Screenshot daemon entry point.

Loads the configuration, opens the log file, checks the Telegram bot, then
captures the configured page immediately and on every interval until the
process is killed.

Usage:
    python -m page_capture.daemon
    SCREENSHOT_DAEMON_CONFIG=/etc/screenshot-daemon.yaml screenshot-daemon
"""

import asyncio
import logging
import sys

from delivery import TelegramDelivery

from .config import load_config
from .errors import ConfigurationError, DeliveryError
from .log_sink import LogRotationGuard, configure_logging, select_log_path
from .processor import CaptureProcessor
from .scheduler import Scheduler

logger = logging.getLogger(__name__)


async def main():
    try:
        config = load_config()
        log_path = select_log_path()
        configure_logging(log_path, config.log_level)
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    delivery = TelegramDelivery(config.telegram_bot_token)
    try:
        delivery.connect()
    except DeliveryError as e:
        logger.critical("Could not initialise the Telegram bot: %s", e)
        return 1

    logger.info("Daemon started. URL: %s, interval: %s, log: %s",
                config.target.url, config.interval, log_path)
    if config.login is not None:
        logger.info("Login enabled via %s", config.login.url)

    processor = CaptureProcessor(
        config,
        delivery,
        rotation_guard=LogRotationGuard(log_path),
    )
    scheduler = Scheduler(config.interval)
    await scheduler.run(processor.run_one_tick)
    return 0


def run():
    """Console-script entry point."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
