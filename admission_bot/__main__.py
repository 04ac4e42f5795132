"""
Entry point: ``python -m admission_bot`` or the ``admission-bot`` script.

Configuration is read from the environment once; anything missing stops
the process before the HTTP server binds.
"""

import logging
import os
import sys

from .dispatcher import EventDispatcher
from .messenger import SlackMessenger
from .runner import AdmissionConfig, AdmissionRunner
from .slack_adapter import SlackAdapter

logger = logging.getLogger("admission_bot")


def setup_logging(level: str = "INFO"):
    """Configure logging to stdout for the 'admission_bot' namespace."""
    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )
    handler.setFormatter(formatter)

    root = logging.getLogger("admission_bot")
    root.setLevel(level.upper())
    root.addHandler(handler)


def build_adapter() -> SlackAdapter:
    """Wire config, messenger, runner and dispatcher from the environment."""
    config = AdmissionConfig.from_env()
    messenger = SlackMessenger()
    runner = AdmissionRunner(config=config, messenger=messenger)
    return SlackAdapter(EventDispatcher(runner))


def main():
    setup_logging(os.environ.get("LOG_LEVEL", "INFO"))
    try:
        adapter = build_adapter()
    except ValueError as e:
        logger.error(f"Startup aborted: {e}")
        sys.exit(1)

    config = adapter.runner.config
    logger.info(f"Starting {config.bot_name} v{config.version}...")
    adapter.start()


if __name__ == "__main__":
    main()
