"""Shared CLI plumbing: logging setup and graceful shutdown."""

from __future__ import annotations

import logging
import signal
import sys
from types import FrameType
from typing import Protocol

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
LOG_LEVEL_ENVVAR = "BUSPROBE_LOG_LEVEL"


class Stoppable(Protocol):
    def stop(self) -> None: ...


# Global client reference for shutdown handler
_client: Stoppable | None = None


def setup_logging(log_level: str = "INFO") -> None:
    """Configure process-wide logging once and apply the requested level."""
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    logging.getLogger().setLevel(getattr(logging, log_level.upper()))


def shutdown_handler(signum: int, frame: FrameType | None) -> None:
    """Handle graceful shutdown on SIGTERM or SIGINT."""
    logger.info("Shutting down...")
    if _client:
        _client.stop()
    sys.exit(0)


def set_shutdown_client(client: Stoppable) -> None:
    """Set the client for shutdown handling and register signal handlers."""
    global _client
    _client = client

    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)
