"""Logging configuration for applications embedding the broker."""

import logging
import sys

from latchkey.config import OAuthSettings


def setup_logging(settings: OAuthSettings) -> None:
    """Configure application logging.

    Args:
        settings: Broker settings
    """
    level = logging.getLevelName(settings.log_level)

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,  # Override any existing configuration
    )

    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.WARNING)

    logging.getLogger("latchkey").setLevel(level)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured: level={settings.log_level}")
