"""Centralised logging configuration utilities."""

import logging
from typing import Optional

from .config.settings import LOGGING_CONFIG


def configure_logging(level: Optional[str] = None) -> None:
    """Configure root logging if it has not been configured yet."""

    if logging.getLogger().handlers:
        return

    logging.basicConfig(
        level=(level or LOGGING_CONFIG["level"]).upper(),
        format=LOGGING_CONFIG["format"],
    )
