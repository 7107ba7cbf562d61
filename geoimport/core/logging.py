"""Loguru configuration for the import framework."""

from __future__ import annotations

import sys
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from geoimport.core import config


def configure_logging(settings: config.Settings) -> int:
    """Replace loguru's default sink with one honouring the configured level.

    Args:
        settings: Settings providing ``log_level``.

    Returns:
        The id of the installed loguru handler.
    """
    logger.remove()
    return logger.add(
        sys.stderr,
        level=settings.log_level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan> - {message}"
        ),
    )
