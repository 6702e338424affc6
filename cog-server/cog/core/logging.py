"""Process-wide logging setup."""

import logging

from cog.core.config import Settings


def configure_logging(settings: Settings) -> None:
    level = "DEBUG" if settings.debug else settings.logging.level.upper()
    logging.basicConfig(level=level, format=settings.logging.format)
