"""Logging setup for storefront client entry points."""
import logging

from core.config import Settings, get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure root logging from settings.

    Safe to call more than once; logging.basicConfig is a no-op when the root
    logger already has handlers, so only the level is updated in that case.
    """
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level, format=LOG_FORMAT)
    logging.getLogger().setLevel(settings.log_level)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
