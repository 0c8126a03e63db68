"""
Logging configuration

One loguru logger for the whole app. Besides the console, the daily app log
and the error log, Google traffic (Content API connector and OAuth) gets its
own file so access problems can be traced per merchant account.
"""
import os
import sys

from loguru import logger

from merchantdesk.config import get_settings

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)

_GOOGLE_MODULES = (
    "merchantdesk.connectors",
    "merchantdesk.services.google_oauth_service",
)


def _is_google_traffic(record) -> bool:
    return record["name"].startswith(_GOOGLE_MODULES)


def setup_logger(settings=None):
    settings = settings or get_settings()
    os.makedirs(settings.log_dir, exist_ok=True)
    logger.remove()

    logger.add(sys.stdout, colorize=True, format=CONSOLE_FORMAT, level=settings.log_level)

    logger.add(
        os.path.join(settings.log_dir, "merchantdesk_{time:YYYY-MM-DD}.log"),
        rotation="00:00",
        retention="14 days",
        compression="zip",
        level=settings.log_level,
    )

    logger.add(
        os.path.join(settings.log_dir, "google_api_{time:YYYY-MM-DD}.log"),
        rotation="00:00",
        retention="14 days",
        level="DEBUG" if settings.debug else "INFO",
        filter=_is_google_traffic,
    )

    logger.add(
        os.path.join(settings.log_dir, "errors_{time:YYYY-MM-DD}.log"),
        rotation="00:00",
        retention="60 days",
        level="ERROR",
        backtrace=settings.debug,
    )

    return logger


log = setup_logger()
