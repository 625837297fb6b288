"""
Logging configuration
"""
import os
import sys

from loguru import logger

from shipdesk.config import settings


def setup_logger():
    """Configure logger with appropriate settings"""
    logger.remove()  # Remove default handler

    # Console logging
    logger.add(
        sys.stdout,
        colorize=True,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=settings.LOG_LEVEL
    )

    # An empty LOG_DIR keeps logging on stdout only
    if not settings.LOG_DIR:
        return logger

    logger.add(
        os.path.join(settings.LOG_DIR, "shipdesk_{time:YYYY-MM-DD}.log"),
        rotation="00:00",
        retention="30 days",
        compression="zip",
        level="INFO"
    )

    logger.add(
        os.path.join(settings.LOG_DIR, "errors_{time:YYYY-MM-DD}.log"),
        rotation="00:00",
        retention="90 days",
        level="ERROR"
    )

    return logger


log = setup_logger()
