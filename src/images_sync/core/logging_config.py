"""Centralized logging configuration for images sync."""

import logging
import multiprocessing
import os
import sys
from typing import Optional

ROOT_LOGGER_NAME = "images-sync"

STRUCTURED_FORMAT = (
    "%(asctime)s | %(name)s | %(levelname)-8s | "
    "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s"
)
SIMPLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _resolve_level(level: Optional[str]) -> int:
    name = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    return getattr(logging, name, logging.INFO)


def _build_formatter(format_type: str) -> logging.Formatter:
    if os.getenv("LOG_FORMAT", format_type).lower() == "structured":
        return logging.Formatter(STRUCTURED_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    return logging.Formatter(SIMPLE_FORMAT)


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Configure and return a stdout logger.

    Args:
        name: Logger name
        level: Level name; falls back to ``LOG_LEVEL`` and then INFO
        format_type: "structured" or "simple"; ``LOG_FORMAT`` overrides it

    The handler is attached once per logger name, so repeated calls only
    adjust the level.
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(_build_formatter(format_type))
        logger.addHandler(handler)

    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    return setup_logger(name)


def configure_multiprocessing_logging() -> None:
    """Give a transcode process its own ``images-sync.<process name>`` logger."""
    setup_logger(f"{ROOT_LOGGER_NAME}.{multiprocessing.current_process().name}")


def set_debug_logging(enabled: bool) -> None:
    """Switch every images-sync logger, and the root logger, to DEBUG."""
    if not enabled:
        return
    logging.getLogger().setLevel(logging.DEBUG)
    for name in list(logging.root.manager.loggerDict):
        if name.startswith(ROOT_LOGGER_NAME):
            logging.getLogger(name).setLevel(logging.DEBUG)


logger = setup_logger()
