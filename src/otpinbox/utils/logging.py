"""Logging helpers with consistent formatting."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from rich.logging import RichHandler

from otpinbox.utils.env import get_bool_env


def get_logger(name: str, level: int = logging.INFO, *, rich: Optional[bool] = None) -> logging.Logger:
    """Configure and return a logger.

    ``rich`` defaults to the ``OTPINBOX_RICH_LOGS`` flag so container logs can
    fall back to plain lines.
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    if rich is None:
        rich = get_bool_env("OTPINBOX_RICH_LOGS", default=True)
    if get_bool_env("OTPINBOX_DEBUG"):
        level = logging.DEBUG

    logger.setLevel(level)

    if rich:
        handler: logging.Handler = RichHandler(
            level=level,
            markup=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            show_time=True,
            show_path=False,
        )
        formatter = logging.Formatter("%(name)s: %(message)s")
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setLevel(level)
        formatter = logging.Formatter(
            "%(asctime)s %(name)s %(levelname)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.propagate = False
    return logger
