from __future__ import annotations

import logging
import sys
from typing import Optional, Union

ROOT = "factorsort"
FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"


def get_logger(
    name: str = ROOT, level: Optional[Union[int, str]] = None
) -> logging.Logger:
    """Return a package logger writing to stdout.

    Only the ``factorsort`` root logger carries a handler; module loggers
    (``factorsort.breakpoints`` etc.) propagate to it so a single call to
    :func:`set_level` controls the whole package.
    """
    root = logging.getLogger(ROOT)
    if not root.handlers:  # configure once
        root.setLevel(logging.INFO)
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(logging.Formatter(FORMAT))
        root.addHandler(h)
        root.propagate = False
    if name != ROOT and not name.startswith(ROOT + "."):
        name = f"{ROOT}.{name}"
    logger = logging.getLogger(name)
    if level is not None:
        logger.setLevel(level)
    return logger


def set_level(level: Union[int, str]) -> None:
    get_logger().setLevel(level)
