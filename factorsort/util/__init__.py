"""Utility functions and helpers for the factorsort package."""

from .arrays import as_float
from .logging import get_logger, set_level

__all__ = ["as_float", "get_logger", "set_level"]
