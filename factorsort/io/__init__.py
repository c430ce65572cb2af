"""Data loading routines."""

from .loaders import load_factors, load_panel, read_sqlite

__all__ = ["load_panel", "load_factors", "read_sqlite"]
