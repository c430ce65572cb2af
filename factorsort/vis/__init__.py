"""Plotting helpers (requires matplotlib)."""

from .plots import line_cumret, plot_factor_comparison

__all__ = ["line_cumret", "plot_factor_comparison"]
