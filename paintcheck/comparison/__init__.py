"""Baseline capture and comparison: compositor fingerprints with pixel fallback."""

from paintcheck.comparison.diff_engine import diff_commands
from paintcheck.comparison.service import ComparisonService, resolve_mode

__all__ = ["ComparisonService", "diff_commands", "resolve_mode"]
