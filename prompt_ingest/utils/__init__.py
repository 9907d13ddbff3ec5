"""
Shared utilities.
"""

from .best_effort import BestEffort, best_effort

__all__ = ["BestEffort", "best_effort"]
