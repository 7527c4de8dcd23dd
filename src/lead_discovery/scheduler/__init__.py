"""
Scheduler package for recurring and on-demand discovery runs.
"""

from .scheduler import DiscoveryScheduler, calculate_next_run

__all__ = ["DiscoveryScheduler", "calculate_next_run"]
