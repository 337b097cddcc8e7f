"""
Utility modules for the translator
"""
from .rate_limiter import BurstDispatcher, RateLimitConfig, ReleaseOrder, TaskQueue
from .progress_tracker import ProgressTracker, ProgressTrackerFactory

__all__ = [
    'BurstDispatcher', 'RateLimitConfig', 'ReleaseOrder', 'TaskQueue',
    'ProgressTracker', 'ProgressTrackerFactory',
]
