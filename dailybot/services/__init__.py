"""
Services package for the daily challenge tracker.
"""

from .rate_limiter import SlidingWindowLimiter, CommandRateLimiter
from .tracker import ScoreTracker, TrackerState

__all__ = ['SlidingWindowLimiter', 'CommandRateLimiter', 'ScoreTracker', 'TrackerState']
