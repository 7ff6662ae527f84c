"""
Rate limiting infrastructure.

``SlidingWindowLimiter`` paces outbound requests (webhook posts, osu! API
calls) by making callers wait for budget in arrival order.
``CommandRateLimiter`` rejects Discord commands used too often by one user.
"""

import time
import asyncio
from functools import wraps
from collections import defaultdict, deque
import logging

logger = logging.getLogger(__name__)

class SlidingWindowLimiter:
    """Allows at most ``limit`` acquisitions in any ``interval`` seconds.

    Waiters are served strictly in the order they called ``acquire``: the
    lock is held while waiting for budget, and asyncio locks wake waiters
    first-in first-out.
    """

    def __init__(self, limit: int, interval: float, clock=time.monotonic):
        if limit <= 0 or interval <= 0:
            raise ValueError("limit and interval must be positive")
        self.limit = limit
        self.interval = interval
        self._clock = clock
        self._timestamps = deque()
        self._lock = asyncio.Lock()

    def _prune(self, now: float):
        while self._timestamps and self._timestamps[0] <= now - self.interval:
            self._timestamps.popleft()

    async def acquire(self) -> float:
        """Wait until a request may be made. Returns seconds spent waiting."""
        waited = 0.0
        async with self._lock:
            while True:
                now = self._clock()
                self._prune(now)
                if len(self._timestamps) < self.limit:
                    self._timestamps.append(now)
                    return waited

                delay = self._timestamps[0] + self.interval - now
                logger.debug(f"Rate limit reached ({self.limit}/{self.interval}s), waiting {delay:.2f}s")
                await asyncio.sleep(delay)
                waited += delay

    def remaining(self) -> int:
        """Requests that could be made right now without waiting."""
        self._prune(self._clock())
        return self.limit - len(self._timestamps)


class CommandRateLimiter:
    """In-memory per-user rate limiter for Discord commands.

    Note: request history is kept per user:command pair and never evicted,
    which is fine for a roster-sized audience.
    """

    def __init__(self, clock=time.time):
        self._requests = defaultdict(deque)
        self._lock = asyncio.Lock()
        self._clock = clock

    async def is_allowed(self, user_id: int, command: str, limit: int, window: int) -> bool:
        """Check if user can execute command within rate limit."""
        if limit <= 0 or window <= 0:
            return False

        key = f"{user_id}:{command}"
        now = self._clock()

        async with self._lock:
            while self._requests[key] and self._requests[key][0] < now - window:
                self._requests[key].popleft()

            if len(self._requests[key]) < limit:
                self._requests[key].append(now)
                return True

            return False

def rate_limit(command: str, limit: int = 1, window: int = 60):
    """Decorator for rate limiting Discord commands."""
    def decorator(func):
        @wraps(func)
        async def wrapper(self, interaction, *args, **kwargs):
            rate_limiter = self.bot.rate_limiter

            # Bot owner bypasses rate limits
            from dailybot.config import Config
            if interaction.user.id == Config.OWNER_DISCORD_ID:
                return await func(self, interaction, *args, **kwargs)

            if not await rate_limiter.is_allowed(interaction.user.id, command, limit, window):
                await interaction.response.send_message(
                    f"⏰ Rate limit exceeded. Please wait before using `/{command}` again.",
                    ephemeral=True
                )
                return

            return await func(self, interaction, *args, **kwargs)
        return wrapper
    return decorator
