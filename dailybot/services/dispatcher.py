"""
Rate-limited delivery of score notifications to a Discord webhook.
"""

import asyncio
import logging
from contextlib import suppress
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

import aiohttp
import discord

from dailybot.constants import TrackerConstants
from dailybot.services.rate_limiter import SlidingWindowLimiter
from dailybot.utils.exceptions import DispatchError

logger = logging.getLogger(__name__)


@dataclass
class WebhookMessage:
    """Payload of one webhook post."""
    username: Optional[str] = None
    avatar_url: Optional[str] = None
    embeds: List[discord.Embed] = field(default_factory=list)
    content: Optional[str] = None


class WebhookTransport:
    """Posts ``WebhookMessage`` payloads to a Discord webhook URL."""

    def __init__(self, url: str, session: aiohttp.ClientSession):
        self.webhook = discord.Webhook.from_url(url, session=session)

    async def __call__(self, message: WebhookMessage):
        kwargs = {"embeds": message.embeds}
        if message.content:
            kwargs["content"] = message.content
        if message.username:
            kwargs["username"] = message.username
        if message.avatar_url:
            kwargs["avatar_url"] = message.avatar_url

        try:
            return await self.webhook.send(**kwargs)
        except discord.HTTPException as e:
            raise DispatchError(e.text, e.status) from e
        except aiohttp.ClientError as e:
            raise DispatchError(str(e)) from e


class NotificationDispatcher:
    """Serialises notification posts under a request budget.

    ``send`` never blocks: it queues the notification and returns a future.
    A single worker task releases queued notifications in submission order
    as the budget allows. A failed post is logged and reported through its
    future only; it is not retried and does not hold up the queue.
    """

    def __init__(
        self,
        transport: Callable[[Any], Awaitable[Any]],
        limit: int = 5,
        interval: float = 5.0,
        limiter: Optional[SlidingWindowLimiter] = None,
    ):
        self.transport = transport
        self.limiter = limiter or SlidingWindowLimiter(limit, interval)
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None
        self.sent = 0
        self.failed = 0

    @property
    def pending(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    def send(self, notification) -> asyncio.Future:
        """Queue a notification. The future resolves once it was posted."""
        future = asyncio.get_running_loop().create_future()
        self._ensure_worker()
        self._queue.put_nowait((notification, future))
        return future

    def _ensure_worker(self):
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="notification-dispatcher")

    async def _run(self):
        while True:
            notification, future = await self._queue.get()
            try:
                if future.cancelled():
                    continue

                await self.limiter.acquire()
                try:
                    result = await self.transport(notification)
                except Exception as e:
                    self.failed += 1
                    logger.error(f"Failed to deliver notification: {e}")
                    if not future.done():
                        future.set_exception(e)
                else:
                    self.sent += 1
                    if not future.done():
                        future.set_result(result)
            except asyncio.CancelledError:
                future.cancel()
                raise
            finally:
                self._queue.task_done()

    async def close(self, timeout: float = TrackerConstants.DISPATCH_DRAIN_TIMEOUT):
        """Let queued notifications drain for up to ``timeout`` seconds, then stop."""
        if self._queue is not None and self._worker is not None and not self._worker.done():
            try:
                await asyncio.wait_for(self._queue.join(), timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Dispatcher closed with {self.pending} notification(s) still queued")

        if self._worker is not None:
            self._worker.cancel()
            with suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None

        # Anything still queued will never be sent
        while self._queue is not None and not self._queue.empty():
            _, future = self._queue.get_nowait()
            future.cancel()
