"""
Periodic polling of the tracked roster.

Two background loops drive the tracker: a fast refresh that picks up new
scores since the last poll, and an optional slower recovery sweep that looks
for scores missed entirely (downtime, API hiccups).
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from discord.ext import tasks

logger = logging.getLogger(__name__)


class PollingScheduler:
    """Runs the refresh and recovery loops for a ``ScoreTracker``."""

    def __init__(self, tracker, refresh_interval: float = 60.0, recovery_interval: float = 0.0,
                 wait_ready: Optional[Callable[[], Any]] = None):
        self.tracker = tracker
        self.refresh_interval = refresh_interval
        self.recovery_interval = recovery_interval
        self._wait_ready = wait_ready

        self.refresh_loop.change_interval(seconds=refresh_interval)
        if recovery_interval > 0:
            self.recovery_loop.change_interval(seconds=recovery_interval)

    @property
    def is_running(self) -> bool:
        return self.refresh_loop.is_running()

    def start(self):
        if not self.refresh_loop.is_running():
            self.refresh_loop.start()
        if self.recovery_interval > 0 and not self.recovery_loop.is_running():
            self.recovery_loop.start()
        logger.info(
            f"Polling started (refresh every {self.refresh_interval}s, "
            f"recovery {'every ' + str(self.recovery_interval) + 's' if self.recovery_interval > 0 else 'at startup only'})"
        )

    def stop(self):
        """Stop after the current iteration; an in-flight poll is not cancelled."""
        self.refresh_loop.stop()
        self.recovery_loop.stop()

    def _player_ids(self):
        return [player.osu_id for player in self.tracker.challenges.get_players()]

    async def refresh(self) -> int:
        """Poll every tracked player once and ingest the merged batch.

        Returns:
            Number of new scores found
        """
        await self.tracker.challenges.check_rotation()

        scores = await self.tracker.feed.collect(self._player_ids(), self.tracker.feed.fetch_new)
        if scores:
            logger.debug(f"Found {len(scores)} new scores")
            await self.tracker.ingest_batch(scores)
        return len(scores)

    async def recover_lost_scores(self) -> int:
        """Replay recent scores that never made it into the ledger.

        Returns:
            Number of recovered scores
        """
        logger.info("Checking for lost scores")
        scores = await self.tracker.feed.collect(self._player_ids(), self.tracker.feed.fetch_missing)
        if not scores:
            logger.info("No scores to recover")
            return 0

        logger.info(f"Recovering {len(scores)} lost scores")
        await self.tracker.ingest_batch(scores)
        return len(scores)

    @tasks.loop(seconds=60)
    async def refresh_loop(self):
        try:
            await self.refresh()
        except Exception as e:
            logger.error(f"Error in score refresh task: {e}", exc_info=True)

    @tasks.loop(seconds=3600)
    async def recovery_loop(self):
        try:
            await self.recover_lost_scores()
        except Exception as e:
            logger.error(f"Error in score recovery task: {e}", exc_info=True)

    @refresh_loop.before_loop
    async def before_refresh(self):
        if self._wait_ready is not None:
            await self._wait_ready()

    @recovery_loop.before_loop
    async def before_recovery(self):
        if self._wait_ready is not None:
            await self._wait_ready()
        # The startup sweep already ran during load
        await asyncio.sleep(self.recovery_interval)
