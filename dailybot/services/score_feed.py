"""
Detection of new scores on top of the osu! recent scores cursor.

Fetching never mutates the ledger. The tracker marks scores as seen when it
ingests them, from a single sequential merge step.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Iterable, List

from dailybot.constants import TrackerConstants
from dailybot.data_models.score import Score
from dailybot.services.dedup_ledger import DedupLedger

logger = logging.getLogger(__name__)


class ScoreFeed:
    """Finds scores the ledger has not seen yet."""

    def __init__(
        self,
        api,
        ledger: DedupLedger,
        page_size: int = 5,
        recovery_window: int = TrackerConstants.MAX_RECENT_SCORES,
    ):
        """
        Args:
            api: score source exposing ``iter_recent_scores(user_id, page_size, limit)``
            ledger: ledger consulted for already processed ids
            page_size: scores requested per page during a regular poll
            recovery_window: recent scores inspected by a recovery sweep
        """
        self.api = api
        self.ledger = ledger
        self.page_size = page_size
        self.recovery_window = recovery_window

    async def fetch_new(self, player_id: int) -> List[Score]:
        """New scores of one player, newest first.

        Stops at the first id already in the ledger: the feed is newest
        first, so everything after it has been processed before.
        """
        scores = []
        async for score in self.api.iter_recent_scores(player_id, page_size=self.page_size):
            if self.ledger.has_seen(player_id, score.id):
                break
            scores.append(score)
        return scores

    async def fetch_missing(self, player_id: int) -> List[Score]:
        """Every score in the recent window the ledger does not know about.

        Unlike ``fetch_new`` this does not stop early, so gaps left by
        downtime or out-of-order delivery are found as well.
        """
        scores = []
        async for score in self.api.iter_recent_scores(
            player_id, page_size=self.page_size * 2, limit=self.recovery_window
        ):
            if not self.ledger.has_seen(player_id, score.id):
                scores.append(score)
        return scores

    async def collect(
        self,
        player_ids: Iterable[int],
        fetch: Callable[[int], Awaitable[List[Score]]] = None,
    ) -> List[Score]:
        """Fetch all players concurrently and merge into one batch sorted by id.

        A failing player is logged and contributes nothing; the other
        players' results are still returned.
        """
        fetch = fetch or self.fetch_new
        player_ids = list(player_ids)

        async def fetch_isolated(player_id: int) -> List[Score]:
            try:
                return await fetch(player_id)
            except Exception as e:
                logger.error(f"Error getting scores for player {player_id}: {e}")
                return []

        results = await asyncio.gather(*(fetch_isolated(player_id) for player_id in player_ids))

        batch = {}
        for scores in results:
            for score in scores:
                batch[score.id] = score
        return [batch[score_id] for score_id in sorted(batch)]
