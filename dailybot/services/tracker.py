"""
Daily challenge score tracker.

Ties the pieces of the tracking engine together: new scores found by the
feed are marked in the dedup ledger, written to the score log, checked
against the current daily map and, when they improve a player's best,
posted through the rate-limited dispatcher.

The ledger and the leaderboard are only mutated from ``ingest``, and batch
ingestion runs under a single lock in ascending score id order, so no other
locking is needed around them.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Optional

from dailybot.data_models.challenge import ChallengeMap
from dailybot.data_models.score import Score
from dailybot.services.dedup_ledger import DedupLedger
from dailybot.services.map_leaderboard import MapLeaderboard, Standing
from dailybot.services.scheduler import PollingScheduler
from dailybot.services.score_feed import ScoreFeed
from dailybot.utils.exceptions import ScoreLogError

logger = logging.getLogger(__name__)

ScoreListener = Callable[[Score], Any]
NotificationBuilder = Callable[[ChallengeMap, Score], Any]


class TrackerState(Enum):
    UNINITIALIZED = "uninitialized"
    LOADED = "loaded"
    RUNNING = "running"


class ScoreTracker:
    """Tracks recent scores of the roster against the daily map."""

    def __init__(
        self,
        api,
        challenges,
        score_log,
        dispatcher,
        notification_builder: NotificationBuilder,
        announcer=None,
        page_size: int = 5,
        recovery_window: int = 50,
        refresh_interval: float = 60.0,
        recovery_interval: float = 0.0,
        wait_ready: Optional[Callable[[], Any]] = None,
    ):
        """
        Args:
            api: score source (``OsuAPI`` or compatible)
            challenges: map provider and roster (``ChallengeStore`` or compatible)
            score_log: durable score store (``ScoreLog``)
            dispatcher: rate-limited notification sender (``NotificationDispatcher``)
            notification_builder: builds the payload posted for an accepted score
            announcer: optional announcement surface (``AnnouncementBoard``)
            page_size: scores requested per page when polling
            recovery_window: recent scores inspected by a recovery sweep
            refresh_interval: seconds between regular polls
            recovery_interval: seconds between recovery sweeps, 0 for startup only
            wait_ready: coroutine function awaited before the first scheduled tick
        """
        self.api = api
        self.challenges = challenges
        self.score_log = score_log
        self.dispatcher = dispatcher
        self.notification_builder = notification_builder
        self.announcer = announcer

        self.ledger = DedupLedger()
        self.leaderboard = MapLeaderboard()
        self.feed = ScoreFeed(api, self.ledger, page_size=page_size, recovery_window=recovery_window)
        self.scheduler = PollingScheduler(
            self,
            refresh_interval=refresh_interval,
            recovery_interval=recovery_interval,
            wait_ready=wait_ready,
        )

        self.recording = True
        self.state = TrackerState.UNINITIALIZED
        self._listeners: List[ScoreListener] = []
        self._merge_lock = asyncio.Lock()
        self._background_tasks: set = set()

        challenges.add_listener(self.on_map_changed)

    # Events

    def subscribe(self, listener: ScoreListener) -> ScoreListener:
        """Register a callback invoked synchronously with every new score."""
        self._listeners.append(listener)
        return listener

    def unsubscribe(self, listener: ScoreListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def _emit(self, score: Score):
        for listener in list(self._listeners):
            try:
                listener(score)
            except Exception as e:
                logger.error(f"Score listener {listener!r} failed for score {score.id}: {e}", exc_info=True)

    # Lifecycle

    async def load(self):
        """Rebuild state from the score log and recover scores missed while offline."""
        await self.challenges.check_rotation()
        replayed = await self.replay_scores()
        logger.info(f"Replayed {replayed} stored scores")
        await self.scheduler.recover_lost_scores()
        self.state = TrackerState.LOADED

    def start(self):
        if self.state is TrackerState.UNINITIALIZED:
            raise RuntimeError("Tracker must be loaded before it is started")
        self.scheduler.start()
        self.state = TrackerState.RUNNING

    def stop(self):
        """Stop scheduling polls. A poll already in progress still completes."""
        self.scheduler.stop()
        if self.state is TrackerState.RUNNING:
            self.state = TrackerState.LOADED

    async def drain(self):
        """Wait for pending log writes, notifications and announcement updates."""
        while self._background_tasks:
            await asyncio.gather(*list(self._background_tasks), return_exceptions=True)

    async def close(self):
        self.stop()
        await self.drain()
        await self.dispatcher.close()

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)
        return task

    # Ingestion

    async def replay_scores(self) -> int:
        """Feed every stored score through ingestion without posting or re-storing.

        Scores are checked against the current map exactly as a live poll
        would check them, so tables of maps that already rotated out are not
        rebuilt.
        """
        count = 0
        for score in self.score_log.replay_all():
            await self.ingest(score, should_notify=False, should_persist=False)
            count += 1
        return count

    async def ingest(self, score: Score, should_notify: bool = True, should_persist: bool = True) -> bool:
        """Process one score against the current map.

        Returns:
            True if the score became the player's best on the current map
        """
        self.ledger.mark_seen(score.user_id, score.id)

        if self.recording and should_persist:
            self._spawn(self._persist(score))

        accepted = False
        challenge_map = self.challenges.current_map
        if challenge_map is not None and challenge_map.map_id == score.beatmap_id:
            # the schedule entry being played decides the mods, not the beatmap id
            accepted = self.leaderboard.record_if_best(challenge_map.map_id, score, challenge_map.mods)

            if accepted and should_notify:
                logger.info(f"Processing: {score.id} - {score.best_id}")
                self._post(challenge_map, score)

        self._emit(score)
        return accepted

    async def ingest_batch(self, scores: Iterable[Score], should_notify: bool = True) -> int:
        """Ingest scores sequentially in ascending id order, skipping seen ones.

        Returns:
            Number of scores accepted on the current map's leaderboard
        """
        accepted = 0
        async with self._merge_lock:
            for score in sorted(scores, key=lambda s: s.id):
                if self.ledger.has_seen(score.user_id, score.id):
                    continue
                if await self.ingest(score, should_notify=should_notify):
                    accepted += 1
        return accepted

    async def refresh_player(self, player_id: int, should_ingest: bool = True) -> List[Score]:
        """Poll one player outside the regular schedule.

        Returns:
            Scores the ledger had not seen, newest first. When ``should_ingest``
            is False they are left unmarked so the next poll picks them up.
        """
        try:
            scores = await self.feed.fetch_new(player_id)
        except Exception as e:
            logger.error(f"Error getting user scores for {player_id}: {e}")
            return []

        if should_ingest and scores:
            await self.ingest_batch(scores)
        return scores

    async def _persist(self, score: Score):
        try:
            await asyncio.to_thread(self.score_log.append, score)
        except ScoreLogError as e:
            logger.warning(f"Score {score.id} was not stored: {e}")

    def _post(self, challenge_map: ChallengeMap, score: Score):
        try:
            notification = self.notification_builder(challenge_map, score)
        except Exception as e:
            logger.error(f"Failed to build notification for score {score.id}: {e}", exc_info=True)
            return
        delivery = self.dispatcher.send(notification)
        self._spawn(self._after_post(challenge_map, delivery))

    async def _after_post(self, challenge_map: ChallengeMap, delivery: asyncio.Future):
        try:
            await delivery
        except asyncio.CancelledError:
            return
        except Exception:
            # Already logged by the dispatcher
            pass
        await self.update_map_scores(challenge_map)

    async def update_map_scores(self, challenge_map: Optional[ChallengeMap] = None):
        """Refresh the standings shown on the map's announcement message."""
        challenge_map = challenge_map or self.challenges.current_map
        if self.announcer is None or challenge_map is None:
            return
        # message id may have been assigned after the score was posted
        current = self.challenges.current_map
        if current is not None and current.schedule_id == challenge_map.schedule_id:
            challenge_map = current
        try:
            await self.announcer.refresh(challenge_map, self.leaderboard.query(challenge_map.map_id))
        except Exception as e:
            logger.error(f"Failed to update standings for map {challenge_map.map_id}: {e}")

    async def on_map_changed(self, challenge_map: ChallengeMap):
        """Announce a newly rotated map unless it already has a message."""
        if self.announcer is None or challenge_map.message_id is not None:
            return
        message_id = await self.announcer.announce(challenge_map)
        if message_id is not None:
            await self.challenges.set_message_id(challenge_map, message_id)

    # Queries and toggles

    def toggle_recording(self) -> bool:
        self.recording = not self.recording
        logger.info(f"Score recording {'enabled' if self.recording else 'disabled'}")
        return self.recording

    def get_score(self, map_id: int, player_id: int) -> Optional[Score]:
        return self.leaderboard.get(map_id, player_id)

    def get_map_scores(self, map_id: int) -> List[Standing]:
        return self.leaderboard.query(map_id)

    def get_all_scores(self) -> Dict[int, List[Standing]]:
        return self.leaderboard.query_all()
