"""Shared fixtures and fakes for the tracker tests.

External services (osu! API, Discord webhook, announcement channel) are
replaced with in-memory fakes. Database tests use a temporary SQLite file
through aiosqlite.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Dict, List

import pytest

from dailybot.data_models.challenge import ChallengeMap, TrackedPlayer
from dailybot.data_models.score import Score, ScoreStatistics
from dailybot.services.score_log import ScoreLog
from dailybot.services.tracker import ScoreTracker
from dailybot.utils.exceptions import ScoreSourceError
from dailybot.utils.mods import ModRequirement

MAP_ID = 4242
MAP_START = datetime(2024, 3, 1, tzinfo=timezone.utc)
MAP_END = MAP_START + timedelta(days=1)


def make_score(score_id: int, user_id: int = 7, value: int = 100_000, beatmap_id: int = MAP_ID,
               mods=(), created_at: datetime = None, username: str = None) -> Score:
    return Score(
        id=score_id,
        user_id=user_id,
        beatmap_id=beatmap_id,
        value=value,
        mods=tuple(mods),
        accuracy=0.9876,
        statistics=ScoreStatistics(count_300=500, count_100=10, count_50=1, count_miss=2),
        max_combo=700,
        created_at=created_at or MAP_START + timedelta(minutes=score_id),
        rank="A",
        username=username,
    )


def make_map(map_id: int = MAP_ID, mods: str = "", freemod: bool = False, index: int = 0,
             starts_at: datetime = MAP_START, ends_at: datetime = MAP_END, schedule_id: int = 1) -> ChallengeMap:
    return ChallengeMap(
        map_id=map_id,
        mods=ModRequirement.parse(mods, freemod),
        index=index,
        starts_at=starts_at,
        ends_at=ends_at,
        title="Artist - Song [Hard]",
        max_combo=800,
        schedule_id=schedule_id,
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeAPI:
    """Serves canned recent scores, newest first, with offset paging."""

    def __init__(self):
        self.recent: Dict[int, List[Score]] = {}
        self.failing = set()
        self.pages_requested: Dict[int, int] = {}

    def set_recent(self, player_id: int, scores: List[Score]):
        self.recent[player_id] = sorted(scores, key=lambda s: s.id, reverse=True)

    async def iter_recent_scores(self, user_id: int, page_size: int = 5, limit: int = 100):
        if user_id in self.failing:
            raise ScoreSourceError(user_id, "boom", 500)
        scores = self.recent.get(user_id, [])[:limit]
        for offset in range(0, len(scores), page_size):
            self.pages_requested[user_id] = self.pages_requested.get(user_id, 0) + 1
            # let other fetches interleave like real requests would
            await asyncio.sleep(0)
            for score in scores[offset:offset + page_size]:
                yield score


class FakeChallenges:
    """Map provider with a fixed schedule and roster."""

    def __init__(self, maps: List[ChallengeMap] = None, players: List[int] = ()):
        self.maps = list(maps if maps is not None else [make_map()])
        self.current_map = self.maps[-1] if self.maps else None
        self.players = [TrackedPlayer(osu_id=player_id) for player_id in players]
        self.listeners = []
        self.message_ids = {}

    def get_players(self):
        return list(self.players)

    def get_discord_id(self, osu_id):
        return None

    def add_listener(self, listener):
        self.listeners.append(listener)

    async def check_rotation(self):
        return False

    async def set_message_id(self, challenge_map, message_id):
        self.message_ids[challenge_map.schedule_id] = message_id


class FakeDispatcher:
    """Records notifications; deliveries resolve immediately."""

    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail
        self.closed = False

    def send(self, notification):
        self.sent.append(notification)
        future = asyncio.get_running_loop().create_future()
        if self.fail:
            future.set_exception(RuntimeError("webhook down"))
        else:
            future.set_result(None)
        return future

    async def close(self):
        self.closed = True


class FakeAnnouncer:
    def __init__(self):
        self.announced = []
        self.refreshed = []

    async def announce(self, challenge_map):
        self.announced.append(challenge_map)
        return 555

    async def refresh(self, challenge_map, standings):
        self.refreshed.append((challenge_map.map_id, [score.id for _, score in standings]))


def build_notification(challenge_map, score):
    return (challenge_map.map_id, score.id)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def api():
    return FakeAPI()


@pytest.fixture
def challenges():
    return FakeChallenges(players=[7])


@pytest.fixture
def dispatcher():
    return FakeDispatcher()


@pytest.fixture
def announcer():
    return FakeAnnouncer()


@pytest.fixture
def score_log(tmp_path):
    return ScoreLog(tmp_path / "scores")


@pytest.fixture
async def make_tracker(api, challenges, score_log, dispatcher, announcer):
    """Factory so a test can build a second tracker over the same log."""
    created = []

    def factory(**overrides):
        kwargs = dict(
            api=api,
            challenges=challenges,
            score_log=score_log,
            dispatcher=dispatcher,
            notification_builder=build_notification,
            announcer=announcer,
            page_size=2,
            recovery_window=50,
        )
        kwargs.update(overrides)
        created.append(ScoreTracker(**kwargs))
        return created[-1]

    yield factory

    for tracker in created:
        await tracker.drain()


@pytest.fixture
def tracker(make_tracker):
    return make_tracker()
