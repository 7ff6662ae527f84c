"""Integration tests for dailybot.services.challenge_store.

Uses a temporary SQLite file through aiosqlite.
"""
from datetime import datetime, timedelta, timezone

import pytest

from dailybot.database.database import Database
from dailybot.services.challenge_store import ChallengeStore
from dailybot.utils.exceptions import MapNotFoundError

DAY = timedelta(days=1)
NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'dailies.db'}")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
async def store(db, clock):
    challenge_store = ChallengeStore(db, clock=clock)
    await challenge_store.load()
    return challenge_store


class TestRoster:
    async def test_track_and_reload(self, db, store, clock):
        await store.track_player(124493, username="Cookiezi", discord_id=55)

        reloaded = ChallengeStore(db, clock=clock)
        await reloaded.load()

        player = reloaded.get_player(124493)
        assert player.username == "Cookiezi"
        assert reloaded.get_discord_id(124493) == 55
        assert reloaded.get_player_by_discord(55) == player

    async def test_track_again_updates_existing(self, store):
        await store.track_player(1, username="old")
        await store.track_player(1, username="new", discord_id=9)

        assert [p.username for p in store.get_players()] == ["new"]
        assert store.get_discord_id(1) == 9

    async def test_untrack(self, db, store, clock):
        await store.track_player(1)

        assert await store.untrack_player(1) is True
        assert await store.untrack_player(1) is False
        assert store.get_player(1) is None

        reloaded = ChallengeStore(db, clock=clock)
        await reloaded.load()
        assert reloaded.get_players() == []

    async def test_retracking_reactivates(self, store):
        await store.track_player(1, username="a")
        await store.untrack_player(1)
        await store.track_player(1)

        assert store.get_player(1).username == "a"


class TestSchedule:
    async def test_rotation_notifies_listeners_once(self, store):
        seen = []

        async def listener(challenge_map):
            seen.append(challenge_map.map_id)

        store.add_listener(listener)
        await store.schedule_map(100, NOW - DAY / 2, NOW + DAY / 2, required_mods="HD")

        assert await store.check_rotation() is True
        assert await store.check_rotation() is False
        assert seen == [100]
        assert store.current_map.map_id == 100
        assert store.current_map.mods.friendly == "HD"

    async def test_rotates_to_next_map(self, store, clock):
        await store.schedule_map(100, NOW - DAY / 2, NOW + DAY / 2)
        await store.schedule_map(200, NOW + DAY / 2, NOW + DAY * 1.5, freemod=True)
        await store.check_rotation()

        clock.now = NOW + DAY
        assert await store.check_rotation() is True
        assert store.current_map.map_id == 200
        assert store.current_map.index == 1

    async def test_last_started_map_stays_current_between_windows(self, store, clock):
        await store.schedule_map(100, NOW - DAY, NOW - DAY / 2)
        await store.schedule_map(200, NOW + DAY, NOW + DAY * 2)

        await store.check_rotation()
        assert store.current_map.map_id == 100

    async def test_nothing_started_yet(self, store):
        await store.schedule_map(100, NOW + DAY, NOW + DAY * 2)

        assert await store.check_rotation() is False
        assert store.current_map is None

    async def test_map_at(self, store):
        await store.schedule_map(100, NOW - DAY, NOW)
        await store.schedule_map(200, NOW, NOW + DAY)

        assert store.map_at(NOW - DAY / 2).map_id == 100
        assert store.map_at(NOW).map_id == 200
        assert store.map_at(NOW + DAY * 3) is None

    async def test_mod_checks(self, store):
        await store.schedule_map(100, NOW - DAY, NOW + DAY, required_mods="HDDT")
        await store.check_rotation()

        assert store.test_mods(100, ["HD", "NC"])
        assert not store.test_mods(100, ["HD"])
        assert not store.test_mods(999, [])
        assert store.friendly_mods(100) == "DTHD"
        with pytest.raises(MapNotFoundError):
            store.friendly_mods(999)

    async def test_mod_check_for_map_scheduled_twice(self, store):
        await store.schedule_map(100, NOW - DAY * 2, NOW - DAY, required_mods="HD")
        await store.schedule_map(100, NOW - DAY, NOW + DAY, required_mods="HR")
        await store.check_rotation()

        assert store.test_mods(100, ["HD"], when=NOW - DAY * 3 / 2)
        assert not store.test_mods(100, ["HR"], when=NOW - DAY * 3 / 2)
        assert store.test_mods(100, ["HR"], when=NOW)
        assert store.test_mods(100, ["HR"])

    async def test_message_id_is_persisted(self, db, store, clock):
        challenge_map = await store.schedule_map(100, NOW - DAY, NOW + DAY)

        updated = await store.set_message_id(challenge_map, 777)
        assert updated.message_id == 777

        reloaded = ChallengeStore(db, clock=clock)
        await reloaded.load()
        assert reloaded.get_map(100).message_id == 777

    async def test_invalid_window_rejected(self, store):
        with pytest.raises(ValueError):
            await store.schedule_map(100, NOW, NOW - DAY)

    async def test_failing_listener_does_not_block_rotation(self, store):
        async def broken(challenge_map):
            raise RuntimeError("discord down")

        store.add_listener(broken)
        await store.schedule_map(100, NOW - DAY, NOW + DAY)

        assert await store.check_rotation() is True
        assert store.current_map.map_id == 100
