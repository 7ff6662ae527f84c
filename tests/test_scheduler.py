"""Tests for polling: dailybot.services.score_feed and dailybot.services.scheduler."""
from dailybot.data_models.challenge import TrackedPlayer
from dailybot.services.dedup_ledger import DedupLedger
from dailybot.services.score_feed import ScoreFeed
from tests.conftest import FakeAPI, make_score


class TestScoreFeed:
    async def test_fetch_new_stops_at_first_seen_id(self):
        api = FakeAPI()
        api.set_recent(7, [make_score(i) for i in range(100, 106)])
        ledger = DedupLedger()
        ledger.mark_seen(7, 103)
        feed = ScoreFeed(api, ledger, page_size=2)

        found = await feed.fetch_new(7)

        assert [score.id for score in found] == [105, 104]
        # The page holding 103 is the last one requested
        assert api.pages_requested[7] == 2

    async def test_fetch_new_does_not_mark_ledger(self):
        api = FakeAPI()
        api.set_recent(7, [make_score(1)])
        ledger = DedupLedger()

        await ScoreFeed(api, ledger).fetch_new(7)

        assert len(ledger) == 0

    async def test_fetch_missing_finds_gaps_behind_seen_scores(self):
        api = FakeAPI()
        api.set_recent(3, [make_score(54, user_id=3), make_score(55, user_id=3), make_score(56, user_id=3)])
        ledger = DedupLedger()
        ledger.mark_seen(3, 54)
        ledger.mark_seen(3, 56)
        feed = ScoreFeed(api, ledger)

        assert await feed.fetch_new(3) == []
        assert [score.id for score in await feed.fetch_missing(3)] == [55]

    async def test_fetch_missing_respects_recovery_window(self):
        api = FakeAPI()
        api.set_recent(7, [make_score(i) for i in range(1, 11)])
        feed = ScoreFeed(api, DedupLedger(), recovery_window=3)

        assert [score.id for score in await feed.fetch_missing(7)] == [10, 9, 8]

    async def test_collect_merges_sorted_and_isolates_failures(self):
        api = FakeAPI()
        api.set_recent(1, [make_score(30, user_id=1), make_score(10, user_id=1)])
        api.set_recent(2, [make_score(20, user_id=2)])
        api.failing.add(3)
        feed = ScoreFeed(api, DedupLedger())

        batch = await feed.collect([1, 2, 3])

        assert [score.id for score in batch] == [10, 20, 30]


class TestPollingScheduler:
    async def test_refresh_ingests_all_players_in_id_order(self, make_tracker, api, challenges):
        challenges.players = [TrackedPlayer(osu_id=player_id) for player_id in (1, 2, 3)]
        api.set_recent(1, [make_score(5, user_id=1), make_score(2, user_id=1)])
        api.set_recent(2, [make_score(4, user_id=2)])
        api.failing.add(3)

        tracker = make_tracker()
        order = []
        tracker.subscribe(lambda score: order.append(score.id))

        assert await tracker.scheduler.refresh() == 3
        assert order == [2, 4, 5]

        # Nothing new on the next tick
        assert await tracker.scheduler.refresh() == 0
        assert order == [2, 4, 5]

    async def test_recovery_sweep_replays_missing_score(self, make_tracker, api, challenges):
        challenges.players = [TrackedPlayer(osu_id=3)]
        api.set_recent(3, [make_score(54, user_id=3), make_score(55, user_id=3), make_score(56, user_id=3)])

        tracker = make_tracker()
        tracker.ledger.mark_seen(3, 54)
        tracker.ledger.mark_seen(3, 56)
        recovered = []
        tracker.subscribe(lambda score: recovered.append(score.id))

        assert await tracker.scheduler.recover_lost_scores() == 1
        assert recovered == [55]
        assert tracker.ledger.has_seen(3, 55)

    async def test_recovery_with_nothing_missing(self, tracker, api):
        api.set_recent(7, [make_score(1)])
        tracker.ledger.mark_seen(7, 1)

        assert await tracker.scheduler.recover_lost_scores() == 0

    async def test_intervals_applied_to_loops(self, make_tracker):
        tracker = make_tracker(refresh_interval=15, recovery_interval=600)

        assert tracker.scheduler.refresh_loop.seconds == 15
        assert tracker.scheduler.recovery_loop.seconds == 600
        assert not tracker.scheduler.is_running
