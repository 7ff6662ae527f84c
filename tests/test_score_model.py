"""Tests for dailybot.data_models.score and dailybot.utils.mods."""
from datetime import datetime, timezone

import pytest

from dailybot.data_models.score import Score, parse_timestamp
from dailybot.utils.exceptions import ScoreParseError
from dailybot.utils.mods import ModRequirement, format_mods, parse_mods

LEGACY_SCORE = {
    "id": 4518826431,
    "user_id": 124493,
    "best_id": 3812776402,
    "score": 1234567,
    "accuracy": 0.9871,
    "max_combo": 1422,
    "rank": "S",
    "mods": ["HD", "DT"],
    "statistics": {"count_300": 900, "count_100": 12, "count_50": 0, "count_miss": 0},
    "created_at": "2024-03-01T12:30:00Z",
    "beatmap": {"id": 129891},
    "user": {"id": 124493, "username": "Cookiezi"},
}

LAZER_SCORE = {
    "id": 2300000001,
    "user_id": 124493,
    "beatmap_id": 129891,
    "total_score": 987654,
    "legacy_total_score": 0,
    "accuracy": 0.95,
    "max_combo": 800,
    "rank": "A",
    "mods": [{"acronym": "HD"}, {"acronym": "NC", "settings": {"speed_change": 1.5}}],
    "statistics": {"great": 700, "ok": 20, "meh": 3, "miss": 4},
    "ended_at": "2024-03-01T13:00:00+00:00",
}


class TestScoreFromApi:
    def test_legacy_payload(self):
        score = Score.from_api(LEGACY_SCORE)

        assert score.id == 4518826431
        assert score.beatmap_id == 129891
        assert score.value == 1234567
        assert score.mods == ("HD", "DT")
        assert score.statistics.count_300 == 900
        assert score.username == "Cookiezi"
        assert score.best_id == 3812776402
        assert score.created_at == datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)

    def test_lazer_payload(self):
        score = Score.from_api(LAZER_SCORE)

        assert score.beatmap_id == 129891
        assert score.value == 987654
        assert score.mods == ("HD", "NC")
        assert score.statistics.count_100 == 20
        assert score.statistics.count_miss == 4
        assert score.created_at.hour == 13

    @pytest.mark.parametrize("missing", ["id", "beatmap", "score", "created_at"])
    def test_missing_fields_raise(self, missing):
        payload = dict(LEGACY_SCORE)
        del payload[missing]

        with pytest.raises(ScoreParseError):
            Score.from_api(payload)

    def test_username_ignored_for_equality(self):
        payload = dict(LEGACY_SCORE)
        payload.pop("user")

        assert Score.from_api(payload) == Score.from_api(LEGACY_SCORE)

    def test_naive_timestamp_is_utc(self):
        assert parse_timestamp("2024-03-01T00:00:00").tzinfo == timezone.utc


class TestMods:
    def test_parse_mod_string(self):
        assert parse_mods("hdhr") == {"HD", "HR"}
        assert parse_mods("NM") == frozenset()
        assert parse_mods("") == frozenset()
        assert parse_mods(["hd"]) == {"HD"}

    def test_format_uses_canonical_order(self):
        assert format_mods({"HD", "DT", "HR"}) == "HRDTHD"

    def test_exact_requirement(self):
        requirement = ModRequirement.parse("HD")

        assert requirement.is_satisfied_by(["HD"])
        assert not requirement.is_satisfied_by([])
        assert not requirement.is_satisfied_by(["HD", "HR"])

    def test_nomod_requirement(self):
        requirement = ModRequirement.parse("")

        assert requirement.is_satisfied_by([])
        assert not requirement.is_satisfied_by(["HD"])
        assert requirement.friendly == "NM"

    def test_aliases_and_neutral_mods(self):
        requirement = ModRequirement.parse("DT")

        assert requirement.is_satisfied_by(["NC"])
        assert requirement.is_satisfied_by(["DT", "SD"])
        assert requirement.is_satisfied_by(["DT", "PF"])

    def test_freemod(self):
        requirement = ModRequirement.parse("HD", freemod=True)

        assert requirement.is_satisfied_by(["HD", "HR", "DT"])
        assert not requirement.is_satisfied_by(["HR"])
        assert requirement.friendly == "HD + Freemod"
        assert ModRequirement.parse("", freemod=True).friendly == "Freemod :)"
