"""
Score data model.

Provides the immutable score record shared by the tracker, the score log and
the notification builders, and the conversion from osu! API v2 payloads.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from dailybot.utils.exceptions import ScoreParseError


@dataclass(frozen=True)
class ScoreStatistics:
    """Hit judgement counts (perfect/great/ok/miss)."""
    count_300: int = 0
    count_100: int = 0
    count_50: int = 0
    count_miss: int = 0

    @classmethod
    def from_api(cls, data: Optional[Dict[str, Any]]) -> "ScoreStatistics":
        data = data or {}
        # lazer payloads use judgement names instead of counts
        return cls(
            count_300=int(data.get("count_300", data.get("great", 0)) or 0),
            count_100=int(data.get("count_100", data.get("ok", 0)) or 0),
            count_50=int(data.get("count_50", data.get("meh", 0)) or 0),
            count_miss=int(data.get("count_miss", data.get("miss", 0)) or 0),
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "count_300": self.count_300,
            "count_100": self.count_100,
            "count_50": self.count_50,
            "count_miss": self.count_miss,
        }


@dataclass(frozen=True)
class Score:
    """A single play submitted by a player on a beatmap."""
    id: int
    user_id: int
    beatmap_id: int
    value: int
    mods: Tuple[str, ...]
    accuracy: float
    statistics: ScoreStatistics
    max_combo: int
    created_at: datetime
    best_id: Optional[int] = None
    rank: str = "F"
    username: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Score":
        """Build a score from an osu! API v2 score object (legacy or lazer shape)."""
        try:
            beatmap = data.get("beatmap") or {}
            beatmap_id = beatmap.get("id", data.get("beatmap_id"))
            user = data.get("user") or {}
            value = data.get("score")
            if value is None:
                value = data.get("legacy_total_score") or data.get("total_score")
            created_at = data.get("created_at") or data.get("ended_at")
            if beatmap_id is None or value is None or created_at is None:
                raise ScoreParseError("missing beatmap, score or timestamp")

            return cls(
                id=int(data["id"]),
                user_id=int(data.get("user_id", user.get("id"))),
                beatmap_id=int(beatmap_id),
                value=int(value),
                mods=tuple(
                    mod["acronym"] if isinstance(mod, dict) else str(mod)
                    for mod in data.get("mods") or []
                ),
                accuracy=float(data.get("accuracy", 0.0)),
                statistics=ScoreStatistics.from_api(data.get("statistics")),
                max_combo=int(data.get("max_combo", 0) or 0),
                created_at=parse_timestamp(created_at),
                best_id=data.get("best_id"),
                rank=data.get("rank", "F"),
                username=user.get("username"),
            )
        except ScoreParseError:
            raise
        except (KeyError, TypeError, ValueError) as e:
            raise ScoreParseError(str(e)) from e

    def to_dict(self) -> Dict[str, Any]:
        """Serialise in the legacy API shape so ``from_api`` reads it back."""
        payload = {
            "id": self.id,
            "user_id": self.user_id,
            "beatmap": {"id": self.beatmap_id},
            "score": self.value,
            "mods": list(self.mods),
            "accuracy": self.accuracy,
            "statistics": self.statistics.to_dict(),
            "max_combo": self.max_combo,
            "created_at": self.created_at.isoformat(),
            "best_id": self.best_id,
            "rank": self.rank,
        }
        if self.username is not None:
            payload["user"] = {"id": self.user_id, "username": self.username}
        return payload


def parse_timestamp(value) -> datetime:
    """Parse an ISO-8601 timestamp, treating naive values as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
