"""
Challenge data models.

Immutable snapshots of the roster and the daily map schedule handed out by
the challenge store.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from dailybot.utils.mods import ModRequirement


@dataclass(frozen=True)
class TrackedPlayer:
    """A player whose recent scores are polled."""
    osu_id: int
    discord_id: Optional[int] = None
    username: Optional[str] = None


@dataclass(frozen=True)
class ChallengeMap:
    """One scheduled daily map."""
    map_id: int
    mods: ModRequirement
    index: int
    starts_at: datetime
    ends_at: datetime
    requester: Optional[str] = None
    message_id: Optional[int] = None
    title: Optional[str] = None
    beatmapset_id: Optional[int] = None
    max_combo: Optional[int] = None
    schedule_id: Optional[int] = None

    def is_active_at(self, when: datetime) -> bool:
        return self.starts_at <= when < self.ends_at
