"""
Roster and daily map schedule.

Owns which players are tracked and which map is the current challenge. The
schedule is persisted in the database; this store keeps an in-memory
snapshot and announces map rotations to registered listeners.
"""

import logging
from datetime import datetime, timezone
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from dailybot.data_models.challenge import ChallengeMap, TrackedPlayer
from dailybot.utils.exceptions import MapNotFoundError
from dailybot.utils.mods import ModRequirement

logger = logging.getLogger(__name__)

MapListener = Callable[[ChallengeMap], Awaitable[None]]


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _as_naive_utc(value: datetime) -> datetime:
    return _as_utc(value).replace(tzinfo=None)


class ChallengeStore:
    """Tracked players plus the rotating daily map."""

    def __init__(self, db, clock: Callable[[], datetime] = None):
        self.db = db
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._players: Dict[int, TrackedPlayer] = {}
        self._maps: List[ChallengeMap] = []
        self._current: Optional[ChallengeMap] = None
        self._listeners: List[MapListener] = []

    async def load(self):
        """Reload roster and schedule from the database."""
        players = await self.db.get_tracked_players()
        self._players = {
            row.osu_id: TrackedPlayer(osu_id=row.osu_id, discord_id=row.discord_id, username=row.username)
            for row in players
        }

        rows = await self.db.get_daily_maps()
        self._maps = [
            ChallengeMap(
                map_id=row.beatmap_id,
                mods=ModRequirement.parse(row.required_mods, row.freemod),
                index=index,
                starts_at=_as_utc(row.starts_at),
                ends_at=_as_utc(row.ends_at),
                requester=row.requester,
                message_id=row.message_id,
                title=row.title,
                beatmapset_id=row.beatmapset_id,
                max_combo=row.max_combo,
                schedule_id=row.id,
            )
            for index, row in enumerate(rows)
        ]

        # Keep the current map's identity but pick up changed fields
        if self._current is not None:
            self._current = self._find_schedule(self._current.schedule_id)

        logger.info(f"Loaded {len(self._players)} tracked players and {len(self._maps)} scheduled maps")

    # Roster

    def get_players(self) -> List[TrackedPlayer]:
        return list(self._players.values())

    def get_player(self, osu_id: int) -> Optional[TrackedPlayer]:
        return self._players.get(osu_id)

    def get_player_by_discord(self, discord_id: int) -> Optional[TrackedPlayer]:
        for player in self._players.values():
            if player.discord_id == discord_id:
                return player
        return None

    def get_discord_id(self, osu_id: int) -> Optional[int]:
        player = self._players.get(osu_id)
        return player.discord_id if player else None

    async def track_player(self, osu_id: int, username: Optional[str] = None,
                           discord_id: Optional[int] = None) -> TrackedPlayer:
        row = await self.db.upsert_tracked_player(osu_id, username=username, discord_id=discord_id)
        player = TrackedPlayer(osu_id=row.osu_id, discord_id=row.discord_id, username=row.username)
        self._players[player.osu_id] = player
        logger.info(f"Now tracking player {osu_id} ({username})")
        return player

    async def untrack_player(self, osu_id: int) -> bool:
        removed = await self.db.deactivate_tracked_player(osu_id)
        self._players.pop(osu_id, None)
        if removed:
            logger.info(f"Stopped tracking player {osu_id}")
        return removed

    # Schedule

    @property
    def current_map(self) -> Optional[ChallengeMap]:
        return self._current

    def maps(self) -> List[ChallengeMap]:
        return list(self._maps)

    def map_at(self, when: datetime) -> Optional[ChallengeMap]:
        """The map whose window contains ``when``, the latest started one on overlap."""
        when = _as_utc(when)
        active = [m for m in self._maps if m.is_active_at(when)]
        if not active:
            return None
        return max(active, key=lambda m: (m.starts_at, m.index))

    def _resolve_current(self) -> Optional[ChallengeMap]:
        now = self._clock()
        active = self.map_at(now)
        if active is not None:
            return active

        # Between windows the last started map stays current
        started = [m for m in self._maps if m.starts_at <= now]
        if not started:
            return None
        return max(started, key=lambda m: (m.starts_at, m.index))

    def _find_schedule(self, schedule_id: Optional[int]) -> Optional[ChallengeMap]:
        for challenge_map in self._maps:
            if challenge_map.schedule_id == schedule_id:
                return challenge_map
        return None

    def get_map(self, map_id: int) -> Optional[ChallengeMap]:
        """Scheduled map for a beatmap id, preferring the current one."""
        if self._current is not None and self._current.map_id == map_id:
            return self._current
        candidates = [m for m in self._maps if m.map_id == map_id]
        return candidates[-1] if candidates else None

    def test_mods(self, map_id: int, mods: Iterable[str], when: Optional[datetime] = None) -> bool:
        """Whether ``mods`` qualify for the beatmap.

        A beatmap can be scheduled more than once with different mods. Given
        ``when``, the entry running at that time is used.
        """
        challenge_map = self.map_at(when) if when is not None else None
        if challenge_map is None or challenge_map.map_id != map_id:
            challenge_map = self.get_map(map_id)
        if challenge_map is None:
            return False
        return challenge_map.mods.is_satisfied_by(mods)

    def friendly_mods(self, map_id: int) -> str:
        challenge_map = self.get_map(map_id)
        if challenge_map is None:
            raise MapNotFoundError(map_id)
        return challenge_map.mods.friendly

    async def schedule_map(self, map_id: int, starts_at: datetime, ends_at: datetime,
                           required_mods: str = '', freemod: bool = False,
                           requester: Optional[str] = None, title: Optional[str] = None,
                           beatmapset_id: Optional[int] = None,
                           max_combo: Optional[int] = None) -> ChallengeMap:
        row = await self.db.add_daily_map(
            map_id, _as_naive_utc(starts_at), _as_naive_utc(ends_at),
            required_mods=ModRequirement.parse(required_mods).to_storage(),
            freemod=freemod, requester=requester, title=title,
            beatmapset_id=beatmapset_id, max_combo=max_combo
        )
        await self.load()
        return self._find_schedule(row.id)

    async def set_message_id(self, challenge_map: ChallengeMap, message_id: Optional[int]) -> ChallengeMap:
        await self.db.set_map_message_id(challenge_map.schedule_id, message_id)
        await self.load()
        return self._find_schedule(challenge_map.schedule_id) or challenge_map

    # Rotation

    def add_listener(self, listener: MapListener):
        self._listeners.append(listener)

    def remove_listener(self, listener: MapListener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def check_rotation(self) -> bool:
        """Recompute the current map and notify listeners if it changed."""
        resolved = self._resolve_current()
        previous = self._current
        if resolved is None or (previous is not None and previous.schedule_id == resolved.schedule_id):
            return False

        self._current = resolved
        logger.info(f"Daily map rotated to #{resolved.index + 1} (beatmap {resolved.map_id}, mods {resolved.mods.friendly})")

        for listener in list(self._listeners):
            try:
                await listener(resolved)
            except Exception as e:
                logger.error(f"Map rotation listener failed: {e}", exc_info=True)
        return True
