"""
Best-score tables for challenge maps.

Each map keeps one entry per player: the highest scoring play that satisfied
the map's mod requirement. Tables of past maps are kept so they can still be
queried after the challenge rotates.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from dailybot.data_models.score import Score
from dailybot.utils.mods import ModRequirement

logger = logging.getLogger(__name__)

Standing = Tuple[int, Score]
ModCheck = Callable[[int, Iterable[str]], bool]


def _standing_key(entry: Standing):
    _, score = entry
    return (-score.value, score.created_at, score.id)


class MapLeaderboard:
    """Per-map table of each player's best qualifying score."""

    def __init__(self, mod_check: Optional[ModCheck] = None):
        """
        Args:
            mod_check: ``mod_check(map_id, mods)`` tells whether a mod
                combination qualifies for a map; used when ``record_if_best``
                is not given the map's requirement. Without one any mods count.
        """
        self._mod_check = mod_check
        self._tables: Dict[int, Dict[int, Score]] = {}

    def _qualifies(self, map_id: int, score: Score, requirement: Optional[ModRequirement]) -> bool:
        if requirement is not None:
            return requirement.is_satisfied_by(score.mods)
        if self._mod_check is not None:
            return self._mod_check(map_id, score.mods)
        return True

    def record_if_best(self, map_id: int, score: Score, requirement: Optional[ModRequirement] = None) -> bool:
        """Store the score if it qualifies and beats the player's entry."""
        if not self._qualifies(map_id, score, requirement):
            logger.debug(f"Score {score.id} rejected for map {map_id}: mods {score.mods} do not qualify")
            return False

        table = self._tables.setdefault(map_id, {})
        previous = table.get(score.user_id)
        if previous is not None and previous.value >= score.value:
            return False

        table[score.user_id] = score
        return True

    def get(self, map_id: int, player_id: int) -> Optional[Score]:
        return self._tables.get(map_id, {}).get(player_id)

    def query(self, map_id: int) -> List[Standing]:
        """Standings for a map, best first. Ties go to the earlier score."""
        table = self._tables.get(map_id, {})
        return sorted(table.items(), key=_standing_key)

    def top(self, map_id: int, n: int) -> List[Standing]:
        return self.query(map_id)[:n]

    def query_all(self) -> Dict[int, List[Standing]]:
        return {map_id: self.query(map_id) for map_id in self._tables}

    def maps(self) -> List[int]:
        return list(self._tables)

    def __contains__(self, map_id: int) -> bool:
        return map_id in self._tables
