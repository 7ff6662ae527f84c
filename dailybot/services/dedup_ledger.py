"""
Per-player record of already processed score ids.

The osu! API returns recent scores newest first, so a poll can stop at the
first id recorded here: everything older has been processed already.
"""

from collections import defaultdict
from typing import Dict, List, Set, Tuple


class DedupLedger:
    """Append-only ledger of seen score ids, keyed by player id."""

    def __init__(self):
        self._seen: Dict[int, List[int]] = defaultdict(list)
        self._index: Dict[int, Set[int]] = defaultdict(set)

    def has_seen(self, player_id: int, score_id: int) -> bool:
        return score_id in self._index.get(player_id, ())

    def mark_seen(self, player_id: int, score_id: int) -> bool:
        """Record a score id. Returns False if it was already present."""
        if self.has_seen(player_id, score_id):
            return False
        self._seen[player_id].append(score_id)
        self._index[player_id].add(score_id)
        return True

    def seen(self, player_id: int) -> Tuple[int, ...]:
        """Seen ids for a player in the order they were recorded."""
        return tuple(self._seen.get(player_id, ()))

    def players(self) -> List[int]:
        return list(self._seen)

    def reset(self):
        self._seen.clear()
        self._index.clear()

    def __len__(self) -> int:
        return sum(len(ids) for ids in self._seen.values())
