"""
Durable one-file-per-score log.

Every ingested score is written as ``<score_id>.json`` so the tracker can
rebuild its in-memory state after a restart by replaying the directory.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Iterator, List, Union

from dailybot.data_models.score import Score
from dailybot.utils.exceptions import ScoreLogError, ScoreParseError

logger = logging.getLogger(__name__)


class ScoreLog:
    """Directory of JSON score records keyed by score id."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.path.mkdir(parents=True, exist_ok=True)

    def _record_path(self, score_id: int) -> Path:
        return self.path / f"{score_id}.json"

    def append(self, score: Score) -> Path:
        """Write a score record. Writing the same id again replaces it."""
        target = self._record_path(score.id)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.path, prefix=f".{score.id}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(score.to_dict(), fh, indent=4)
                os.replace(tmp_name, target)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise ScoreLogError(score.id, str(e)) from e
        return target

    def load(self, score_id: int) -> Score:
        return self._read(self._record_path(score_id))

    def _read(self, record: Path) -> Score:
        try:
            with open(record, encoding="utf-8") as fh:
                return Score.from_api(json.load(fh))
        except (OSError, json.JSONDecodeError, ScoreParseError) as e:
            raise ScoreLogError(record.stem, str(e)) from e

    def score_ids(self) -> List[int]:
        """Ids of all stored records, ascending."""
        ids = []
        for record in self.path.glob("*.json"):
            try:
                ids.append(int(record.stem))
            except ValueError:
                logger.warning(f"Ignoring unexpected file in score log: {record.name}")
        return sorted(ids)

    def replay_all(self) -> Iterator[Score]:
        """Lazily yield every stored score in ascending id order."""
        for score_id in self.score_ids():
            try:
                yield self.load(score_id)
            except ScoreLogError as e:
                logger.warning(f"Skipping unreadable score record: {e}")

    def __contains__(self, score_id: int) -> bool:
        return self._record_path(score_id).exists()

    def __len__(self) -> int:
        return len(self.score_ids())
