"""
Minimal osu! API v2 client.

Only the calls the tracker needs: client-credentials authentication, paged
recent scores of a user and beatmap lookups. Every request goes through a
``SlidingWindowLimiter`` so the bot stays inside the API's request budget.
"""

import logging
import time
from typing import Any, AsyncIterator, Dict, List, Optional

import aiohttp

from dailybot.constants import OsuConstants, TrackerConstants
from dailybot.data_models.score import Score
from dailybot.services.rate_limiter import SlidingWindowLimiter
from dailybot.utils.exceptions import ScoreParseError, ScoreSourceError

logger = logging.getLogger(__name__)


class OsuAPI:
    """Async osu! API v2 client using client credentials."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        session: Optional[aiohttp.ClientSession] = None,
        limiter: Optional[SlidingWindowLimiter] = None,
        mode: str = "osu",
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.mode = mode
        self.limiter = limiter or SlidingWindowLimiter(500, 60)
        self._session = session
        self._owns_session = session is None
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def refresh_token(self):
        """Request a new client-credentials token."""
        payload = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "grant_type": "client_credentials",
            "scope": "public",
        }
        async with self.session.post(OsuConstants.TOKEN_URL, data=payload) as response:
            response.raise_for_status()
            data = await response.json()

        self._token = data["access_token"]
        self._token_expires_at = time.time() + int(data.get("expires_in", 86400))
        logger.info("Refreshed osu! API token")

    async def _ensure_token(self):
        if self._token is None or time.time() >= self._token_expires_at - TrackerConstants.TOKEN_EXPIRY_MARGIN:
            await self.refresh_token()

    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None, retry_auth: bool = True):
        await self._ensure_token()
        await self.limiter.acquire()

        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": "application/json",
        }
        async with self.session.get(f"{OsuConstants.API_BASE_URL}{path}", params=params, headers=headers) as response:
            if response.status == 401 and retry_auth:
                self._token = None
                return await self._get(path, params, retry_auth=False)
            response.raise_for_status()
            return await response.json()

    async def get_user_scores(
        self,
        user_id: int,
        score_type: str = "recent",
        limit: int = 5,
        offset: int = 0,
        include_fails: bool = False,
    ) -> List[Score]:
        """Fetch one page of a user's scores, newest first for ``recent``."""
        params = {
            "mode": self.mode,
            "limit": limit,
            "offset": offset,
            "include_fails": int(include_fails),
        }
        try:
            data = await self._get(f"/users/{user_id}/scores/{score_type}", params)
        except aiohttp.ClientResponseError as e:
            raise ScoreSourceError(user_id, e.message, e.status) from e
        except aiohttp.ClientError as e:
            raise ScoreSourceError(user_id, str(e)) from e

        scores = []
        for item in data or []:
            try:
                scores.append(Score.from_api(item))
            except ScoreParseError as e:
                logger.warning(f"Skipping malformed score for player {user_id}: {e}")
        return scores

    async def iter_recent_scores(
        self,
        user_id: int,
        page_size: int = 5,
        limit: int = TrackerConstants.MAX_RECENT_SCORES,
    ) -> AsyncIterator[Score]:
        """Yield a user's recent scores newest first, fetching pages lazily.

        The caller may stop iterating at any point; no further pages are
        requested after that.
        """
        limit = min(limit, TrackerConstants.MAX_RECENT_SCORES)
        offset = 0
        while offset < limit:
            page = await self.get_user_scores(
                user_id, "recent", limit=min(page_size, limit - offset), offset=offset
            )
            for score in page:
                yield score
            if len(page) < page_size:
                return
            offset += len(page)

    async def get_beatmap(self, beatmap_id: int) -> Dict[str, Any]:
        """Fetch beatmap metadata (title, version, max combo, beatmapset)."""
        try:
            return await self._get(f"/beatmaps/{beatmap_id}")
        except aiohttp.ClientResponseError as e:
            raise ScoreSourceError(beatmap_id, f"beatmap lookup failed: {e.message}", e.status) from e

    async def close(self):
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
