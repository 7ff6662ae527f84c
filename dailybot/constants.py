"""
Bot-wide constants for the daily challenge tracker.

Values that are not meant to be tuned per deployment live here; anything an
operator may want to change belongs in ``dailybot.config.Config``.
"""

class TrackerConstants:
    """Constants related to score polling and ingestion."""

    # Hard cap of the osu! recent scores endpoint
    MAX_RECENT_SCORES = 100

    # Seconds to wait for queued webhook posts on shutdown
    DISPATCH_DRAIN_TIMEOUT = 10.0

    # Refresh the OAuth token this many seconds before it expires
    TOKEN_EXPIRY_MARGIN = 60

class OsuConstants:
    """Constants for the osu! API and site links."""

    API_BASE_URL = "https://osu.ppy.sh/api/v2"
    TOKEN_URL = "https://osu.ppy.sh/oauth/token"
    BEATMAP_URL = "https://osu.ppy.sh/b/{beatmap_id}"
    SCORE_URL = "https://osu.ppy.sh/scores/{mode}/{score_id}"
    AVATAR_URL = "https://s.ppy.sh/a/{user_id}"
    THUMBNAIL_URL = "https://b.ppy.sh/thumb/{beatmapset_id}l.jpg"

class UIConstants:
    """Constants for Discord UI elements."""

    SCORE_EMBED_COLOR = 0x33EB35     # Green for new scores
    CHALLENGE_EMBED_COLOR = 0x00FF00  # Bright green for map announcements

    # Entries shown by the scores command
    SCORES_DISPLAY_LIMIT = 3
