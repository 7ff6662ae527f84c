"""
Embed builders for score notifications and daily map announcements.
"""

import discord
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from dailybot.constants import OsuConstants, UIConstants
from dailybot.data_models.challenge import ChallengeMap
from dailybot.data_models.score import Score
from dailybot.services.dispatcher import WebhookMessage
from dailybot.utils.mods import format_mods

SCORES_FIELD_NAME = "Scores"


def mods_suffix(score: Score) -> str:
    return f" +{format_mods(score.mods)}" if score.mods else ""


def map_title(challenge_map: ChallengeMap) -> str:
    return challenge_map.title or f"Beatmap {challenge_map.map_id}"


def _discord_timestamp(when: datetime, style: str) -> str:
    return f"<t:{int(when.timestamp())}:{style}>"


def build_score_notification(challenge_map: ChallengeMap, score: Score, mode: str = "osu") -> WebhookMessage:
    """
    Build the webhook post for a new best score on the daily map.

    Args:
        challenge_map: Map the score was set on
        score: The accepted score
        mode: Gamemode used for the score link

    Returns:
        Webhook payload posted under the player's name and avatar
    """
    description = [
        f"Map #{challenge_map.index + 1}",
        f"Requester = {challenge_map.requester}" if challenge_map.requester else None,
        f"Map ID = {challenge_map.map_id}",
        f"Required Mods = {challenge_map.mods.friendly}",
    ]

    stats = score.statistics
    score_info = [
        f"Score: **{score.value:,}**{f' **+{format_mods(score.mods)}**' if score.mods else ''}",
        f"Accuracy: **{round(score.accuracy * 100, 2)}%**",
        f"Rank: {score.rank} - {stats.count_300}/{stats.count_100}/{stats.count_50}/{stats.count_miss}",
        f"Combo: **{score.max_combo}**/{challenge_map.max_combo or 0}x",
        f"[View on osu]({OsuConstants.SCORE_URL.format(mode=mode, score_id=score.best_id)})" if score.best_id else None,
    ]

    embed = discord.Embed(
        description="\n".join(line for line in description if line is not None),
        color=UIConstants.SCORE_EMBED_COLOR,
        timestamp=score.created_at
    )
    embed.set_author(
        name=map_title(challenge_map) + mods_suffix(score),
        url=OsuConstants.BEATMAP_URL.format(beatmap_id=challenge_map.map_id)
    )
    if challenge_map.beatmapset_id:
        embed.set_thumbnail(url=OsuConstants.THUMBNAIL_URL.format(beatmapset_id=challenge_map.beatmapset_id))
    embed.add_field(
        name="Score Info",
        value="\n".join(line for line in score_info if line is not None),
        inline=False
    )

    return WebhookMessage(
        username=score.username or str(score.user_id),
        avatar_url=OsuConstants.AVATAR_URL.format(user_id=score.user_id),
        embeds=[embed]
    )


def build_challenge_embed(challenge_map: ChallengeMap) -> discord.Embed:
    """Announcement embed for a newly rotated daily map with an empty scores field."""
    embed = discord.Embed(
        title=map_title(challenge_map),
        description=f"Ending {_discord_timestamp(challenge_map.ends_at, 'R')}",
        url=OsuConstants.BEATMAP_URL.format(beatmap_id=challenge_map.map_id),
        color=UIConstants.CHALLENGE_EMBED_COLOR,
        timestamp=challenge_map.starts_at
    )
    if challenge_map.beatmapset_id:
        embed.set_thumbnail(url=OsuConstants.THUMBNAIL_URL.format(beatmapset_id=challenge_map.beatmapset_id))

    info = [
        f"Map: **#{challenge_map.index + 1}**",
        f"Required Mods: **{challenge_map.mods.friendly}**",
        f"Max Combo: **{challenge_map.max_combo or 'Unknown'}**",
    ]
    if challenge_map.requester:
        info.append(f"Requester: **{challenge_map.requester}**")

    embed.add_field(name="Beatmap Info", value="\n".join(info), inline=False)
    embed.add_field(name=SCORES_FIELD_NAME, value="No scores yet", inline=False)
    return embed


def format_standings(standings: List[Tuple[int, Score]],
                     name_for: Callable[[int, Score], str]) -> str:
    """One line per player: rank, name, score with mods and time set."""
    if not standings:
        return "No scores yet"
    return "\n".join(
        f"{rank}. {name_for(player_id, score)} - **{score.value:,}{mods_suffix(score)}** "
        f"at {_discord_timestamp(score.created_at, 't')}"
        for rank, (player_id, score) in enumerate(standings, start=1)
    )


def build_scores_embed(challenge_map: ChallengeMap, standings: List[Tuple[int, Score]],
                       limit: Optional[int] = UIConstants.SCORES_DISPLAY_LIMIT) -> discord.Embed:
    """Top scores of a map for the scores command."""
    embed = discord.Embed(
        title=map_title(challenge_map),
        url=OsuConstants.BEATMAP_URL.format(beatmap_id=challenge_map.map_id),
        description="\n".join([
            f"Map #{challenge_map.index + 1}",
            f"Map ID = {challenge_map.map_id}",
            f"Required Mods = {challenge_map.mods.friendly}",
        ]),
        color=UIConstants.CHALLENGE_EMBED_COLOR
    )
    shown = standings[:limit] if limit else standings
    for rank, (player_id, score) in enumerate(shown, start=1):
        stats = score.statistics
        embed.add_field(
            name=f"#{rank} - {score.username or player_id}",
            value="\n".join([
                f"Score: **{score.value:,}**{mods_suffix(score)}",
                f"Accuracy: **{round(score.accuracy * 100, 2)}%**",
                f"Rank: {score.rank} - {stats.count_300}/{stats.count_100}/{stats.count_50}/{stats.count_miss}",
                f"Set {_discord_timestamp(score.created_at, 'R')}",
            ]),
            inline=False
        )
    if not shown:
        embed.add_field(name=SCORES_FIELD_NAME, value="No scores yet", inline=False)
    return embed
