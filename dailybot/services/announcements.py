"""
Daily map announcement message in the MOTD channel.

One message per scheduled map: posted when the map becomes current and
edited with the live standings after every accepted score.
"""

import logging
from typing import List, Optional, Tuple

import discord

from dailybot.data_models.challenge import ChallengeMap
from dailybot.data_models.score import Score
from dailybot.utils.embeds import SCORES_FIELD_NAME, build_challenge_embed, format_standings

logger = logging.getLogger(__name__)


class AnnouncementBoard:
    """Posts and updates the daily map announcement."""

    def __init__(self, bot, channel_id: int, challenges=None):
        self.bot = bot
        self.channel_id = channel_id
        self.challenges = challenges

    async def _get_channel(self) -> Optional[discord.abc.Messageable]:
        if not self.channel_id:
            return None
        channel = self.bot.get_channel(self.channel_id)
        if channel is None:
            try:
                channel = await self.bot.fetch_channel(self.channel_id)
            except discord.HTTPException as e:
                logger.error(f"Announcement channel {self.channel_id} unavailable: {e}")
                return None
        return channel

    def _display_name(self, player_id: int, score: Score) -> str:
        discord_id = self.challenges.get_discord_id(player_id) if self.challenges else None
        if discord_id:
            return f"<@{discord_id}>"
        return discord.utils.escape_markdown(score.username or str(player_id))

    async def announce(self, challenge_map: ChallengeMap) -> Optional[int]:
        """Post the announcement for a map. Returns the new message id."""
        channel = await self._get_channel()
        if channel is None:
            return None

        message = await channel.send(embed=build_challenge_embed(challenge_map))
        logger.info(f"Announced daily map {challenge_map.map_id} (message {message.id})")
        return message.id

    async def refresh(self, challenge_map: ChallengeMap, standings: List[Tuple[int, Score]]):
        """Rewrite the scores field of the map's announcement."""
        if challenge_map.message_id is None:
            return
        channel = await self._get_channel()
        if channel is None:
            return

        try:
            message = await channel.fetch_message(challenge_map.message_id)
        except discord.NotFound:
            logger.warning(f"Announcement message {challenge_map.message_id} for map {challenge_map.map_id} is gone")
            return

        embed = message.embeds[0] if message.embeds else build_challenge_embed(challenge_map)
        value = format_standings(standings, self._display_name)[:1024]

        for index, field in enumerate(embed.fields):
            if field.name == SCORES_FIELD_NAME:
                embed.set_field_at(index, name=SCORES_FIELD_NAME, value=value, inline=False)
                break
        else:
            embed.add_field(name=SCORES_FIELD_NAME, value=value, inline=False)

        await message.edit(embed=embed)
