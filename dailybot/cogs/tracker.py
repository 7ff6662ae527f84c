"""
Tracker Cog - Daily Map Score Tracking

Starts the score tracker once the bot is connected and exposes the owner
tools for the roster, the map schedule and score recording, plus a public
command to look at a map's scores.
"""

import json
from datetime import datetime, timedelta, timezone
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands

from dailybot.config import Config
from dailybot.data_models.score import Score
from dailybot.services.rate_limiter import rate_limit
from dailybot.services.tracker import TrackerState
from dailybot.utils.embeds import build_scores_embed
from dailybot.utils.exceptions import MapNotFoundError, PlayerNotTrackedError, TrackerException
from dailybot.utils.logger import setup_logger

logger = setup_logger(__name__)


class TrackerCog(commands.Cog):
    """Daily map score tracking"""

    def __init__(self, bot):
        self.bot = bot
        self.tracker = bot.tracker
        self.challenges = bot.challenges
        self.logger = logger

    @commands.Cog.listener()
    async def on_ready(self):
        """Load the tracker and start polling on the first ready event"""
        if self.tracker.state is not TrackerState.UNINITIALIZED:
            return
        try:
            await self.tracker.load()
            self.tracker.start()
            self.logger.info("TrackerCog: score tracking started")
        except Exception as e:
            self.logger.error(f"TrackerCog: failed to start score tracking: {e}", exc_info=True)

    def cog_unload(self):
        """Stop polling when the cog is unloaded"""
        self.tracker.stop()
        self.logger.info("TrackerCog: score tracking stopped")

    async def _deny_non_owner(self, interaction: discord.Interaction) -> bool:
        if interaction.user.id == Config.OWNER_DISCORD_ID:
            return False
        await interaction.response.send_message(
            "❌ **Access Denied**\nThis command is restricted to the bot owner.",
            ephemeral=True
        )
        return True

    @app_commands.command(name="dev-record", description="Toggle recording of new scores (Owner only)")
    async def dev_record(self, interaction: discord.Interaction):
        if await self._deny_non_owner(interaction):
            return

        recording = self.tracker.toggle_recording()
        self.logger.info(f"Recording toggled to {recording} by {interaction.user.id}")
        await interaction.response.send_message(f"Recording: **{recording}**", ephemeral=True)

    @app_commands.command(name="dev-replay", description="Replay a stored score file through the tracker (Owner only)")
    @app_commands.describe(file="Path to a score JSON file")
    async def dev_replay(self, interaction: discord.Interaction, file: str):
        if await self._deny_non_owner(interaction):
            return

        await interaction.response.defer(ephemeral=True)
        self.logger.info(f"Replaying score file {file}")
        try:
            with open(file, encoding="utf-8") as fh:
                score = Score.from_api(json.load(fh))
            accepted = await self.tracker.ingest(score)
            await interaction.followup.send(f"✅ Replayed score {score.id} (accepted: {accepted})")
        except TrackerException as e:
            await interaction.followup.send(e.user_message)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.error(f"Replay of {file} failed: {e}", exc_info=True)
            await interaction.followup.send("❌ Could not read that file, check the logs")

    @app_commands.command(name="dev-reload", description="Reload the roster and map schedule from the database (Owner only)")
    async def dev_reload(self, interaction: discord.Interaction):
        if await self._deny_non_owner(interaction):
            return

        await interaction.response.defer(ephemeral=True)
        try:
            await self.challenges.load()
            await self.challenges.check_rotation()
            await interaction.followup.send(
                f"✅ Reloaded {len(self.challenges.get_players())} players and {len(self.challenges.maps())} maps"
            )
        except Exception as e:
            self.logger.error(f"Reload failed: {e}", exc_info=True)
            await interaction.followup.send("❌ Reload failed, check the logs")

    @app_commands.command(name="dev-track", description="Start tracking an osu! player (Owner only)")
    @app_commands.describe(osu_id="osu! user id", member="Discord member linked to the player", username="osu! username")
    async def dev_track(self, interaction: discord.Interaction, osu_id: int,
                        member: Optional[discord.Member] = None, username: Optional[str] = None):
        if await self._deny_non_owner(interaction):
            return

        player = await self.challenges.track_player(
            osu_id, username=username, discord_id=member.id if member else None
        )
        await interaction.response.send_message(
            f"✅ Tracking **{player.username or player.osu_id}**", ephemeral=True
        )

    @app_commands.command(name="dev-untrack", description="Stop tracking an osu! player (Owner only)")
    async def dev_untrack(self, interaction: discord.Interaction, osu_id: int):
        if await self._deny_non_owner(interaction):
            return

        removed = await self.challenges.untrack_player(osu_id)
        message = "✅ Player removed" if removed else PlayerNotTrackedError(str(osu_id)).user_message
        await interaction.response.send_message(message, ephemeral=True)

    @app_commands.command(name="dev-schedule", description="Schedule a daily map (Owner only)")
    @app_commands.describe(
        beatmap_id="Beatmap (difficulty) id",
        mods="Required mods, e.g. HDHR (empty for nomod)",
        freemod="Allow any mods on top of the required ones",
        starts_in_hours="Hours from now until the map starts",
        duration_hours="How long the map stays up",
        requester="Who requested the map"
    )
    async def dev_schedule(self, interaction: discord.Interaction, beatmap_id: int, mods: str = "",
                           freemod: bool = False, starts_in_hours: float = 0.0,
                           duration_hours: float = 24.0, requester: Optional[str] = None):
        if await self._deny_non_owner(interaction):
            return

        await interaction.response.defer(ephemeral=True)
        try:
            beatmap = await self.bot.osu_api.get_beatmap(beatmap_id)
            beatmapset = beatmap.get("beatmapset") or {}
            title = f"{beatmapset.get('artist', '?')} - {beatmapset.get('title', '?')} [{beatmap.get('version', '?')}]"

            starts_at = datetime.now(timezone.utc) + timedelta(hours=starts_in_hours)
            challenge_map = await self.challenges.schedule_map(
                beatmap_id, starts_at, starts_at + timedelta(hours=duration_hours),
                required_mods=mods, freemod=freemod, requester=requester, title=title,
                beatmapset_id=beatmapset.get("id"), max_combo=beatmap.get("max_combo")
            )
            await self.challenges.check_rotation()
            await interaction.followup.send(
                f"✅ Scheduled **{title}** as map #{challenge_map.index + 1} ({challenge_map.mods.friendly})"
            )
        except TrackerException as e:
            await interaction.followup.send(e.user_message)
        except ValueError as e:
            await interaction.followup.send(f"❌ {e}")

    @app_commands.command(name="ping", description="Check that the bot is responding")
    async def ping(self, interaction: discord.Interaction):
        await interaction.response.send_message(f"pong ({round(self.bot.latency * 1000)}ms)")

    @app_commands.command(name="scores", description="Show the best scores on a daily map")
    @app_commands.describe(map_id="Beatmap id, defaults to the current daily map")
    @rate_limit("scores", limit=3, window=60)
    async def scores(self, interaction: discord.Interaction, map_id: Optional[int] = None):
        await interaction.response.defer()
        try:
            challenge_map = self.challenges.get_map(map_id) if map_id else self.challenges.current_map
            if challenge_map is None:
                raise MapNotFoundError(map_id or 0)

            # Make sure the caller's latest play is included
            sender = self.challenges.get_player_by_discord(interaction.user.id)
            if sender:
                await self.tracker.refresh_player(sender.osu_id)

            standings = self.tracker.get_map_scores(challenge_map.map_id)
            await interaction.followup.send(embed=build_scores_embed(challenge_map, standings))
        except TrackerException as e:
            await interaction.followup.send(e.user_message)
        except Exception as e:
            self.logger.error(f"Error in scores command: {e}", exc_info=True)
            await interaction.followup.send("❌ An error occurred while fetching scores.")


async def setup(bot):
    await bot.add_cog(TrackerCog(bot))
