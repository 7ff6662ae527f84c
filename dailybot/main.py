import asyncio
import functools
import logging
import traceback
from typing import Optional

import aiohttp
import discord
from discord.ext import commands
from discord import app_commands

from dailybot.config import Config
from dailybot.database.database import Database
from dailybot.services.announcements import AnnouncementBoard
from dailybot.services.challenge_store import ChallengeStore
from dailybot.services.dispatcher import NotificationDispatcher, WebhookTransport
from dailybot.services.osu_api import OsuAPI
from dailybot.services.rate_limiter import CommandRateLimiter, SlidingWindowLimiter
from dailybot.services.score_log import ScoreLog
from dailybot.services.tracker import ScoreTracker
from dailybot.utils.embeds import build_score_notification
from dailybot.utils.logger import setup_logger

class DailyBot(commands.Bot):
    def __init__(self):
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True

        super().__init__(
            command_prefix=Config.COMMAND_PREFIX,
            intents=intents,
            help_command=None
        )

        # Attach app command error handler
        self.tree.on_error = self.on_app_command_error

        self.db: Optional[Database] = None
        self.http_session: Optional[aiohttp.ClientSession] = None
        self.osu_api: Optional[OsuAPI] = None
        self.challenges: Optional[ChallengeStore] = None
        self.tracker: Optional[ScoreTracker] = None
        self.rate_limiter = CommandRateLimiter()
        self.logger = setup_logger(__name__)

    async def setup_hook(self):
        """Called when the bot is starting up"""
        self.logger.info("Setting up Daily Bot...")

        # Initialize database and load roster/schedule
        self.db = Database()
        await self.db.initialize()
        self.challenges = ChallengeStore(self.db)
        await self.challenges.load()

        # Shared HTTP session for the osu! API and the webhook
        self.http_session = aiohttp.ClientSession()
        self.osu_api = OsuAPI(
            Config.OSU_CLIENT_ID,
            Config.OSU_CLIENT_SECRET,
            session=self.http_session,
            limiter=SlidingWindowLimiter(Config.OSU_RATE_LIMIT, Config.OSU_RATE_INTERVAL),
            mode=Config.GAMEMODE
        )
        await self.osu_api.refresh_token()

        dispatcher = NotificationDispatcher(
            WebhookTransport(Config.WEBHOOK_URL, self.http_session),
            limit=Config.WEBHOOK_RATE_LIMIT,
            interval=Config.WEBHOOK_RATE_INTERVAL
        )
        self.tracker = ScoreTracker(
            self.osu_api,
            self.challenges,
            ScoreLog(Config.SCORE_PATH),
            dispatcher,
            notification_builder=functools.partial(build_score_notification, mode=Config.GAMEMODE),
            announcer=AnnouncementBoard(self, Config.MOTD_CHANNEL_ID, self.challenges),
            page_size=Config.RECENT_PAGE_SIZE,
            recovery_window=Config.RECOVERY_WINDOW,
            refresh_interval=Config.REFRESH_INTERVAL,
            recovery_interval=Config.RECOVERY_INTERVAL,
            wait_ready=self.wait_until_ready
        )
        self.logger.info("Score tracker initialized")

        # Load cogs
        await self.load_cogs()

        # Sync slash commands
        await self._sync_commands()

        self.logger.info("Daily Bot setup complete!")

    async def load_cogs(self):
        """Load all cogs"""
        cogs_to_load = [
            'dailybot.cogs.tracker',
        ]

        for cog in cogs_to_load:
            try:
                await self.load_extension(cog)
                self.logger.info(f"Loaded cog: {cog}")
            except Exception as e:
                self.logger.error(f"Failed to load cog {cog}: {e}", exc_info=True)

    async def _sync_commands(self):
        """Sync slash commands with Discord"""
        if not self.tree.get_commands():
            self.logger.warning("No application commands found to sync. Check for cog loading errors.")
            return

        try:
            guild_ids = Config.get_guild_ids()

            if guild_ids:
                # Guild-specific sync is instant
                self.logger.info(f"Attempting to sync commands to {len(guild_ids)} guild(s): {guild_ids}...")
                for guild_id in guild_ids:
                    try:
                        guild = discord.Object(id=guild_id)
                        self.tree.copy_global_to(guild=guild)
                        synced = await self.tree.sync(guild=guild)
                        self.logger.info(f"Successfully synced {len(synced)} command(s) to guild {guild_id}")
                    except discord.errors.Forbidden:
                        self.logger.error(f"Permission error syncing to guild {guild_id}. Ensure the bot has the 'application.commands' scope and is in the guild.", exc_info=True)
                    except discord.errors.HTTPException as e:
                        self.logger.error(f"HTTP error syncing to guild {guild_id}. Status: {e.status}, Response: {e.text}", exc_info=True)
            else:
                self.logger.info("Attempting to sync commands globally... (Note: This can take up to an hour to propagate)")
                synced = await self.tree.sync()
                self.logger.info(f"Successfully synced {len(synced)} command(s) globally")
        except Exception as e:
            self.logger.error(f"Failed to sync commands: {e}", exc_info=True)
            # Don't raise - tracking works without slash commands

    async def on_ready(self):
        """Called when the bot is ready"""
        self.logger.info(f'{self.user} has connected to Discord!')
        self.logger.info(f'Bot is in {len(self.guilds)} guilds')

        await self.change_presence(
            activity=discord.Game(name="Daily maps | /scores")
        )

    async def on_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        """Global error handler for slash commands"""
        command_name = interaction.command.name if interaction.command else 'Unknown'
        if isinstance(error, app_commands.CheckFailure):
            self.logger.info(f"Permission denied for command '{command_name}' by user {interaction.user}")
            error_message = "❌ You don't have permission to use this command."
        elif isinstance(error, app_commands.CommandOnCooldown):
            error_message = f"❌ Command is on cooldown. Try again in {error.retry_after:.2f} seconds."
        else:
            self.logger.error(f"Error in app command '{command_name}': {error}", exc_info=True)
            error_message = "❌ An unexpected error occurred while processing your command."

        try:
            error_embed = discord.Embed(description=error_message, color=discord.Color.red())
            if interaction.response.is_done():
                await interaction.followup.send(embed=error_embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=error_embed, ephemeral=True)
        except Exception as e:
            self.logger.error(f"Failed to send error response: {e}")

    async def close(self):
        """Cleanup when bot is shutting down"""
        self.logger.info("Shutting down Daily Bot...")

        if self.tracker:
            await self.tracker.close()
        if self.osu_api:
            await self.osu_api.close()
        if self.http_session and not self.http_session.closed:
            await self.http_session.close()
        if self.db:
            await self.db.close()

        await super().close()

async def main():
    """Main entry point"""
    Config.validate()
    setup_logger('dailybot')

    bot = DailyBot()

    try:
        await bot.start(Config.DISCORD_TOKEN)
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        traceback.print_exc()
    finally:
        await bot.close()

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
