import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Bot configuration settings"""

    # Discord settings
    DISCORD_TOKEN = os.getenv('DISCORD_TOKEN')
    DISCORD_GUILD_ID = int(os.getenv('DISCORD_GUILD_ID', 0))
    DISCORD_GUILD_IDS = os.getenv('DISCORD_GUILD_IDS', '')  # Comma-separated for multi-guild support
    OWNER_DISCORD_ID = int(os.getenv('OWNER_DISCORD_ID', 0))
    MOTD_CHANNEL_ID = int(os.getenv('MOTD_CHANNEL_ID', 0))  # Channel holding the daily map announcement
    WEBHOOK_URL = os.getenv('WEBHOOK_URL')

    # osu! API settings
    OSU_CLIENT_ID = os.getenv('OSU_CLIENT_ID')
    OSU_CLIENT_SECRET = os.getenv('OSU_CLIENT_SECRET')
    GAMEMODE = os.getenv('GAMEMODE', 'osu')

    # Storage settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///dailies.db')
    SCORE_PATH = os.getenv('SCORE_PATH', 'scores')

    # Bot settings
    COMMAND_PREFIX = os.getenv('COMMAND_PREFIX', '!')
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'

    # Tracker settings
    REFRESH_INTERVAL = float(os.getenv('REFRESH_INTERVAL', 60))
    RECOVERY_INTERVAL = float(os.getenv('RECOVERY_INTERVAL', 0))  # 0 = startup sweep only
    RECENT_PAGE_SIZE = int(os.getenv('RECENT_PAGE_SIZE', 5))
    RECOVERY_WINDOW = int(os.getenv('RECOVERY_WINDOW', 50))

    # Outbound request budgets
    WEBHOOK_RATE_LIMIT = int(os.getenv('WEBHOOK_RATE_LIMIT', 5))
    WEBHOOK_RATE_INTERVAL = float(os.getenv('WEBHOOK_RATE_INTERVAL', 5))
    OSU_RATE_LIMIT = int(os.getenv('OSU_RATE_LIMIT', 500))
    OSU_RATE_INTERVAL = float(os.getenv('OSU_RATE_INTERVAL', 60))

    @classmethod
    def get_guild_ids(cls):
        """Get list of guild IDs for command syncing"""
        if cls.DISCORD_GUILD_IDS:
            try:
                return [int(guild_id.strip()) for guild_id in cls.DISCORD_GUILD_IDS.split(',') if guild_id.strip()]
            except ValueError:
                raise ValueError("DISCORD_GUILD_IDS must be comma-separated integers")
        elif cls.DISCORD_GUILD_ID:
            return [cls.DISCORD_GUILD_ID]
        else:
            # Global sync
            return []

    @classmethod
    def validate(cls):
        """Validate that required configuration is present"""
        if not cls.DISCORD_TOKEN:
            raise ValueError("DISCORD_TOKEN is required")
        if not cls.OSU_CLIENT_ID or not cls.OSU_CLIENT_SECRET:
            raise ValueError("OSU_CLIENT_ID and OSU_CLIENT_SECRET are required")
        if not cls.WEBHOOK_URL:
            raise ValueError("WEBHOOK_URL is required")
        if cls.REFRESH_INTERVAL <= 0:
            raise ValueError("REFRESH_INTERVAL must be positive")
