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

    # Database settings
    DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///club_events.db')

    # Bot settings
    COMMAND_PREFIX = os.getenv('COMMAND_PREFIX', '!')
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'

    # Event settings
    DEFAULT_PARTICIPATION_XP = int(os.getenv('DEFAULT_PARTICIPATION_XP', 50))
    CURRENCY_SYMBOL = os.getenv('CURRENCY_SYMBOL', 'R')

    # Scoring rule identifiers read by finalization
    KILL_RULE_ID = 'g_kill'
    HEADSHOT_RULE_ID = 'g_headshot'
    DEATH_RULE_ID = 'g_death'
    NO_SHOW_RULE_ID = os.getenv('NO_SHOW_RULE_ID', 'g_no_show_penalty')

    # Finalization safety switches
    FINALIZATION_EXACTLY_ONCE = os.getenv('FINALIZATION_EXACTLY_ONCE', 'False').lower() == 'true'
    STRICT_RANK_LADDER = os.getenv('STRICT_RANK_LADDER', 'False').lower() == 'true'

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
        if not cls.OWNER_DISCORD_ID:
            raise ValueError("OWNER_DISCORD_ID is required")
        if cls.DEFAULT_PARTICIPATION_XP < 0:
            raise ValueError("DEFAULT_PARTICIPATION_XP cannot be negative")
