import asyncio
import logging
import traceback
from typing import Optional

import discord
from discord.ext import commands
from discord import app_commands

from clubbot.config import Config
from clubbot.database.database import Database
from clubbot.database.document_store import SqlDocumentStore
from clubbot.services.configuration import ConfigurationService
from clubbot.services.seed_configurations import seed_defaults
from clubbot.utils.exceptions import ClubOperationError
from clubbot.utils.logger import setup_logger

class ClubBot(commands.Bot):
    def __init__(self):
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True

        super().__init__(
            command_prefix=Config.COMMAND_PREFIX,
            intents=intents,
            help_command=None
        )

        self.tree.on_error = self.on_app_command_error

        self.db: Optional[Database] = None
        self.store: Optional[SqlDocumentStore] = None
        self.config_service: Optional[ConfigurationService] = None
        self.logger = setup_logger(__name__)

    async def setup_hook(self):
        """Called when the bot is starting up"""
        self.logger.info("Setting up Club Bot...")

        self.db = Database()
        await self.db.initialize()
        self.store = SqlDocumentStore(self.db)

        self.config_service = ConfigurationService(self.db)
        await self.config_service.load_all()
        await seed_defaults(self.config_service, self.store, Config.OWNER_DISCORD_ID)

        await self.load_cogs()
        await self._sync_commands()

        self.logger.info("Club Bot setup complete!")

    async def load_cogs(self):
        for cog in ('clubbot.cogs.events', 'clubbot.cogs.progression'):
            try:
                await self.load_extension(cog)
                self.logger.info(f"Loaded cog: {cog}")
            except Exception as e:
                self.logger.error(f"Failed to load cog {cog}: {e}", exc_info=True)

    async def _sync_commands(self):
        """Sync slash commands per guild when configured, else globally"""
        if not self.tree.get_commands():
            self.logger.warning("No application commands found to sync. Check for cog loading errors.")
            return

        guild_ids = Config.get_guild_ids()
        try:
            if not guild_ids:
                synced = await self.tree.sync()
                self.logger.info(f"Synced {len(synced)} command(s) globally")
                return

            for guild_id in guild_ids:
                guild = discord.Object(id=guild_id)
                self.tree.copy_global_to(guild=guild)
                try:
                    synced = await self.tree.sync(guild=guild)
                    self.logger.info(f"Synced {len(synced)} command(s) to guild {guild_id}")
                except discord.errors.HTTPException as e:
                    self.logger.error(f"Failed to sync commands to guild {guild_id}: {e}", exc_info=True)
        except Exception as e:
            self.logger.error(f"Failed to sync commands: {e}", exc_info=True)

    async def on_ready(self):
        self.logger.info(f'{self.user} has connected to Discord!')
        await self.change_presence(activity=discord.Game(name="Club events | /event-finalize"))

    async def on_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        """Global error handler for slash commands"""
        command_name = interaction.command.name if interaction.command else 'Unknown'
        original = getattr(error, 'original', error)

        if isinstance(error, app_commands.CheckFailure):
            self.logger.info(f"Permission denied for command '{command_name}' by user {interaction.user}")
            message = "❌ You don't have permission to use this command."
        elif isinstance(original, ClubOperationError):
            self.logger.warning(f"Command '{command_name}' rejected: {original}")
            message = original.user_message
        else:
            self.logger.error(f"Error in app command '{command_name}': {error}", exc_info=True)
            message = "❌ An unexpected error occurred while processing your command."

        try:
            if interaction.response.is_done():
                await interaction.followup.send(message, ephemeral=True)
            else:
                await interaction.response.send_message(message, ephemeral=True)
        except Exception as e:
            self.logger.error(f"Failed to send error response: {e}")

    async def close(self):
        self.logger.info("Shutting down Club Bot...")
        if self.db:
            await self.db.close()
        await super().close()

async def main():
    """Main entry point"""
    Config.validate()

    bot = ClubBot()

    try:
        await bot.start(Config.DISCORD_TOKEN)
    except KeyboardInterrupt:
        await bot.close()
    except Exception as e:
        logging.error(f"Fatal error: {e}")
        traceback.print_exc()
    finally:
        await bot.close()

def run():
    asyncio.run(main())

if __name__ == "__main__":
    run()
