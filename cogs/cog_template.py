"""Base class for streak cogs with shared error reporting."""
import logging
import discord
from discord.ext import commands
from utils.exceptions import BotError, PersistenceError

logger = logging.getLogger(__name__)

class StreakCog(commands.Cog):
    """Base class for cogs that talk to the streak services."""

    def __init__(self, bot: commands.Bot):
        self.bot = bot
        if not hasattr(bot, 'streak_ledger'):
            raise RuntimeError("Streak services not initialized. Ensure setup_hook ran before loading cogs")
        self.ledger = bot.streak_ledger
        self.guild_configs = bot.guild_configs
        self.economy = bot.economy_service

    async def send_error(self, interaction: discord.Interaction, error: Exception) -> None:
        """Report a failed command to the user who ran it."""
        if isinstance(error, PersistenceError):
            logger.error(f"Database error in /{interaction.command.name if interaction.command else '?'}: {error}")
            message = "❌ The streak database is unavailable right now. Please try again later."
        elif isinstance(error, BotError):
            message = f"❌ {error}"
        else:
            logger.error(f"Unexpected error: {error}", exc_info=error)
            message = f"❌ Something went wrong: {error}"

        if interaction.response.is_done():
            await interaction.followup.send(message, ephemeral=True)
        else:
            await interaction.response.send_message(message, ephemeral=True)
