"""Trigger word tracking and streak commands."""
import logging
from typing import Optional
import discord
from discord.ext import commands
from discord import app_commands
from database.models import utc_now
from utils.normalize import find_trigger_words
from .cog_template import StreakCog

logger = logging.getLogger(__name__)

MILESTONE_EVERY = 10

class Streaks(StreakCog):
    """Counts trigger words and shows streaks."""

    @commands.Cog.listener()
    async def on_message(self, message: discord.Message):
        if message.author.bot or not message.guild or not message.content:
            return

        try:
            config = await self.guild_configs.get_or_create(message.guild.id)
        except Exception as e:
            logger.error(f"Could not load trigger words: {e}", extra={'guild_id': message.guild.id})
            return

        for word in find_trigger_words(message.content, config.trigger_words):
            context = {'guild_id': message.guild.id, 'user_id': message.author.id, 'trigger_word': word}
            try:
                update = await self.ledger.increment(
                    message.guild.id,
                    message.author.id,
                    word,
                    streak_limit=config.streak_limit,
                    streak_streak_enabled=config.streak_streak_enabled,
                    now=utc_now()
                )
            except Exception as e:
                logger.error(f"Error counting trigger word: {e}", extra=context)
                continue

            if update.counted:
                await self.announce(message, word, update.streak.count)

    async def announce(self, message: discord.Message, word: str, count: int):
        """React to a counted match and celebrate milestones; the count is already saved."""
        try:
            await message.add_reaction("🔥")
            if count % MILESTONE_EVERY == 0:
                await message.reply(
                    f"🎉 {message.author.mention} hit a **{count}** streak on **{word}**!",
                    mention_author=False
                )
        except discord.HTTPException as e:
            logger.warning(
                f"Could not acknowledge streak in #{message.channel}: {e}",
                extra={'guild_id': message.guild.id, 'user_id': message.author.id, 'trigger_word': word}
            )

    @app_commands.guild_only()
    @app_commands.command(name="streaks", description="Show streaks for yourself or another member")
    @app_commands.describe(user="Member to look up (defaults to you)")
    async def streaks(self, interaction: discord.Interaction, user: Optional[discord.Member] = None):
        await interaction.response.defer(ephemeral=True)
        member = user or interaction.user

        try:
            config = await self.guild_configs.get_or_create(interaction.guild_id)
            records = await self.ledger.user_streaks(interaction.guild_id, member.id)

            embed = discord.Embed(
                title=f"🔥 {member.display_name}'s Streaks",
                color=discord.Color.orange()
            )
            if not records:
                embed.description = "No streaks yet!"

            for streak in records:
                value = f"Current: **{streak.count:,}**\nBest: **{streak.best_streak:,}**"
                if config.streak_streak_enabled:
                    if await self.ledger.decay_check(interaction.guild_id, member.id, streak.trigger_word):
                        streak.streak_streak = 0
                    value += f"\nDay streak: **{streak.streak_streak}**"
                embed.add_field(name=streak.trigger_word, value=value, inline=True)

            embed.set_thumbnail(url=member.display_avatar.url)
            await interaction.followup.send(embed=embed, ephemeral=True)
        except Exception as e:
            await self.send_error(interaction, e)

    @app_commands.guild_only()
    @app_commands.command(name="leaderboard", description="Show the top streaks for a trigger word")
    @app_commands.describe(word="Trigger word", best="Rank by best-ever streak instead of current")
    async def leaderboard(self, interaction: discord.Interaction, word: str, best: bool = False):
        await interaction.response.defer()

        try:
            records = await self.ledger.leaderboard(interaction.guild_id, word, limit=10, by_best=best)

            embed = discord.Embed(
                title=f"🏆 {'Best' if best else 'Current'} Streaks: {word.strip().lower()}",
                color=discord.Color.gold()
            )

            # Medal emojis for top 3
            medals = {0: "🥇", 1: "🥈", 2: "🥉"}

            lines = []
            for idx, streak in enumerate(records):
                prefix = medals.get(idx, f"`#{idx+1}`")
                value = streak.best_streak if best else streak.count
                lines.append(f"{prefix} <@{streak.user_id}>: **{value:,}**")

            embed.description = "\n".join(lines) if lines else "No streaks recorded yet!"
            await interaction.followup.send(embed=embed)
        except Exception as e:
            await self.send_error(interaction, e)

async def setup(bot):
    """Setup function for the Streaks cog."""
    await bot.add_cog(Streaks(bot))
