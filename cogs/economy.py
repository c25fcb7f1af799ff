"""Gamble and raid commands."""
import discord
from discord import app_commands
from .cog_template import StreakCog

class Economy(StreakCog):
    """Streak gambling and raiding."""

    @app_commands.guild_only()
    @app_commands.command(name="gamble", description="Wager part of your streak on a coin flip")
    @app_commands.describe(word="Trigger word whose streak you wager", amount="Streaks to wager")
    async def gamble(self, interaction: discord.Interaction, word: str, amount: int):
        await interaction.response.defer()

        try:
            result = await self.economy.gamble(interaction.guild_id, interaction.user.id, word, amount)
            outcome = result.outcome

            if outcome.won:
                embed = discord.Embed(
                    title="🎲 Gamble Won!",
                    description=f"{interaction.user.mention} won **{outcome.amount:,}** streaks!",
                    color=discord.Color.green()
                )
            else:
                embed = discord.Embed(
                    title="🎲 Gamble Lost",
                    description=f"{interaction.user.mention} lost **{outcome.amount:,}** streaks.",
                    color=discord.Color.red()
                )

            embed.add_field(name="Previous Streak", value=f"{result.previous_count:,}", inline=True)
            embed.add_field(name="New Streak", value=f"{result.streak.count:,}", inline=True)
            embed.add_field(name="Odds", value=f"{outcome.chance:.0%}", inline=True)
            embed.set_footer(text=f"Word: {result.streak.trigger_word}")
            embed.timestamp = discord.utils.utcnow()

            await interaction.followup.send(embed=embed)
        except Exception as e:
            await self.send_error(interaction, e)

    @app_commands.guild_only()
    @app_commands.command(name="raid", description="Try to steal streaks from another member")
    @app_commands.describe(word="Trigger word to raid", target="Member to raid")
    async def raid(self, interaction: discord.Interaction, word: str, target: discord.Member):
        await interaction.response.defer()

        if target.bot:
            await interaction.followup.send("❌ You can't raid bots!", ephemeral=True)
            return

        try:
            result = await self.economy.raid(interaction.guild_id, interaction.user.id, target.id, word)
            outcome = result.outcome
            terms = outcome.terms

            if outcome.success:
                embed = discord.Embed(
                    title="⚔️ Raid Successful!",
                    description=(
                        f"{interaction.user.mention} stole **{outcome.attacker_delta:,}** streaks "
                        f"from {target.mention}!"
                    ),
                    color=discord.Color.green()
                )
            else:
                embed = discord.Embed(
                    title="🛡️ Raid Failed",
                    description=(
                        f"{target.mention} fought back and took **{outcome.defender_delta:,}** streaks "
                        f"from {interaction.user.mention}."
                    ),
                    color=discord.Color.red()
                )

            embed.add_field(
                name=interaction.user.display_name,
                value=f"{result.attacker_previous:,} → **{result.attacker.count:,}**",
                inline=True
            )
            embed.add_field(
                name=target.display_name,
                value=f"{result.defender_previous:,} → **{result.defender.count:,}**",
                inline=True
            )
            embed.add_field(name="Success Chance", value=f"{terms.chance:.0%}", inline=True)
            embed.add_field(
                name="Next Raid",
                value=discord.utils.format_dt(result.available_at, style="R"),
                inline=False
            )
            embed.set_footer(text=f"Word: {result.attacker.trigger_word}")

            await interaction.followup.send(embed=embed)
        except Exception as e:
            await self.send_error(interaction, e)

    @app_commands.guild_only()
    @app_commands.command(name="raidinfo", description="Preview your odds against another member")
    @app_commands.describe(word="Trigger word to raid", target="Member to scout")
    async def raid_info(self, interaction: discord.Interaction, word: str, target: discord.Member):
        await interaction.response.defer(ephemeral=True)

        try:
            terms = await self.economy.raid_preview(interaction.guild_id, interaction.user.id, target.id, word)

            embed = discord.Embed(
                title=f"🔍 Raid Preview: {target.display_name}",
                color=discord.Color.blue()
            )
            embed.add_field(name="Success Chance", value=f"{terms.chance:.0%}", inline=True)
            embed.add_field(name="Size Bonus", value=f"+{terms.progressive_bonus:.0%}", inline=True)
            embed.add_field(name="On Success", value=f"Steal **{terms.steal_amount:,}**", inline=False)
            embed.add_field(name="On Failure", value=f"Lose **{terms.risk_amount:,}**", inline=False)
            if terms.steal_bonus:
                embed.add_field(
                    name="Underdog",
                    value=(
                        f"+{terms.steal_bonus:.1%} steal, "
                        f"risk reduced to {terms.risk_multiplier:.0%}"
                    ),
                    inline=False
                )

            await interaction.followup.send(embed=embed, ephemeral=True)
        except Exception as e:
            await self.send_error(interaction, e)

async def setup(bot):
    """Setup function for the Economy cog."""
    await bot.add_cog(Economy(bot))
