"""Administrative configuration commands."""
import logging
from typing import Literal, Optional
import discord
from discord import app_commands
from utils.decorators import is_admin
from utils.normalize import parse_word_list
from .cog_template import StreakCog

logger = logging.getLogger(__name__)

def config_embed(config) -> discord.Embed:
    """Render a guild configuration."""
    embed = discord.Embed(title="⚙️ Streak Configuration", color=discord.Color.blue())
    embed.add_field(
        name="Trigger Words",
        value=", ".join(config.trigger_words) or "None configured",
        inline=False
    )
    embed.add_field(
        name="Streak Limit",
        value=f"{config.streak_limit} minutes" if config.streak_limit else "None",
        inline=True
    )
    embed.add_field(
        name="Day Streaks",
        value="Enabled" if config.streak_streak_enabled else "Disabled",
        inline=True
    )
    embed.add_field(
        name=f"Raids ({'on' if config.raid_enabled else 'off'})",
        value=(
            f"Base chance {config.raid_base_chance:.0%} + {config.raid_initiator_bonus:.0%}\n"
            f"Steal {config.raid_steal_pct:.0%} ({config.raid_min_steal}-{config.raid_max_steal})\n"
            f"Risk {config.raid_risk_pct:.0%} ({config.raid_min_risk}-{config.raid_max_risk})\n"
            f"Cooldown {config.raid_success_cooldown_hours}h win / "
            f"{config.raid_failure_cooldown_hours}h loss"
        ),
        inline=False
    )
    embed.add_field(
        name=f"Gambling ({'on' if config.gamble_enabled else 'off'})",
        value=(
            f"Win chance {config.gamble_success_chance:.0%}\n"
            f"Max wager {config.gamble_max_pct:.0%} of streak\n"
            f"Minimum streak {config.gamble_min_streak}"
        ),
        inline=False
    )
    return embed

class Admin(StreakCog):
    """Server configuration for administrators."""

    async def _reply(self, interaction: discord.Interaction, config, message: str):
        embed = config_embed(config)
        embed.description = f"✅ {message}"
        await interaction.followup.send(embed=embed, ephemeral=True)

    @app_commands.guild_only()
    @app_commands.command(name="setup", description="[Admin] Set the trigger words for this server")
    @app_commands.describe(words="Comma separated trigger words")
    @is_admin()
    async def setup_words(self, interaction: discord.Interaction, words: str):
        await interaction.response.defer(ephemeral=True)
        try:
            config = await self.guild_configs.set_trigger_words(interaction.guild_id, parse_word_list(words))
            await self._reply(interaction, config, "Trigger words updated")
        except Exception as e:
            await self.send_error(interaction, e)

    @app_commands.guild_only()
    @app_commands.command(name="addword", description="[Admin] Add trigger words")
    @app_commands.describe(words="Comma separated trigger words")
    @is_admin()
    async def add_word(self, interaction: discord.Interaction, words: str):
        await interaction.response.defer(ephemeral=True)
        try:
            config = await self.guild_configs.add_trigger_words(interaction.guild_id, parse_word_list(words))
            await self._reply(interaction, config, "Trigger words added")
        except Exception as e:
            await self.send_error(interaction, e)

    @app_commands.guild_only()
    @app_commands.command(name="removeword", description="[Admin] Remove trigger words")
    @app_commands.describe(words="Comma separated trigger words")
    @is_admin()
    async def remove_word(self, interaction: discord.Interaction, words: str):
        await interaction.response.defer(ephemeral=True)
        try:
            config = await self.guild_configs.remove_trigger_words(interaction.guild_id, parse_word_list(words))
            await self._reply(interaction, config, "Trigger words removed")
        except Exception as e:
            await self.send_error(interaction, e)

    @app_commands.guild_only()
    @app_commands.command(name="setstreaklimit", description="[Admin] Minutes between counted trigger words")
    @app_commands.describe(minutes="Minimum minutes between counted matches (0 for no limit)")
    @is_admin()
    async def set_streak_limit(self, interaction: discord.Interaction, minutes: app_commands.Range[int, 0]):
        await interaction.response.defer(ephemeral=True)
        try:
            config = await self.guild_configs.set_streak_limit(interaction.guild_id, minutes)
            await self._reply(interaction, config, "Streak limit updated")
        except Exception as e:
            await self.send_error(interaction, e)

    @app_commands.guild_only()
    @app_commands.command(name="togglestreakstreak", description="[Admin] Enable or disable day streaks")
    @is_admin()
    async def toggle_streak_streak(self, interaction: discord.Interaction, enabled: bool):
        await interaction.response.defer(ephemeral=True)
        try:
            config = await self.guild_configs.set_streak_streak_enabled(interaction.guild_id, enabled)
            await self._reply(interaction, config, f"Day streaks {'enabled' if enabled else 'disabled'}")
        except Exception as e:
            await self.send_error(interaction, e)

    @app_commands.guild_only()
    @app_commands.command(name="togglefeature", description="[Admin] Enable or disable raids or gambling")
    @is_admin()
    async def toggle_feature(
        self,
        interaction: discord.Interaction,
        feature: Literal["raid", "gamble"],
        enabled: bool
    ):
        await interaction.response.defer(ephemeral=True)
        try:
            config = await self.guild_configs.set_feature(interaction.guild_id, feature, enabled)
            await self._reply(interaction, config, f"{feature.capitalize()} {'enabled' if enabled else 'disabled'}")
        except Exception as e:
            await self.send_error(interaction, e)

    @app_commands.guild_only()
    @app_commands.command(name="raidconfig", description="[Admin] Tune raids")
    @app_commands.describe(
        base_chance="Base success chance (0-1)",
        initiator_bonus="Flat bonus for the raider (0-1)",
        steal_pct="Share of the target's streak stolen (0-1)",
        risk_pct="Share of the raider's streak at risk (0-1)",
        success_cooldown_hours="Hours before raiding again after a win",
        failure_cooldown_hours="Hours before raiding again after a loss"
    )
    @is_admin()
    async def raid_config(
        self,
        interaction: discord.Interaction,
        base_chance: Optional[float] = None,
        initiator_bonus: Optional[float] = None,
        steal_pct: Optional[float] = None,
        risk_pct: Optional[float] = None,
        min_steal: Optional[int] = None,
        max_steal: Optional[int] = None,
        min_risk: Optional[int] = None,
        max_risk: Optional[int] = None,
        success_cooldown_hours: Optional[int] = None,
        failure_cooldown_hours: Optional[int] = None
    ):
        await interaction.response.defer(ephemeral=True)
        try:
            config = await self.guild_configs.update_raid_settings(
                interaction.guild_id,
                base_chance=base_chance,
                initiator_bonus=initiator_bonus,
                steal_pct=steal_pct,
                risk_pct=risk_pct,
                min_steal=min_steal,
                max_steal=max_steal,
                min_risk=min_risk,
                max_risk=max_risk,
                success_cooldown_hours=success_cooldown_hours,
                failure_cooldown_hours=failure_cooldown_hours
            )
            await self._reply(interaction, config, "Raid settings updated")
        except Exception as e:
            await self.send_error(interaction, e)

    @app_commands.guild_only()
    @app_commands.command(name="gambleconfig", description="[Admin] Tune gambling")
    @app_commands.describe(
        success_chance="Chance to win a gamble (0-1)",
        max_pct="Largest share of a streak that may be wagered (0-1)",
        min_streak="Streak needed before gambling"
    )
    @is_admin()
    async def gamble_config(
        self,
        interaction: discord.Interaction,
        success_chance: Optional[float] = None,
        max_pct: Optional[float] = None,
        min_streak: Optional[int] = None
    ):
        await interaction.response.defer(ephemeral=True)
        try:
            config = await self.guild_configs.update_gamble_settings(
                interaction.guild_id,
                success_chance=success_chance,
                max_pct=max_pct,
                min_streak=min_streak
            )
            await self._reply(interaction, config, "Gamble settings updated")
        except Exception as e:
            await self.send_error(interaction, e)

    @app_commands.guild_only()
    @app_commands.command(name="config", description="[Admin] Show this server's streak configuration")
    @is_admin()
    async def show_config(self, interaction: discord.Interaction):
        await interaction.response.defer(ephemeral=True)
        try:
            config = await self.guild_configs.get_or_create(interaction.guild_id)
            await interaction.followup.send(embed=config_embed(config), ephemeral=True)
        except Exception as e:
            await self.send_error(interaction, e)

    @app_commands.guild_only()
    @app_commands.command(name="resetstreak", description="[Admin] Reset a member's streak")
    @app_commands.describe(user="Member whose streak to reset", word="Trigger word")
    @is_admin()
    async def reset_streak(self, interaction: discord.Interaction, user: discord.Member, word: str):
        await interaction.response.defer(ephemeral=True)
        try:
            streak = await self.ledger.reset(interaction.guild_id, user.id, word)
            await interaction.followup.send(
                f"✅ Reset {user.mention}'s **{streak.trigger_word}** streak. "
                f"Best streak kept at {streak.best_streak:,}.",
                ephemeral=True
            )
        except Exception as e:
            await self.send_error(interaction, e)

    @app_commands.command(name="refresh", description="[Admin] Reload commands and resync them with Discord")
    @is_admin()
    async def refresh(self, interaction: discord.Interaction):
        await interaction.response.defer(ephemeral=True)

        failed = []
        for extension in list(self.bot.extensions):
            try:
                await self.bot.reload_extension(extension)
                logger.info(f"Reloaded {extension}")
            except Exception as e:
                logger.error(f"Failed to reload {extension}: {e}")
                failed.append(extension)

        try:
            synced = await self.bot.sync_commands()
        except discord.HTTPException as e:
            logger.error(f"Error registering refreshed commands: {e}")
            await interaction.followup.send(
                "❌ Failed to register refreshed commands. Please restart the bot instead.",
                ephemeral=True
            )
            return

        message = f"✅ Command cache refreshed, {len(synced)} commands synced!"
        if failed:
            message += f"\n⚠️ Failed to reload: {', '.join(failed)}"
        await interaction.followup.send(message, ephemeral=True)

    async def cog_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        if isinstance(error, app_commands.CheckFailure):
            await interaction.response.send_message(
                "You don't have permission to use this command!",
                ephemeral=True
            )
        else:
            logger.error(f"Admin command error: {error}", extra={'guild_id': interaction.guild_id})

async def setup(bot):
    """Setup function for the Admin cog."""
    await bot.add_cog(Admin(bot))
