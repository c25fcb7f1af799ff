from discord import app_commands
import discord

def is_admin():
    """Restrict an app command to server administrators.

    Uses the invoker's resolved permissions in the channel, so it fails with
    NoPrivateMessage in DMs and CheckFailure for everyone else.
    """
    def predicate(interaction: discord.Interaction) -> bool:
        if interaction.guild is None:
            raise app_commands.NoPrivateMessage()
        return interaction.permissions.administrator
    return app_commands.check(predicate)
