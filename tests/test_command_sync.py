"""Tests for slash command registration and /refresh."""
import logging
from types import SimpleNamespace
from bot import StreakBot
from cogs.admin import Admin

class FakeTree:
    def __init__(self):
        self.copied_to = []
        self.synced = []

    def copy_global_to(self, guild):
        self.copied_to.append(guild.id)

    async def sync(self, guild=None):
        self.synced.append(guild.id if guild else None)
        return [SimpleNamespace(name="streaks"), SimpleNamespace(name="refresh")]

class FakeInteraction:
    def __init__(self):
        self.sent = []
        self.response = SimpleNamespace(defer=self._defer)
        self.followup = SimpleNamespace(send=self._send)

    async def _defer(self, **kwargs):
        pass

    async def _send(self, content=None, **kwargs):
        self.sent.append(content)

def fake_bot(guild_id):
    return SimpleNamespace(
        config=SimpleNamespace(guild_id=guild_id),
        tree=FakeTree(),
        logger=logging.getLogger("test.bot"),
    )

async def test_development_guild_sync_is_guild_only():
    bot = fake_bot("42")
    synced = await StreakBot.sync_commands(bot)

    assert len(synced) == 2
    assert bot.tree.copied_to == [42]
    assert bot.tree.synced == [42]

async def test_global_sync_without_development_guild():
    bot = fake_bot(None)
    await StreakBot.sync_commands(bot)

    assert bot.tree.copied_to == []
    assert bot.tree.synced == [None]

async def test_refresh_resyncs_the_same_way_as_startup(ledger, guild_configs):
    bot = fake_bot("42")
    bot.extensions = {}
    bot.streak_ledger = ledger
    bot.guild_configs = guild_configs
    bot.economy_service = None

    async def sync_commands():
        return await StreakBot.sync_commands(bot)

    bot.sync_commands = sync_commands
    cog = Admin(bot)
    interaction = FakeInteraction()

    await Admin.refresh.callback(cog, interaction)

    assert bot.tree.synced == [42]
    assert "2 commands synced" in interaction.sent[0]
