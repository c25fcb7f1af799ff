"""Shared fixtures for the streak bot tests."""
import random
import pytest
from database.database import Database
from database.models import GuildConfig
from services import EconomyService, GuildConfigService, StreakLedger

GUILD_ID = "1000"

class FixedRandom(random.Random):
    """Random source whose every draw is the same value."""

    def __init__(self, value: float):
        super().__init__()
        self.value = value

    def random(self):
        return self.value

@pytest.fixture
def make_config():
    """Build an unsaved guild configuration with defaults and overrides."""
    def _make(**overrides):
        return GuildConfig.with_defaults(GUILD_ID, **overrides)
    return _make

@pytest.fixture
async def database(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'streaks.db'}", acquire_timeout=5)
    await db.initialize()
    yield db
    await db.close()

@pytest.fixture
def ledger(database):
    return StreakLedger(database, max_retries=2, retry_delay=0)

@pytest.fixture
def guild_configs(database):
    return GuildConfigService(database, max_retries=2, retry_delay=0)

@pytest.fixture
def economy(ledger, guild_configs):
    """Factory for an EconomyService whose rolls always return ``value``."""
    def _make(value: float):
        return EconomyService(ledger, guild_configs, rng=FixedRandom(value))
    return _make

@pytest.fixture
async def set_count(ledger):
    """Give a user a streak of exactly ``count`` for ``word``."""
    async def _set(user_id, count, word="hello", guild_id=GUILD_ID):
        streak = await ledger.get_or_create(guild_id, user_id, word)
        return await ledger.apply_delta(guild_id, user_id, word, count - streak.count)
    return _set
