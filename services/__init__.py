"""Initialize services package."""
from .streak_ledger import StreakLedger, LedgerTransaction, StreakUpdate
from .guild_config_service import GuildConfigService
from .economy_service import EconomyService, GambleResult, RaidResult

__all__ = [
    'StreakLedger',
    'LedgerTransaction',
    'StreakUpdate',
    'GuildConfigService',
    'EconomyService',
    'GambleResult',
    'RaidResult'
]
