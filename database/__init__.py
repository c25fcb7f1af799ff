"""Initialize database package."""
from .database import Base, Database
from .models import GuildConfig, Streak, utc_now, ensure_utc
from .migrations import SchemaMigrator

__all__ = [
    'Base',
    'Database',
    'GuildConfig',
    'Streak',
    'SchemaMigrator',
    'utc_now',
    'ensure_utc',
]
