"""Utility functions and helpers."""
from .exceptions import (
    BotError,
    PersistenceError,
    MigrationError,
    ValidationError,
    InvalidTriggerWordError,
    InvalidWagerError,
    InsufficientStreakError,
    FeatureDisabledError,
    EntryBarrierNotMetError,
    RaidOnCooldownError,
    StreakNotFoundError
)
from .normalize import normalize_word, normalize_trigger_words
from .retry import with_retry

__all__ = [
    'BotError',
    'PersistenceError',
    'MigrationError',
    'ValidationError',
    'InvalidTriggerWordError',
    'InvalidWagerError',
    'InsufficientStreakError',
    'FeatureDisabledError',
    'EntryBarrierNotMetError',
    'RaidOnCooldownError',
    'StreakNotFoundError',
    'normalize_word',
    'normalize_trigger_words',
    'with_retry'
]
