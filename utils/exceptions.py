"""Custom exceptions for the streak bot."""
import math
from datetime import datetime, timedelta


class BotError(Exception):
    """Base exception for all bot-related errors."""
    pass

class PersistenceError(BotError):
    """Raised when a database connection or transaction fails."""
    pass

class MigrationError(PersistenceError):
    """Raised when the startup schema migration cannot be completed."""
    def __init__(self, message: str, restored: bool = False):
        super().__init__(message)
        self.restored = restored

class ValidationError(BotError):
    """Raised when user or admin input is malformed."""
    pass

class InvalidTriggerWordError(ValidationError):
    """Raised when a trigger word is empty or not a string."""
    def __init__(self, word):
        self.word = word
        super().__init__(f"Invalid trigger word: {word!r}. Trigger words must be non-empty text.")

class InvalidWagerError(ValidationError):
    """Raised when a gamble amount is outside the allowed bounds."""
    def __init__(self, amount: int, max_amount: int):
        self.amount = amount
        self.max_amount = max_amount
        if max_amount < 1:
            message = f"Invalid wager: {amount}. Your streak is too small to gamble any amount."
        else:
            message = f"Invalid wager: {amount}. Amount must be between 1 and {max_amount}."
        super().__init__(message)

class InsufficientStreakError(ValidationError):
    """Raised when a streak is below the guild's minimum for gambling."""
    def __init__(self, count: int, required: int):
        self.count = count
        self.required = required
        super().__init__(
            f"You need a streak of at least {required} to gamble. Current streak: {count}"
        )

class FeatureDisabledError(BotError):
    """Raised when raiding or gambling is switched off for a guild."""
    def __init__(self, feature: str):
        self.feature = feature
        super().__init__(f"{feature.capitalize()} is disabled in this server.")

class EntryBarrierNotMetError(BotError):
    """Raised when an attacker's streak is too small to raid the target."""
    def __init__(self, attacker_count: int, target_count: int, required: int):
        self.attacker_count = attacker_count
        self.target_count = target_count
        self.required = required
        super().__init__(
            f"You need a streak of at least {required} to raid a streak of {target_count}. "
            f"Current streak: {attacker_count}"
        )

class RaidOnCooldownError(BotError):
    """Raised when an attacker raids again before their cooldown expires."""
    def __init__(self, available_at: datetime, remaining: timedelta):
        self.available_at = available_at
        self.remaining = remaining
        minutes = max(1, math.ceil(remaining.total_seconds() / 60))
        hours, minutes = divmod(minutes, 60)
        wait = f"{hours}h {minutes}m" if hours else f"{minutes}m"
        super().__init__(f"You're still recovering from your last raid. Try again in {wait}.")

class StreakNotFoundError(BotError):
    """Raised when a streak record that must exist cannot be found."""
    def __init__(self, guild_id: str, user_id: str, word: str):
        self.guild_id = guild_id
        self.user_id = user_id
        self.word = word
        super().__init__(f"No streak for '{word}' found for user {user_id}")
