"""Service for managing per-guild configuration."""
import logging
from typing import Callable, Dict, Iterable, Tuple
from sqlalchemy import select
from database.models import GuildConfig
from utils.exceptions import ValidationError
from utils.normalize import normalize_trigger_words
from utils.retry import with_retry, DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY

logger = logging.getLogger(__name__)

# setting name -> (type, minimum, maximum); None means unbounded
RAID_SETTINGS: Dict[str, Tuple[type, float, float]] = {
    'base_chance': (float, 0.0, 1.0),
    'initiator_bonus': (float, 0.0, 1.0),
    'steal_pct': (float, 0.0, 1.0),
    'risk_pct': (float, 0.0, 1.0),
    'min_steal': (int, 0, None),
    'max_steal': (int, 0, None),
    'min_risk': (int, 0, None),
    'max_risk': (int, 0, None),
    'success_cooldown_hours': (int, 0, None),
    'failure_cooldown_hours': (int, 0, None),
}

GAMBLE_SETTINGS: Dict[str, Tuple[type, float, float]] = {
    'success_chance': (float, 0.0, 1.0),
    'max_pct': (float, 0.0, 1.0),
    'min_streak': (int, 0, None),
}

FEATURES = ('raid', 'gamble')

def _coerce(name: str, value, rule: Tuple[type, float, float]):
    kind, minimum, maximum = rule
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{name} must be a number")
    if kind is int and float(value) != int(value):
        raise ValidationError(f"{name} must be a whole number")
    value = kind(value)
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be at least {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{name} must be at most {maximum}")
    return value

def validate_bounds(config: GuildConfig) -> None:
    """Cross-field checks on a guild's economy settings."""
    if config.raid_min_steal > config.raid_max_steal:
        raise ValidationError("min_steal cannot be greater than max_steal")
    if config.raid_min_risk > config.raid_max_risk:
        raise ValidationError("min_risk cannot be greater than max_risk")

class GuildConfigService:
    """Get-or-create and administrative updates of guild configuration."""

    def __init__(
        self,
        database,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY
    ):
        self.db = database
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_bot(cls, bot):
        """Create service instance from bot instance."""
        return cls(
            bot.database,
            max_retries=bot.config.database.max_retries,
            retry_delay=bot.config.database.retry_delay
        )

    async def _get_or_create(self, session, guild_id: str) -> GuildConfig:
        config = await session.get(GuildConfig, guild_id)
        if config is None:
            config = GuildConfig.with_defaults(guild_id)
            session.add(config)
            await session.flush()
            self.logger.info("Created guild configuration", extra={'guild_id': guild_id})
        return config

    async def get_or_create(self, guild_id) -> GuildConfig:
        """Fetch a guild's configuration, creating defaults on first use."""
        async def operation():
            async with self.db.transaction() as session:
                return await self._get_or_create(session, str(guild_id))

        return await with_retry(operation, self.max_retries, self.retry_delay)

    async def all_configs(self):
        """Every stored guild configuration."""
        async def operation():
            async with self.db.session() as session:
                result = await session.execute(select(GuildConfig))
                return list(result.scalars().all())

        return await with_retry(operation, self.max_retries, self.retry_delay)

    async def _update(self, guild_id, mutate: Callable[[GuildConfig], None]) -> GuildConfig:
        async def operation():
            async with self.db.transaction() as session:
                config = await self._get_or_create(session, str(guild_id))
                mutate(config)
                validate_bounds(config)
                return config

        return await with_retry(operation, self.max_retries, self.retry_delay)

    async def set_trigger_words(self, guild_id, words: Iterable[str]) -> GuildConfig:
        """Replace the guild's trigger words."""
        normalized = normalize_trigger_words(words)
        if not normalized:
            raise ValidationError("Provide at least one non-empty trigger word")

        def mutate(config):
            config.trigger_words = normalized

        return await self._update(guild_id, mutate)

    async def add_trigger_words(self, guild_id, words: Iterable[str]) -> GuildConfig:
        """Add words to the guild's trigger words."""
        normalized = normalize_trigger_words(words)
        if not normalized:
            raise ValidationError("Provide at least one non-empty trigger word")

        def mutate(config):
            # Reassign: in-place changes to a JSON column are not tracked
            config.trigger_words = normalize_trigger_words(list(config.trigger_words) + normalized)

        return await self._update(guild_id, mutate)

    async def remove_trigger_words(self, guild_id, words: Iterable[str]) -> GuildConfig:
        """Remove words from the guild's trigger words."""
        normalized = normalize_trigger_words(words)

        def mutate(config):
            current = list(config.trigger_words)
            if not any(word in current for word in normalized):
                raise ValidationError("None of those words are trigger words in this server")
            config.trigger_words = [word for word in current if word not in normalized]

        return await self._update(guild_id, mutate)

    async def set_streak_limit(self, guild_id, minutes: int) -> GuildConfig:
        """Set the minimum minutes between counted matches."""
        minutes = _coerce('streak_limit', minutes, (int, 0, None))

        def mutate(config):
            config.streak_limit = minutes

        return await self._update(guild_id, mutate)

    async def set_streak_streak_enabled(self, guild_id, enabled: bool) -> GuildConfig:
        def mutate(config):
            config.streak_streak_enabled = bool(enabled)

        return await self._update(guild_id, mutate)

    async def set_feature(self, guild_id, feature: str, enabled: bool) -> GuildConfig:
        """Switch raiding or gambling on or off."""
        if feature not in FEATURES:
            raise ValidationError(f"Unknown feature '{feature}'. Choose from: {', '.join(FEATURES)}")

        def mutate(config):
            setattr(config, f"{feature}_enabled", bool(enabled))

        return await self._update(guild_id, mutate)

    async def update_raid_settings(self, guild_id, **changes) -> GuildConfig:
        """Update raid tunables, e.g. ``base_chance=0.4, max_steal=25``."""
        return await self._update_settings(guild_id, 'raid', RAID_SETTINGS, changes)

    async def update_gamble_settings(self, guild_id, **changes) -> GuildConfig:
        """Update gamble tunables, e.g. ``success_chance=0.45``."""
        return await self._update_settings(guild_id, 'gamble', GAMBLE_SETTINGS, changes)

    async def _update_settings(self, guild_id, prefix: str, rules, changes) -> GuildConfig:
        values = {}
        for name, value in changes.items():
            if value is None:
                continue
            if name not in rules:
                raise ValidationError(f"Unknown {prefix} setting '{name}'")
            values[f"{prefix}_{name}"] = _coerce(name, value, rules[name])
        if not values:
            raise ValidationError(f"No {prefix} settings to update")

        def mutate(config):
            for attr, value in values.items():
                setattr(config, attr, value)

        config = await self._update(guild_id, mutate)
        self.logger.info(f"Updated {prefix} settings: {values}", extra={'guild_id': str(guild_id)})
        return config
