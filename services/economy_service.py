"""Service running gambles and raids against the streak ledger."""
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from database.models import Streak, utc_now, ensure_utc
from services import economy_engine as engine
from services.economy_engine import GambleOutcome, RaidOutcome, RaidTerms
from services.guild_config_service import GuildConfigService
from services.streak_ledger import StreakLedger
from utils.exceptions import FeatureDisabledError, ValidationError
from utils.normalize import normalize_word

logger = logging.getLogger(__name__)

@dataclass
class GambleResult:
    """Result of a gamble with the streak it was applied to."""
    outcome: GambleOutcome
    previous_count: int
    streak: Streak

@dataclass
class RaidResult:
    """Result of a raid with both streaks after it was applied."""
    outcome: RaidOutcome
    attacker_previous: int
    defender_previous: int
    attacker: Streak
    defender: Streak
    available_at: datetime

class EconomyService:
    """Read state, evaluate the economy rules, apply the outcome atomically."""

    def __init__(
        self,
        ledger: StreakLedger,
        guild_configs: GuildConfigService,
        rng: Optional[random.Random] = None
    ):
        self.ledger = ledger
        self.guild_configs = guild_configs
        self.rng = rng
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_bot(cls, bot):
        """Create a service sharing the bot's ledger and guild configuration."""
        return cls(bot.streak_ledger, bot.guild_configs)

    async def gamble(self, guild_id, user_id, word: str, amount: int) -> GambleResult:
        """Wager part of a streak on a single roll."""
        word = normalize_word(word)
        config = await self.guild_configs.get_or_create(guild_id)
        if not config.gamble_enabled:
            raise FeatureDisabledError("gambling")

        async def operation():
            async with self.ledger.transaction(guild_id, word) as tx:
                streak = await tx.require(user_id)
                previous = streak.count
                outcome = engine.resolve_gamble(previous, amount, config, self.rng)
                tx.apply_delta(streak, outcome.delta)
                return GambleResult(outcome=outcome, previous_count=previous, streak=streak)

        result = await self.ledger.run(operation)
        self.logger.info(
            f"Gamble {'won' if result.outcome.won else 'lost'}: {result.outcome.delta:+d} "
            f"({result.previous_count} -> {result.streak.count})",
            extra={'guild_id': str(guild_id), 'user_id': str(user_id), 'trigger_word': word}
        )
        return result

    def _check_participants(self, config, attacker_id, defender_id) -> None:
        if not config.raid_enabled:
            raise FeatureDisabledError("raiding")
        if str(attacker_id) == str(defender_id):
            raise ValidationError("You can't raid yourself.")

    async def raid_preview(self, guild_id, attacker_id, defender_id, word: str,
                           now: Optional[datetime] = None) -> RaidTerms:
        """Odds and stakes of a raid, checking eligibility without rolling."""
        word = normalize_word(word)
        now = ensure_utc(now) if now else utc_now()
        config = await self.guild_configs.get_or_create(guild_id)
        self._check_participants(config, attacker_id, defender_id)

        attacker = await self.ledger.get(guild_id, attacker_id, word)
        defender = await self.ledger.get(guild_id, defender_id, word)
        engine.validate_raid(
            attacker.count, defender.count, config,
            ensure_utc(attacker.last_raid_at), attacker.last_raid_success, now
        )
        return engine.raid_terms(attacker.count, defender.count, config)

    async def raid(self, guild_id, attacker_id, defender_id, word: str,
                   now: Optional[datetime] = None) -> RaidResult:
        """Try to steal streak from another user, risking your own."""
        word = normalize_word(word)
        now = ensure_utc(now) if now else utc_now()
        config = await self.guild_configs.get_or_create(guild_id)
        self._check_participants(config, attacker_id, defender_id)

        async def operation():
            async with self.ledger.transaction(guild_id, word) as tx:
                attacker = await tx.require(attacker_id)
                defender = await tx.require(defender_id)
                attacker_previous, defender_previous = attacker.count, defender.count

                engine.validate_raid(
                    attacker_previous, defender_previous, config,
                    ensure_utc(attacker.last_raid_at), attacker.last_raid_success, now
                )
                outcome = engine.resolve_raid(attacker_previous, defender_previous, config, self.rng)

                tx.apply_delta(attacker, outcome.attacker_delta)
                tx.apply_delta(defender, outcome.defender_delta)
                tx.record_raid(attacker, outcome.success, now)
                return RaidResult(
                    outcome=outcome,
                    attacker_previous=attacker_previous,
                    defender_previous=defender_previous,
                    attacker=attacker,
                    defender=defender,
                    available_at=now + outcome.cooldown
                )

        result = await self.ledger.run(operation)
        self.logger.info(
            f"Raid on {defender_id} {'succeeded' if result.outcome.success else 'failed'} "
            f"(chance {result.outcome.terms.chance:.0%}): attacker {result.outcome.attacker_delta:+d}, "
            f"defender {result.outcome.defender_delta:+d}",
            extra={'guild_id': str(guild_id), 'user_id': str(attacker_id), 'trigger_word': word}
        )
        return result
