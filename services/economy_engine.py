"""Rules for the gamble and raid mini-games.

Everything here is pure: functions take counts and a guild configuration and
return proposed outcomes. Nothing touches the database; the ledger applies
the deltas. Randomness comes from an injectable ``random.Random`` so tests can
pin a roll on either side of the success boundary.
"""
import math
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Optional

from utils.exceptions import (
    EntryBarrierNotMetError,
    FeatureDisabledError,
    InsufficientStreakError,
    InvalidWagerError,
    RaidOnCooldownError,
    ValidationError,
)

# Raid entry barrier: an attacker needs this absolute streak...
RAID_ENTRY_MIN_COUNT = 10
# ...or at least this share of the target's streak
RAID_ENTRY_TARGET_SHARE = Decimal("0.25")

# (minimum target count, bonus), highest tier first
PROGRESSIVE_BONUS_TIERS = (
    (100, 0.15),
    (75, 0.12),
    (50, 0.09),
    (25, 0.06),
    (10, 0.03),
)

UNDERDOG_STEAL_BONUS_MIN = 0.05
UNDERDOG_STEAL_BONUS_MAX = 0.10
UNDERDOG_RATIO_CAP = 0.5
UNDERDOG_RISK_FLOOR = 0.60

_secure_random = random.SystemRandom()

def _decimal(value) -> Decimal:
    return Decimal(str(value))

def round_half_up(value) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(_decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))

def clamp(value, lower, upper):
    return max(lower, min(upper, value))

def roll(chance: float, rng: Optional[random.Random] = None) -> bool:
    """One Bernoulli trial: True with probability ``chance``."""
    rng = rng or _secure_random
    return rng.random() < chance

# ---------------------------------------------------------------------------
# Gamble
# ---------------------------------------------------------------------------

@dataclass
class GambleOutcome:
    """Result of a single gamble."""
    won: bool
    amount: int
    delta: int
    chance: float

def max_wager(count: int, max_pct: float) -> int:
    """Largest amount that may be wagered from a streak of ``count``."""
    value = Decimal(count) * _decimal(max_pct)
    return int(value.to_integral_value(rounding=ROUND_FLOOR))

def validate_gamble(count: int, amount: int, config) -> int:
    """Check a wager against the guild rules.

    Returns:
        The maximum wager allowed for ``count``.

    Raises:
        FeatureDisabledError: Gambling is off for the guild.
        InsufficientStreakError: The streak is below the guild minimum.
        InvalidWagerError: ``amount`` is outside ``1..max_wager``.
    """
    if not config.gamble_enabled:
        raise FeatureDisabledError("gambling")
    if count < config.gamble_min_streak:
        raise InsufficientStreakError(count, config.gamble_min_streak)
    limit = max_wager(count, config.gamble_max_pct)
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 1 or amount > limit:
        raise InvalidWagerError(amount, limit)
    return limit

def resolve_gamble(count: int, amount: int, config, rng: Optional[random.Random] = None) -> GambleOutcome:
    """Validate and play a gamble, returning the proposed change to ``count``."""
    validate_gamble(count, amount, config)
    chance = clamp(float(config.gamble_success_chance), 0.0, 1.0)
    won = roll(chance, rng)
    delta = amount if won else -min(amount, count)
    return GambleOutcome(won=won, amount=amount, delta=delta, chance=chance)

# ---------------------------------------------------------------------------
# Raid
# ---------------------------------------------------------------------------

@dataclass
class RaidTerms:
    """Odds and stakes of a raid, computed before the roll."""
    chance: float
    progressive_bonus: float
    steal_amount: int
    steal_bonus: float
    risk_amount: int
    risk_multiplier: float

@dataclass
class RaidOutcome:
    """Result of a resolved raid."""
    success: bool
    terms: RaidTerms
    attacker_delta: int
    defender_delta: int
    cooldown: timedelta

def progressive_bonus(target_count: int) -> float:
    """Extra raid chance for going after a bigger streak."""
    for threshold, bonus in PROGRESSIVE_BONUS_TIERS:
        if target_count >= threshold:
            return bonus
    return 0.0

def raid_entry_requirement(target_count: int) -> int:
    """Smallest attacker streak that clears the entry barrier for ``target_count``."""
    share = math.ceil(Decimal(target_count) * RAID_ENTRY_TARGET_SHARE)
    return min(RAID_ENTRY_MIN_COUNT, share)

def check_entry_barrier(attacker_count: int, target_count: int) -> None:
    """Raise EntryBarrierNotMetError unless the attacker may raid the target."""
    required = raid_entry_requirement(target_count)
    if attacker_count < required:
        raise EntryBarrierNotMetError(attacker_count, target_count, required)

def raid_cooldown(last_success: Optional[bool], config) -> timedelta:
    """Cooldown that follows a raid with the given outcome."""
    if last_success:
        return timedelta(hours=config.raid_success_cooldown_hours)
    return timedelta(hours=config.raid_failure_cooldown_hours)

def check_raid_cooldown(
    last_raid_at: Optional[datetime],
    last_success: Optional[bool],
    now: datetime,
    config
) -> None:
    """Raise RaidOnCooldownError if the attacker's last raid is too recent.

    The attacker becomes eligible again exactly when the cooldown elapses.
    """
    if last_raid_at is None:
        return
    available_at = last_raid_at + raid_cooldown(last_success, config)
    if now < available_at:
        raise RaidOnCooldownError(available_at, available_at - now)

def underdog_ratio(attacker_count: int, target_count: int) -> Optional[float]:
    """Attacker/target ratio when the attacker is the underdog, else None."""
    if target_count <= 0 or attacker_count >= target_count:
        return None
    return max(0, attacker_count) / target_count

def underdog_steal_bonus(attacker_count: int, target_count: int) -> float:
    """Extra steal fraction: 0.05 at half the target's streak, up to 0.10 near zero."""
    ratio = underdog_ratio(attacker_count, target_count)
    if ratio is None:
        return 0.0
    ratio = min(ratio, UNDERDOG_RATIO_CAP)
    span = UNDERDOG_STEAL_BONUS_MAX - UNDERDOG_STEAL_BONUS_MIN
    return UNDERDOG_STEAL_BONUS_MIN + span * (UNDERDOG_RATIO_CAP - ratio) / UNDERDOG_RATIO_CAP

def underdog_risk_multiplier(attacker_count: int, target_count: int) -> float:
    """Risk scale for underdogs: shrinks linearly toward 0.60 as the gap widens."""
    ratio = underdog_ratio(attacker_count, target_count)
    if ratio is None:
        return 1.0
    return UNDERDOG_RISK_FLOOR + (1.0 - UNDERDOG_RISK_FLOOR) * ratio

def raid_chance(target_count: int, config) -> float:
    base = float(config.raid_base_chance) + float(config.raid_initiator_bonus)
    return clamp(base + progressive_bonus(target_count), 0.0, 1.0)

def steal_amount(attacker_count: int, target_count: int, config) -> int:
    bonus = underdog_steal_bonus(attacker_count, target_count)
    raw = Decimal(target_count) * _decimal(config.raid_steal_pct) * (1 + _decimal(bonus))
    return clamp(round_half_up(raw), config.raid_min_steal, config.raid_max_steal)

def risk_amount(attacker_count: int, target_count: int, config) -> int:
    multiplier = underdog_risk_multiplier(attacker_count, target_count)
    raw = Decimal(attacker_count) * _decimal(config.raid_risk_pct) * _decimal(multiplier)
    return clamp(round_half_up(raw), config.raid_min_risk, config.raid_max_risk)

def raid_terms(attacker_count: int, target_count: int, config) -> RaidTerms:
    """Compute chance, steal and risk for a raid without rolling."""
    return RaidTerms(
        chance=raid_chance(target_count, config),
        progressive_bonus=progressive_bonus(target_count),
        steal_amount=steal_amount(attacker_count, target_count, config),
        steal_bonus=underdog_steal_bonus(attacker_count, target_count),
        risk_amount=risk_amount(attacker_count, target_count, config),
        risk_multiplier=underdog_risk_multiplier(attacker_count, target_count),
    )

def validate_raid(
    attacker_count: int,
    target_count: int,
    config,
    last_raid_at: Optional[datetime] = None,
    last_success: Optional[bool] = None,
    now: Optional[datetime] = None,
) -> None:
    """Check every rule that must hold before a raid is rolled."""
    if not config.raid_enabled:
        raise FeatureDisabledError("raiding")
    if target_count <= 0:
        raise ValidationError("Your target has no streak to raid.")
    if now is not None:
        check_raid_cooldown(last_raid_at, last_success, now, config)
    check_entry_barrier(attacker_count, target_count)

def resolve_raid(
    attacker_count: int,
    target_count: int,
    config,
    rng: Optional[random.Random] = None,
) -> RaidOutcome:
    """Roll a raid whose eligibility has already been validated.

    Success moves ``steal_amount`` from the defender to the attacker; failure
    moves ``risk_amount`` from the attacker to the defender. Losses never take
    a count below zero.
    """
    terms = raid_terms(attacker_count, target_count, config)
    success = roll(terms.chance, rng)
    if success:
        attacker_delta = terms.steal_amount
        defender_delta = -min(terms.steal_amount, target_count)
    else:
        attacker_delta = -min(terms.risk_amount, max(0, attacker_count))
        defender_delta = terms.risk_amount
    return RaidOutcome(
        success=success,
        terms=terms,
        attacker_delta=attacker_delta,
        defender_delta=defender_delta,
        cooldown=raid_cooldown(success, config),
    )
