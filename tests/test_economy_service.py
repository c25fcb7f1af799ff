"""Tests for gambles and raids against a real database."""
import asyncio
from datetime import datetime, timedelta, timezone
import pytest
from utils.exceptions import (
    EntryBarrierNotMetError,
    FeatureDisabledError,
    InvalidWagerError,
    RaidOnCooldownError,
    StreakNotFoundError,
    ValidationError,
)
from conftest import GUILD_ID

NOW = datetime(2026, 5, 10, 18, 0, tzinfo=timezone.utc)

@pytest.fixture
async def enabled(guild_configs):
    await guild_configs.set_feature(GUILD_ID, "raid", True)
    await guild_configs.set_feature(GUILD_ID, "gamble", True)

async def test_gamble_disabled_by_default(economy, set_count):
    await set_count(1, 20)
    with pytest.raises(FeatureDisabledError):
        await economy(0.0).gamble(GUILD_ID, 1, "hello", 5)

async def test_gamble_win_is_persisted(enabled, economy, ledger, set_count):
    await set_count(1, 20)
    result = await economy(0.0).gamble(GUILD_ID, 1, "hello", 10)

    assert result.outcome.won
    assert result.previous_count == 20
    assert result.streak.count == 30
    stored = await ledger.get(GUILD_ID, 1, "hello")
    assert stored.count == 30
    assert stored.best_streak == 30

async def test_gamble_loss_keeps_best(enabled, economy, ledger, set_count):
    await set_count(1, 20)
    result = await economy(0.99).gamble(GUILD_ID, 1, "HELLO", 10)

    assert not result.outcome.won
    stored = await ledger.get(GUILD_ID, 1, "hello")
    assert stored.count == 10
    assert stored.best_streak == 20

async def test_invalid_wager_changes_nothing(enabled, economy, ledger, set_count):
    await set_count(1, 20)
    with pytest.raises(InvalidWagerError):
        await economy(0.0).gamble(GUILD_ID, 1, "hello", 11)
    assert (await ledger.get(GUILD_ID, 1, "hello")).count == 20

async def test_gamble_without_streak(enabled, economy):
    with pytest.raises(StreakNotFoundError):
        await economy(0.0).gamble(GUILD_ID, 1, "hello", 1)

async def test_successful_raid(enabled, economy, ledger, set_count):
    await set_count(1, 20)
    await set_count(2, 80)

    result = await economy(0.0).raid(GUILD_ID, 1, 2, "hello", now=NOW)

    assert result.outcome.success
    assert result.attacker.count == 37
    assert result.defender.count == 63
    assert result.available_at == NOW + timedelta(hours=4)

    attacker = await ledger.get(GUILD_ID, 1, "hello")
    defender = await ledger.get(GUILD_ID, 2, "hello")
    assert (attacker.count, defender.count) == (37, 63)
    assert defender.best_streak == 80
    assert attacker.last_raid_success is True

async def test_failed_raid(enabled, economy, ledger, set_count):
    await set_count(1, 20)
    await set_count(2, 80)

    result = await economy(0.99).raid(GUILD_ID, 1, 2, "hello", now=NOW)

    assert not result.outcome.success
    assert (result.attacker.count, result.defender.count) == (17, 83)
    assert result.available_at == NOW + timedelta(hours=2)
    assert (await ledger.get(GUILD_ID, 2, "hello")).best_streak == 83

async def test_raid_total_is_conserved_when_floors_do_not_apply(enabled, economy, ledger, set_count):
    await set_count(1, 20)
    await set_count(2, 80)
    await economy(0.0).raid(GUILD_ID, 1, 2, "hello", now=NOW)

    attacker = await ledger.get(GUILD_ID, 1, "hello")
    defender = await ledger.get(GUILD_ID, 2, "hello")
    assert attacker.count + defender.count == 100

async def test_raid_cooldown_is_enforced(enabled, economy, set_count):
    await set_count(1, 20)
    await set_count(2, 80)
    service = economy(0.0)
    await service.raid(GUILD_ID, 1, 2, "hello", now=NOW)

    with pytest.raises(RaidOnCooldownError):
        await service.raid(GUILD_ID, 1, 2, "hello", now=NOW + timedelta(hours=3, minutes=59))

    result = await service.raid(GUILD_ID, 1, 2, "hello", now=NOW + timedelta(hours=4))
    assert result.outcome.success

async def test_cooldown_belongs_to_attacker(enabled, economy, set_count):
    await set_count(1, 20)
    await set_count(2, 80)
    service = economy(0.99)
    await service.raid(GUILD_ID, 1, 2, "hello", now=NOW)

    # The defender can strike back at once
    result = await service.raid(GUILD_ID, 2, 1, "hello", now=NOW + timedelta(minutes=1))
    assert result.attacker.user_id == "2"

async def test_cannot_raid_yourself(enabled, economy, set_count):
    await set_count(1, 20)
    with pytest.raises(ValidationError):
        await economy(0.0).raid(GUILD_ID, 1, 1, "hello", now=NOW)

async def test_raid_disabled(economy, set_count):
    await set_count(1, 20)
    await set_count(2, 80)
    with pytest.raises(FeatureDisabledError):
        await economy(0.0).raid(GUILD_ID, 1, 2, "hello", now=NOW)

async def test_entry_barrier_changes_nothing(enabled, economy, ledger, set_count):
    await set_count(1, 2)
    await set_count(2, 9)
    with pytest.raises(EntryBarrierNotMetError):
        await economy(0.0).raid(GUILD_ID, 1, 2, "hello", now=NOW)

    attacker = await ledger.get(GUILD_ID, 1, "hello")
    assert attacker.count == 2
    assert attacker.last_raid_at is None
    assert (await ledger.get(GUILD_ID, 2, "hello")).count == 9

async def test_raid_target_without_streak(enabled, economy, set_count):
    await set_count(1, 20)
    with pytest.raises(StreakNotFoundError):
        await economy(0.0).raid(GUILD_ID, 1, 2, "hello", now=NOW)

async def test_raid_preview(enabled, economy, set_count):
    await set_count(1, 20)
    await set_count(2, 80)

    terms = await economy(0.0).raid_preview(GUILD_ID, 1, 2, "hello", now=NOW)
    assert terms.chance == pytest.approx(0.67)
    assert terms.steal_amount == 17
    assert terms.risk_amount == 3

async def test_concurrent_gamble_and_raid_on_same_streak(enabled, economy, ledger, set_count):
    await set_count(1, 20)
    await set_count(2, 80)
    service = economy(0.0)

    gamble, raid = await asyncio.gather(
        service.gamble(GUILD_ID, 2, "hello", 10),
        service.raid(GUILD_ID, 1, 2, "hello", now=NOW),
    )

    defender = await ledger.get(GUILD_ID, 2, "hello")
    attacker = await ledger.get(GUILD_ID, 1, "hello")
    assert defender.count == 80 + gamble.outcome.delta + raid.outcome.defender_delta
    assert attacker.count == 20 + raid.outcome.attacker_delta
    assert defender.best_streak >= defender.count
    assert attacker.best_streak >= attacker.count
