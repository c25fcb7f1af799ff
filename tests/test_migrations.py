"""Tests for the startup schema migration."""
import logging
import pytest
from sqlalchemy import inspect, text
from database.database import Database
from database.migrations import SchemaMigrator
from database.models import GuildConfig, Streak
from utils.exceptions import MigrationError, PersistenceError

LEGACY_SCHEMA = [
    """
    CREATE TABLE guild_configs (
        guild_id VARCHAR PRIMARY KEY,
        trigger_words JSON NOT NULL,
        streak_limit INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE streaks (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        guild_id VARCHAR NOT NULL,
        user_id VARCHAR NOT NULL,
        trigger_word VARCHAR NOT NULL,
        count INTEGER NOT NULL DEFAULT 1,
        last_updated DATETIME NOT NULL
    )
    """,
    "INSERT INTO guild_configs (guild_id, trigger_words, streak_limit) VALUES ('1000', '[\"hello\"]', 5)",
    "INSERT INTO streaks (guild_id, user_id, trigger_word, count, last_updated) "
    "VALUES ('1000', '1', 'hello', 42, '2025-01-01 10:00:00')",
    "INSERT INTO streaks (guild_id, user_id, trigger_word, count, last_updated) "
    "VALUES ('1000', '2', 'hello', 0, '2025-01-02 10:00:00')",
]

@pytest.fixture
async def legacy_db(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'legacy.db'}", acquire_timeout=5)
    async with db.engine.begin() as conn:
        for statement in LEGACY_SCHEMA:
            await conn.execute(text(statement))
    yield db
    await db.close()

async def _columns(db, table_name):
    async with db.engine.connect() as conn:
        columns = await conn.run_sync(lambda c: inspect(c).get_columns(table_name))
    return {c["name"] for c in columns}

async def _counts(db):
    async with db.engine.connect() as conn:
        result = await conn.execute(text("SELECT user_id, count FROM streaks ORDER BY user_id"))
        return [tuple(row) for row in result]

async def test_fresh_database_skips_migration(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'fresh.db'}")
    try:
        assert await db.initialize() == []
        assert await _columns(db, "streaks") == set(Streak.__table__.columns.keys())
        # A second start finds nothing to do
        assert await db.initialize() == []
    finally:
        await db.close()

async def test_legacy_tables_gain_missing_columns(legacy_db):
    added = await legacy_db.initialize()

    expected = {
        f"guild_configs.{name}" for name in GuildConfig.__table__.columns.keys()
        if name not in ("guild_id", "trigger_words", "streak_limit")
    } | {
        f"streaks.{name}" for name in
        ("best_streak", "streak_streak", "last_streak_date", "last_raid_at", "last_raid_success")
    }
    assert set(added) == expected
    assert await _columns(legacy_db, "guild_configs") == set(GuildConfig.__table__.columns.keys())
    assert await _columns(legacy_db, "streaks") == set(Streak.__table__.columns.keys())

async def test_migration_is_idempotent(legacy_db):
    await legacy_db.initialize()
    assert await legacy_db.initialize() == []

async def test_migration_preserves_and_repairs_rows(legacy_db):
    await legacy_db.initialize()
    async with legacy_db.session() as session:
        streaks = {s.user_id: s for s in (await session.execute(Streak.__table__.select())).all()}
        config = await session.get(GuildConfig, "1000")

    assert streaks["1"].count == 42
    assert streaks["1"].best_streak == 42
    assert streaks["1"].streak_streak == 0
    assert streaks["2"].count == 0
    assert streaks["2"].best_streak == 1
    assert config.trigger_words == ["hello"]
    assert config.streak_limit == 5
    assert config.raid_enabled is False
    assert config.raid_max_steal == 30

async def test_failed_migration_restores_snapshot(legacy_db, monkeypatch):
    async def fail_verify(self, conn, tables):
        raise RuntimeError("verification failed")

    monkeypatch.setattr(SchemaMigrator, "_verify", fail_verify)

    with pytest.raises(MigrationError) as exc:
        await legacy_db.initialize()

    assert exc.value.restored is True
    assert isinstance(exc.value, PersistenceError)
    assert await _counts(legacy_db) == [("1", 42), ("2", 0)]

async def test_failed_restore_is_reported(legacy_db, monkeypatch, caplog):
    async def fail_verify(self, conn, tables):
        raise RuntimeError("verification failed")

    async def fail_restore(self, conn, table_name, rows):
        raise RuntimeError("disk full")

    monkeypatch.setattr(SchemaMigrator, "_verify", fail_verify)
    monkeypatch.setattr(SchemaMigrator, "_restore_table", fail_restore)

    with caplog.at_level(logging.CRITICAL, logger="database.migrations"):
        with pytest.raises(MigrationError) as exc:
            await legacy_db.initialize()

    assert exc.value.restored is False
    assert any(r.levelno == logging.CRITICAL for r in caplog.records)

async def test_snapshot_copies_rows(legacy_db):
    migrator = SchemaMigrator(legacy_db.engine)
    backup = await migrator.snapshot([GuildConfig.__table__, Streak.__table__])
    assert len(backup["streaks"]) == 2
    assert backup["guild_configs"][0]["guild_id"] == "1000"

async def test_timestamp_column_added_to_sqlite_table(tmp_path):
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'oldest.db'}", acquire_timeout=5)
    try:
        async with db.engine.begin() as conn:
            await conn.execute(text(
                "CREATE TABLE streaks (id INTEGER PRIMARY KEY AUTOINCREMENT, guild_id VARCHAR NOT NULL, "
                "user_id VARCHAR NOT NULL, trigger_word VARCHAR NOT NULL, count INTEGER NOT NULL)"
            ))
            await conn.execute(text(
                "INSERT INTO streaks (guild_id, user_id, trigger_word, count) VALUES ('1000', '7', 'gm', 12)"
            ))

        added = await db.initialize()

        assert "streaks.last_updated" in added
        async with db.session() as session:
            row = (await session.execute(Streak.__table__.select())).one()
        assert row.count == 12
        assert row.best_streak == 12
        assert row.last_updated is not None
    finally:
        await db.close()
