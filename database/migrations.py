"""Startup schema migration.

Brings tables created by older releases up to the current models without
touching their data. The migration runs in two phases: a snapshot of every
managed table is taken, then missing columns are added and rows repaired
inside one transaction and the result is verified. If anything fails the
transaction is rolled back and the tables are rewritten from the snapshot.
A migration failure always aborts startup.
"""
import logging
from typing import Dict, List, Optional, Sequence
from sqlalchemy import Column, MetaData, Table, column, delete, insert, inspect, select, func, table, text, update
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine
from sqlalchemy.schema import CreateColumn
from sqlalchemy.sql.functions import FunctionElement
from utils.exceptions import MigrationError
from .models import GuildConfig, Streak

logger = logging.getLogger(__name__)

Snapshot = Dict[str, List[dict]]

class SchemaMigrator:
    """Idempotent, additive migration of the bot's tables."""

    def __init__(self, engine: AsyncEngine, tables: Optional[Sequence[Table]] = None):
        self.engine = engine
        self.tables = list(tables) if tables is not None else [
            GuildConfig.__table__,
            Streak.__table__,
        ]
        self.logger = logging.getLogger(__name__)

    async def migrate(self) -> List[str]:
        """Run the migration.

        Returns:
            ``table.column`` names that were added. Empty when the schema is
            already current or when no managed table exists yet.

        Raises:
            MigrationError: If the migration failed. ``restored`` tells
                whether the snapshot was written back.
        """
        self.logger.info("Starting database migration...")
        existing = await self._existing_tables()
        managed = [t for t in self.tables if t.name in existing]
        if not managed:
            self.logger.info("Tables do not exist yet, skipping migration")
            return []

        snapshot = await self.snapshot(managed)

        try:
            async with self.engine.begin() as conn:
                added = await self._apply(conn, managed)
                await self._verify(conn, managed)
        except Exception as e:
            self.logger.error(f"Migration failed, rolling back changes: {e}")
            try:
                await self.restore(snapshot)
            except Exception as restore_error:
                self.logger.critical(f"Failed to restore from snapshot: {restore_error}")
                raise MigrationError(
                    f"Migration failed ({e}) and snapshot restore failed ({restore_error})",
                    restored=False
                ) from restore_error
            self.logger.warning("Restored tables from snapshot")
            raise MigrationError(f"Migration failed: {e}", restored=True) from e

        if added:
            self.logger.info(f"Migration completed, added columns: {', '.join(added)}")
        else:
            self.logger.info("Migration completed, schema already up to date")
        return added

    async def _existing_tables(self) -> List[str]:
        async with self.engine.connect() as conn:
            return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())

    async def _existing_columns(self, conn: AsyncConnection, table_name: str) -> List[str]:
        columns = await conn.run_sync(
            lambda sync_conn: inspect(sync_conn).get_columns(table_name)
        )
        return [c["name"] for c in columns]

    async def snapshot(self, tables: Sequence[Table]) -> Snapshot:
        """Copy every row of the given tables into memory."""
        backup: Snapshot = {}
        async with self.engine.connect() as conn:
            for tbl in tables:
                quoted = conn.dialect.identifier_preparer.format_table(tbl)
                result = await conn.execute(text(f"SELECT * FROM {quoted}"))
                backup[tbl.name] = [dict(row) for row in result.mappings().all()]
                self.logger.debug(f"Snapshot of {tbl.name}: {len(backup[tbl.name])} rows")
        return backup

    async def restore(self, backup: Snapshot) -> None:
        """Replace table contents with a snapshot, in one transaction."""
        async with self.engine.begin() as conn:
            for table_name, rows in backup.items():
                await self._restore_table(conn, table_name, rows)

    async def _restore_table(self, conn: AsyncConnection, table_name: str, rows: List[dict]) -> None:
        # Untyped table: snapshot values go back exactly as they were read
        columns = rows[0].keys() if rows else []
        raw = table(table_name, *[column(name) for name in columns])
        await conn.execute(delete(raw))
        if rows:
            await conn.execute(insert(raw), rows)
        self.logger.info(f"Restored {len(rows)} rows into {table_name}")

    @staticmethod
    def _deferred_default(conn: AsyncConnection, col: Column):
        """Server default that SQLite refuses in ADD COLUMN, such as CURRENT_TIMESTAMP.

        Such columns are added nullable and filled by an UPDATE instead.
        """
        if conn.dialect.name != "sqlite" or col.server_default is None:
            return None
        arg = getattr(col.server_default, "arg", None)
        return arg if isinstance(arg, FunctionElement) else None

    async def _apply(self, conn: AsyncConnection, tables: Sequence[Table]) -> List[str]:
        added = []
        preparer = conn.dialect.identifier_preparer
        for tbl in tables:
            present = set(await self._existing_columns(conn, tbl.name))
            for col in tbl.columns:
                if col.name in present or col.primary_key:
                    continue
                backfill = self._deferred_default(conn, col)
                target = col if backfill is None else Table(
                    tbl.name, MetaData(), Column(col.name, col.type, nullable=True)
                ).c[col.name]
                ddl = CreateColumn(target).compile(dialect=conn.dialect)
                await conn.execute(
                    text(f"ALTER TABLE {preparer.format_table(tbl)} ADD COLUMN {ddl}")
                )
                if backfill is not None:
                    await conn.execute(
                        update(tbl).where(tbl.c[col.name].is_(None)).values({col.name: backfill})
                    )
                added.append(f"{tbl.name}.{col.name}")
                self.logger.info(f"Added {col.name} column to {tbl.name}")

        if Streak.__table__ in tables:
            streaks = Streak.__table__
            result = await conn.execute(
                update(streaks)
                .where(streaks.c.best_streak < streaks.c.count)
                .values(best_streak=streaks.c.count)
            )
            if result.rowcount:
                self.logger.info(f"Repaired best_streak on {result.rowcount} streaks")
        return added

    async def _verify(self, conn: AsyncConnection, tables: Sequence[Table]) -> None:
        for tbl in tables:
            present = set(await self._existing_columns(conn, tbl.name))
            missing = [c.name for c in tbl.columns if c.name not in present]
            if missing:
                raise MigrationError(f"Columns still missing from {tbl.name}: {', '.join(missing)}")

        if Streak.__table__ in tables:
            streaks = Streak.__table__
            broken = await conn.scalar(
                select(func.count()).select_from(streaks)
                .where(streaks.c.best_streak < streaks.c.count)
            )
            if broken:
                raise MigrationError(f"{broken} streaks have best_streak below count")
