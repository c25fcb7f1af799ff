"""Streak ledger: the only code that writes streak rows."""
import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple, TypeVar
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from database.models import Streak, utc_now, ensure_utc
from utils.exceptions import StreakNotFoundError
from utils.normalize import normalize_word
from utils.retry import with_retry, DEFAULT_MAX_RETRIES, DEFAULT_RETRY_DELAY

logger = logging.getLogger(__name__)

T = TypeVar("T")

@dataclass
class StreakUpdate:
    """Result of a trigger word match."""
    streak: Streak
    counted: bool
    created: bool = False
    streak_streak_extended: bool = False
    retry_after: Optional[timedelta] = None

class LedgerTransaction:
    """Mutations of one guild's streaks for one word inside a single transaction.

    Every change to ``count`` goes through ``apply_delta`` so the
    ``best_streak >= count`` invariant is enforced in one place.
    """

    def __init__(self, session: AsyncSession, guild_id: str, word: str):
        self.session = session
        self.guild_id = guild_id
        self.word = word

    async def get(self, user_id) -> Optional[Streak]:
        """Load and lock a user's streak, or None if it does not exist."""
        result = await self.session.execute(
            select(Streak)
            .where(
                Streak.guild_id == self.guild_id,
                Streak.user_id == str(user_id),
                Streak.trigger_word == self.word
            )
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def require(self, user_id) -> Streak:
        streak = await self.get(user_id)
        if streak is None:
            raise StreakNotFoundError(self.guild_id, str(user_id), self.word)
        return streak

    async def create(self, user_id, now: Optional[datetime] = None) -> Streak:
        streak = Streak(
            guild_id=self.guild_id,
            user_id=str(user_id),
            trigger_word=self.word,
            count=1,
            best_streak=1,
            streak_streak=0,
            last_streak_date=None,
            last_updated=now or utc_now()
        )
        self.session.add(streak)
        await self.session.flush()
        return streak

    def apply_delta(self, streak: Streak, delta: int, new_best: Optional[int] = None) -> Streak:
        """Change a streak's count, never below zero, keeping best_streak current."""
        streak.count = max(0, streak.count + delta)
        streak.best_streak = max(streak.best_streak, streak.count, new_best or 0)
        return streak

    def reset(self, streak: Streak) -> Streak:
        """Zero the running counters; best_streak is kept as history."""
        streak.count = 0
        streak.streak_streak = 0
        streak.last_streak_date = None
        return streak

    def advance_streak_streak(self, streak: Streak, today: date) -> bool:
        """Count a qualifying day. Returns True if the day streak changed."""
        last = streak.last_streak_date
        if last == today:
            return False
        if last == today - timedelta(days=1):
            streak.streak_streak += 1
        else:
            streak.streak_streak = 1
        streak.last_streak_date = today
        return True

    def record_raid(self, streak: Streak, success: bool, at: datetime) -> Streak:
        """Start the attacker's raid cooldown."""
        streak.last_raid_at = at
        streak.last_raid_success = success
        return streak

class StreakLedger:
    """Read and update streak records transactionally."""

    def __init__(
        self,
        database,
        max_retries: int = DEFAULT_MAX_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY
    ):
        self.db = database
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._locks: Dict[Tuple[str, str], asyncio.Lock] = {}
        self.logger = logging.getLogger(__name__)

    @classmethod
    def from_bot(cls, bot):
        """Create a ledger from a bot instance."""
        return cls(
            bot.database,
            max_retries=bot.config.database.max_retries,
            retry_delay=bot.config.database.retry_delay
        )

    def _lock(self, guild_id: str, word: str) -> asyncio.Lock:
        key = (guild_id, word)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    @asynccontextmanager
    async def transaction(self, guild_id, word: str) -> AsyncIterator[LedgerTransaction]:
        """Open a serialized transaction over one guild's streaks for ``word``."""
        guild_id = str(guild_id)
        word = normalize_word(word)
        async with self._lock(guild_id, word):
            async with self.db.transaction() as session:
                yield LedgerTransaction(session, guild_id, word)

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run a database operation with the configured retry policy."""
        return await with_retry(operation, self.max_retries, self.retry_delay)

    async def get(self, guild_id, user_id, word: str, create: bool = False) -> Streak:
        """Fetch a streak.

        Raises:
            StreakNotFoundError: If the streak does not exist and ``create`` is False.
        """
        if create:
            return await self.get_or_create(guild_id, user_id, word)

        word = normalize_word(word)

        async def operation():
            async with self.db.session() as session:
                result = await session.execute(
                    select(Streak).where(
                        Streak.guild_id == str(guild_id),
                        Streak.user_id == str(user_id),
                        Streak.trigger_word == word
                    )
                )
                return result.scalar_one_or_none()

        streak = await self.run(operation)
        if streak is None:
            raise StreakNotFoundError(str(guild_id), str(user_id), word)
        return streak

    async def get_or_create(self, guild_id, user_id, word: str) -> Streak:
        """Fetch a streak, creating it with count=1 and best_streak=1 if absent."""
        async def operation():
            async with self.transaction(guild_id, word) as tx:
                streak = await tx.get(user_id)
                if streak is None:
                    streak = await tx.create(user_id)
                    self.logger.info(
                        "Created streak",
                        extra={'guild_id': tx.guild_id, 'user_id': user_id, 'trigger_word': tx.word}
                    )
                return streak

        return await self.run(operation)

    async def apply_delta(
        self,
        guild_id,
        user_id,
        word: str,
        delta: int,
        new_best: Optional[int] = None
    ) -> Streak:
        """Add ``delta`` to a streak's count atomically."""
        async def operation():
            async with self.transaction(guild_id, word) as tx:
                streak = await tx.require(user_id)
                return tx.apply_delta(streak, delta, new_best)

        return await self.run(operation)

    async def reset(self, guild_id, user_id, word: str) -> Streak:
        """Zero a streak's count and day streak, keeping its best."""
        async def operation():
            async with self.transaction(guild_id, word) as tx:
                streak = await tx.require(user_id)
                tx.reset(streak)
                self.logger.info(
                    "Reset streak",
                    extra={'guild_id': tx.guild_id, 'user_id': user_id, 'trigger_word': tx.word}
                )
                return streak

        return await self.run(operation)

    async def increment(
        self,
        guild_id,
        user_id,
        word: str,
        streak_limit: int = 0,
        streak_streak_enabled: bool = True,
        now: Optional[datetime] = None
    ) -> StreakUpdate:
        """Count a trigger word match.

        The first match creates the streak. Later matches inside the guild's
        streak limit (minutes since the last counted match) are not counted.
        """
        now = ensure_utc(now) if now else utc_now()
        today = now.date()

        async def operation():
            async with self.transaction(guild_id, word) as tx:
                streak = await tx.get(user_id)
                if streak is None:
                    streak = await tx.create(user_id, now)
                    extended = False
                    if streak_streak_enabled:
                        extended = tx.advance_streak_streak(streak, today)
                    return StreakUpdate(
                        streak=streak, counted=True, created=True, streak_streak_extended=extended
                    )

                last_updated = ensure_utc(streak.last_updated)
                if streak_limit > 0 and last_updated is not None:
                    wait = last_updated + timedelta(minutes=streak_limit) - now
                    if wait > timedelta(0):
                        return StreakUpdate(streak=streak, counted=False, retry_after=wait)

                tx.apply_delta(streak, 1)
                streak.last_updated = now
                extended = False
                if streak_streak_enabled:
                    extended = tx.advance_streak_streak(streak, today)
                return StreakUpdate(streak=streak, counted=True, streak_streak_extended=extended)

        return await self.run(operation)

    async def decay_check(self, guild_id, user_id, word: str, today: Optional[date] = None) -> bool:
        """Break the day streak if the user skipped a day. Returns True if it decayed."""
        today = today or utc_now().date()

        async def operation():
            async with self.transaction(guild_id, word) as tx:
                streak = await tx.require(user_id)
                last = streak.last_streak_date
                if streak.streak_streak > 0 and (last is None or last < today - timedelta(days=1)):
                    streak.streak_streak = 0
                    return True
                return False

        return await self.run(operation)

    async def user_streaks(self, guild_id, user_id) -> List[Streak]:
        """All of a user's streaks in a guild, by word."""
        async def operation():
            async with self.db.session() as session:
                result = await session.execute(
                    select(Streak)
                    .where(Streak.guild_id == str(guild_id), Streak.user_id == str(user_id))
                    .order_by(Streak.trigger_word)
                )
                return list(result.scalars().all())

        return await self.run(operation)

    async def leaderboard(self, guild_id, word: str, limit: int = 10, by_best: bool = False) -> List[Streak]:
        """Top streaks for a word, by current count or by best ever."""
        word = normalize_word(word)
        column = Streak.best_streak if by_best else Streak.count

        async def operation():
            async with self.db.session() as session:
                result = await session.execute(
                    select(Streak)
                    .where(Streak.guild_id == str(guild_id), Streak.trigger_word == word, column > 0)
                    .order_by(column.desc(), Streak.user_id)
                    .limit(limit)
                )
                return list(result.scalars().all())

        return await self.run(operation)
