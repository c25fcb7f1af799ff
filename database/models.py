"""SQLAlchemy models for the database."""
from datetime import date, datetime, timezone
from typing import List, Optional
from sqlalchemy import JSON, String, Integer, Float, Boolean, Date, DateTime, UniqueConstraint
from sqlalchemy import func, text, true, false
from sqlalchemy.orm import Mapped, mapped_column
from .database import Base

def utc_now() -> datetime:
    """Helper function to get current UTC datetime."""
    return datetime.now(timezone.utc)

def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Helper function to ensure datetime is UTC timezone-aware."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)

def _literal(value):
    """Server-side default so columns can be added to populated tables."""
    return text(repr(value))

class GuildConfig(Base):
    """Per-guild trigger words and economy tuning."""
    __tablename__ = "guild_configs"

    guild_id: Mapped[str] = mapped_column(String, primary_key=True)
    # Stored normalized; see utils.normalize
    trigger_words: Mapped[List[str]] = mapped_column(
        JSON, default=list, server_default=text("'[]'"), nullable=False
    )
    streak_limit: Mapped[int] = mapped_column(
        Integer, default=0, server_default=_literal(0), nullable=False
    )
    streak_streak_enabled: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=true(), nullable=False
    )

    # Feature switches
    raid_enabled: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )
    gamble_enabled: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )

    # Raid tuning
    raid_base_chance: Mapped[float] = mapped_column(
        Float, default=0.50, server_default=_literal(0.50), nullable=False
    )
    raid_initiator_bonus: Mapped[float] = mapped_column(
        Float, default=0.05, server_default=_literal(0.05), nullable=False
    )
    raid_steal_pct: Mapped[float] = mapped_column(
        Float, default=0.20, server_default=_literal(0.20), nullable=False
    )
    raid_risk_pct: Mapped[float] = mapped_column(
        Float, default=0.15, server_default=_literal(0.15), nullable=False
    )
    raid_min_steal: Mapped[int] = mapped_column(
        Integer, default=5, server_default=_literal(5), nullable=False
    )
    raid_max_steal: Mapped[int] = mapped_column(
        Integer, default=30, server_default=_literal(30), nullable=False
    )
    raid_min_risk: Mapped[int] = mapped_column(
        Integer, default=3, server_default=_literal(3), nullable=False
    )
    raid_max_risk: Mapped[int] = mapped_column(
        Integer, default=20, server_default=_literal(20), nullable=False
    )
    raid_success_cooldown_hours: Mapped[int] = mapped_column(
        Integer, default=4, server_default=_literal(4), nullable=False
    )
    raid_failure_cooldown_hours: Mapped[int] = mapped_column(
        Integer, default=2, server_default=_literal(2), nullable=False
    )

    # Gamble tuning
    gamble_success_chance: Mapped[float] = mapped_column(
        Float, default=0.50, server_default=_literal(0.50), nullable=False
    )
    gamble_max_pct: Mapped[float] = mapped_column(
        Float, default=0.50, server_default=_literal(0.50), nullable=False
    )
    gamble_min_streak: Mapped[int] = mapped_column(
        Integer, default=10, server_default=_literal(10), nullable=False
    )

    @classmethod
    def with_defaults(cls, guild_id: str, **overrides) -> "GuildConfig":
        """Build a config with every column default filled in before it is flushed."""
        values = {
            col.key: col.default.arg
            for col in cls.__table__.columns
            if col.default is not None and not callable(col.default.arg)
        }
        values["trigger_words"] = []
        values.update(overrides)
        return cls(guild_id=guild_id, **values)

class Streak(Base):
    """A user's streak for one trigger word in one guild."""
    __tablename__ = "streaks"
    __table_args__ = (
        UniqueConstraint("guild_id", "user_id", "trigger_word", name="uq_streaks_guild_user_word"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(String, nullable=False)
    trigger_word: Mapped[str] = mapped_column(String, nullable=False)
    count: Mapped[int] = mapped_column(
        Integer, default=1, server_default=_literal(1), nullable=False
    )
    best_streak: Mapped[int] = mapped_column(
        Integer, default=1, server_default=_literal(1), nullable=False
    )
    streak_streak: Mapped[int] = mapped_column(
        Integer, default=0, server_default=_literal(0), nullable=False
    )
    last_streak_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, server_default=func.now(), nullable=False
    )

    # Attacker-side raid cooldown
    last_raid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    last_raid_success: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Streak guild={self.guild_id} user={self.user_id} word={self.trigger_word!r} "
            f"count={self.count} best={self.best_streak}>"
        )
