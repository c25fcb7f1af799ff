"""Configuration for the streak bot, read from the environment or a .env file."""
from typing import Optional
import os
from pydantic import BaseModel, Field
from dotenv import load_dotenv

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///streaks.db"

class DatabaseConfig(BaseModel):
    """Where streaks are stored and how hard to try reaching the store."""
    url: str = Field(
        default=DEFAULT_DATABASE_URL,
        description="SQLAlchemy async URL of the streak database"
    )
    acquire_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for a connection or lock before failing"
    )
    pool_size: int = Field(
        default=5,
        ge=1,
        description="Pooled connections for server databases (ignored for SQLite)"
    )
    max_retries: int = Field(
        default=3,
        ge=1,
        description="Attempts for operations failing on transient connection errors"
    )
    retry_delay: float = Field(
        default=1.0,
        ge=0,
        description="Base delay in seconds between retries, multiplied by the attempt number"
    )

class LoggingConfig(BaseModel):
    """Log verbosity and destination."""
    level: str = Field(
        default="INFO",
        description="Root log level"
    )
    file: Optional[str] = Field(
        default="streakbot.log",
        description="File name under logs/, or None for console only"
    )

class WebConfig(BaseModel):
    """Health check server."""
    host: str = Field(default="0.0.0.0", description="Interface the health server binds to")
    port: int = Field(default=8080, description="Port serving /health and /ping")
    enabled: bool = Field(default=True, description="Whether to run the health server")

class BotConfig(BaseModel):
    """Main bot configuration."""
    token: str = Field(
        description="Discord bot token"
    )
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    web: WebConfig = Field(default_factory=WebConfig)
    command_prefix: str = Field(
        default="!",
        description="Prefix for text commands; streak commands are slash commands"
    )
    guild_id: Optional[str] = Field(
        default=None,
        description="Development guild for instant slash command sync"
    )

def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")

def load_config() -> BotConfig:
    """Load configuration from environment variables."""
    load_dotenv()

    return BotConfig(
        token=os.getenv("TOKEN", ""),
        database=DatabaseConfig(
            url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            acquire_timeout=float(os.getenv("DB_ACQUIRE_TIMEOUT", "30")),
            pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
            max_retries=int(os.getenv("DB_MAX_RETRIES", "3")),
            retry_delay=float(os.getenv("DB_RETRY_DELAY", "1.0"))
        ),
        logging=LoggingConfig(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            # An empty LOG_FILE turns file logging off
            file=os.getenv("LOG_FILE", "streakbot.log") or None
        ),
        web=WebConfig(
            host=os.getenv("WEB_HOST", "0.0.0.0"),
            port=int(os.getenv("WEB_PORT", "8080")),
            enabled=_flag("WEB_ENABLED", "true")
        ),
        command_prefix=os.getenv("COMMAND_PREFIX", "!"),
        guild_id=os.getenv("GUILD_ID") or None
    )
