"""Bot configuration."""
from .settings import BotConfig, DatabaseConfig, LoggingConfig, WebConfig, load_config

__all__ = [
    'BotConfig',
    'DatabaseConfig',
    'LoggingConfig',
    'WebConfig',
    'load_config',
]
