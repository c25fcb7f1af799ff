import logging
import colorlog
from pathlib import Path

CONTEXT_FIELDS = ('guild_id', 'user_id', 'trigger_word')

CONSOLE_FORMAT = "%(asctime)s - %(log_color)s%(levelname)-8s%(reset)s - %(name)s - %(message)s%(context)s"
FILE_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s%(context)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_COLORS = {
    'DEBUG':    'cyan',
    'INFO':     'green',
    'WARNING':  'yellow',
    'ERROR':    'red',
    'CRITICAL': 'red,bg_white',
}

NOISY_LOGGERS = (
    'discord', 'discord.http', 'discord.gateway', 'discord.client',
    'aiosqlite', 'sqlalchemy.engine', 'asyncio', 'aiohttp.access',
)

class StreakContextFilter(logging.Filter):
    """Render guild, user and trigger word passed via ``extra`` as a suffix."""
    def filter(self, record):
        for attr in CONTEXT_FIELDS:
            if not hasattr(record, attr):
                setattr(record, attr, None)
        record.context = "".join(
            f" [{attr.split('_')[0]}:{getattr(record, attr)}]"
            for attr in CONTEXT_FIELDS
            if getattr(record, attr) is not None
        )
        return True

def _file_handler(log_file: str) -> logging.Handler:
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)
    handler = logging.FileHandler(filename=log_dir / log_file, encoding="utf-8", mode="a")
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
    return handler

def setup_logger(name: str, log_file: str = None, level: str = "INFO") -> logging.Logger:
    """Set up a colored logger with optional file output under ``logs/``.

    Pass ``name=None`` to configure the root logger so module loggers
    (``logging.getLogger(__name__)``) share the handlers.
    """
    logger = logging.getLogger(name)
    if logger.hasHandlers():
        logger.handlers.clear()
    logger.setLevel(level)

    console_handler = colorlog.StreamHandler()
    console_handler.setFormatter(
        colorlog.ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT, reset=True, log_colors=LOG_COLORS)
    )
    handlers = [console_handler]
    if log_file:
        handlers.append(_file_handler(log_file))

    context_filter = StreakContextFilter()
    for handler in handlers:
        handler.setLevel(level)
        # On the handler so records from child loggers get context too
        handler.addFilter(context_filter)
        logger.addHandler(handler)

    return logger

def silence_library_loggers(level: int = logging.WARNING) -> None:
    """Quiet the chatty loggers of discord.py and the database drivers."""
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level)
