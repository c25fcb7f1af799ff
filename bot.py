"""Streak bot entry point: lifecycle, service wiring and the health server."""
import asyncio
import platform
from typing import List, Optional
from aiohttp import web
import discord
from discord.ext import commands, tasks
from config.settings import BotConfig, load_config
from database.database import Database
from services import EconomyService, GuildConfigService, StreakLedger
from cogs import get_extensions
from utils.logging import setup_logger, silence_library_loggers

class StreakBot(commands.Bot):
    """Discord client owning the database and the streak services."""

    def __init__(self, config: Optional[BotConfig] = None, *args, **kwargs):
        self.config = config or load_config()

        # Trigger words are read from message content
        intents = discord.Intents.default()
        intents.message_content = True
        intents.members = True
        super().__init__(command_prefix=self.config.command_prefix, intents=intents, *args, **kwargs)

        # Root logger so every module logger shares the handlers
        self.logger = setup_logger(None, self.config.logging.file, self.config.logging.level)
        silence_library_loggers()

        # Created in setup_hook, disposed in close
        self.database: Optional[Database] = None
        self.guild_configs: Optional[GuildConfigService] = None
        self.streak_ledger: Optional[StreakLedger] = None
        self.economy_service: Optional[EconomyService] = None

        self.started_at = None
        self.last_heartbeat = None
        self.health_app = web.Application()
        self.health_app.router.add_get("/health", self.health_check)
        self.health_app.router.add_get("/ping", self.ping)
        self._health_runner: Optional[web.AppRunner] = None

        self.loaded_cogs: List[str] = []

    async def setup_hook(self):
        """Open the database, build the services, load cogs and sync commands."""
        self.logger.info(
            f"Starting streak bot (Python {platform.python_version()}, discord.py {discord.__version__})"
        )
        self.started_at = discord.utils.utcnow()

        if self.config.web.enabled:
            try:
                await self.start_health_server()
            except OSError as e:
                # The bot still works without the health endpoint
                self.logger.error(f"Could not start health server: {e}")

        try:
            await self.open_database()
            self.guild_configs = GuildConfigService.from_bot(self)
            self.streak_ledger = StreakLedger.from_bot(self)
            self.economy_service = EconomyService.from_bot(self)

            await self.load_cogs()
            await self.sync_commands()
        except Exception as e:
            self.logger.error(f"Startup failed: {e}")
            raise

    async def open_database(self):
        """Connect and migrate; a failed migration aborts startup."""
        self.logger.info(f"Opening streak database at {self.config.database.url}")
        self.database = Database.from_config(self.config.database)
        added = await self.database.initialize()
        if added:
            self.logger.info(f"Schema upgraded with {len(added)} new columns")

    async def load_cogs(self):
        """Load extensions in dependency order, remembering them for shutdown."""
        for extension in get_extensions():
            await self.load_extension(extension)
            self.loaded_cogs.append(extension)
            self.logger.info(f"Loaded {extension}")

    async def sync_commands(self) -> list:
        """Register slash commands, instantly in the development guild if one is set."""
        if self.config.guild_id:
            guild = discord.Object(id=int(self.config.guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
        else:
            synced = await self.tree.sync()
        self.logger.info(f"Synced {len(synced)} application commands: {', '.join(c.name for c in synced)}")
        return synced

    @tasks.loop(seconds=30)
    async def heartbeat(self):
        self.last_heartbeat = discord.utils.utcnow()

    async def start_health_server(self):
        runner = web.AppRunner(self.health_app)
        await runner.setup()
        await web.TCPSite(runner, host=self.config.web.host, port=self.config.web.port).start()
        self._health_runner = runner
        self.heartbeat.start()
        self.logger.info(f"Health server listening on http://{self.config.web.host}:{self.config.web.port}/health")

    async def health_check(self, request: web.Request) -> web.Response:
        """Report gateway and database health as JSON."""
        try:
            database_ok = await self.database.ping() if self.database else False
            healthy = self.is_ready() and database_ok
            uptime = (discord.utils.utcnow() - self.started_at).total_seconds() if self.started_at else 0
            return web.json_response(
                {
                    "status": "healthy" if healthy else "unhealthy",
                    "uptime_seconds": uptime,
                    "latency_ms": round(self.latency * 1000, 2),
                    "last_heartbeat": self.last_heartbeat.isoformat() if self.last_heartbeat else None,
                    "guilds": len(self.guilds),
                    "database_healthy": database_ok,
                },
                status=200 if healthy else 503
            )
        except Exception as e:
            self.logger.error(f"Health check error: {e}")
            return web.json_response({"status": "error", "message": str(e)}, status=500)

    async def ping(self, request: web.Request) -> web.Response:
        return web.Response(text="pong")

    async def on_ready(self):
        self.logger.info(f"Connected as {self.user} to {len(self.guilds)} guilds")
        await self.change_presence(
            activity=discord.Activity(type=discord.ActivityType.watching, name="for streaks 🔥")
        )

    async def close(self):
        """Stop background work, unload cogs, disconnect, then release the database."""
        self.logger.info("Shutting down...")
        try:
            if self.heartbeat.is_running():
                self.heartbeat.cancel()
            if self._health_runner:
                await self._health_runner.cleanup()
                self._health_runner = None

            for extension in reversed(self.loaded_cogs):
                await self.unload_extension(extension)
            self.loaded_cogs.clear()

            await super().close()
        finally:
            if self.database:
                await self.database.close()
                self.database = None
                self.logger.info("Database connection closed")

async def run(bot: StreakBot):
    """Run the bot until it disconnects, closing it on the way out."""
    async with bot:
        await bot.start(bot.config.token)

def main():
    bot = StreakBot()

    if not bot.config.token:
        bot.logger.critical("TOKEN is not set; add it to the environment or a .env file")
        raise SystemExit(1)

    try:
        asyncio.run(run(bot))
    except KeyboardInterrupt:
        bot.logger.info("Interrupted, bot stopped")

if __name__ == "__main__":
    main()
