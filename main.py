import discord
from discord.ext import commands
import os
import signal
import asyncio
import logging
from dotenv import load_dotenv

from counters.audit import audit_log
from counters.config import ConfigError, load_settings

# Load environment variables from .env file
load_dotenv()


# Define ANSI escape sequences for colours
class CustomFormatter(logging.Formatter):
    LEVEL_COLOURS = {
        logging.DEBUG: "\033[0;36m",  # Cyan
        logging.INFO: "\033[0;32m",  # Green
        logging.WARNING: "\033[0;33m",  # Yellow
        logging.ERROR: "\033[0;31m",  # Red
        logging.CRITICAL: "\033[1;41m",  # Red background w/ bold text
    }
    RESET_COLOUR = "\033[0m"

    def format(self, record):
        level_name = (
            self.LEVEL_COLOURS.get(record.levelno, self.RESET_COLOUR)
            + record.levelname
            + self.RESET_COLOUR
        )
        record.levelname = level_name
        return super().format(record)


# Configure logging
formatter = CustomFormatter(
    "%(asctime)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"
)
handler = logging.StreamHandler()
handler.setFormatter(formatter)
logging.basicConfig(level=logging.INFO, handlers=[handler])

COGS_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "cogs")
SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


def create_bot(settings) -> commands.Bot:
    # Roster and statuses are only cached with both privileged intents
    intents = discord.Intents.default()
    intents.guilds = True
    intents.members = True
    intents.presences = True

    bot = commands.Bot(command_prefix=">", intents=intents)
    bot.counter_settings = settings
    bot._shutting_down = False

    @bot.event
    async def on_ready():
        logging.info(f"Bot logged in as \033[96m{bot.user}\033[0m")
        audit_log(f"Bot logged in as {bot.user} (ID: {bot.user.id}).")

    return bot


async def load_cogs(bot: commands.Bot):
    """Loads all .py files in the 'cogs' folder as extensions."""
    for filename in sorted(os.listdir(COGS_DIR)):
        if filename.endswith(".py") and not filename.startswith("_"):
            await bot.load_extension(f"cogs.{filename[:-3]}")
            audit_log(f"Loaded cog: {filename[:-3]}")


async def shutdown(bot: commands.Bot, sig_name: str):
    """Set counters to their off label, then close the connection."""
    if bot._shutting_down:
        return
    bot._shutting_down = True
    # A second interrupt during the flush falls back to the default behaviour
    remove_signal_handlers(asyncio.get_running_loop())

    logging.info(f"Received {sig_name}. Shutting down the bot…")
    cog = bot.get_cog("CounterChannels")
    if cog is not None:
        try:
            await cog.shutdown_flush()
        except Exception as e:
            logging.error(f"Error while resetting counters on shutdown: {e}")
    await bot.close()


def _on_signal(bot: commands.Bot, sig: signal.Signals):
    # Keep a reference so the task is not collected mid-flush
    bot._shutdown_task = asyncio.create_task(shutdown(bot, sig.name))


def remove_signal_handlers(loop: asyncio.AbstractEventLoop):
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.remove_signal_handler(sig)
        except (NotImplementedError, RuntimeError):
            logging.debug(f"No {sig.name} handler to remove on this platform.")


def install_signal_handlers(bot: commands.Bot):
    loop = asyncio.get_running_loop()
    for sig in SHUTDOWN_SIGNALS:
        try:
            loop.add_signal_handler(sig, _on_signal, bot, sig)
        except (NotImplementedError, RuntimeError):
            logging.warning(
                f"Cannot handle {sig.name} on this platform. Counters will not be reset on exit."
            )


async def main(settings):
    bot = create_bot(settings)
    async with bot:
        install_signal_handlers(bot)
        await load_cogs(bot)
        await bot.start(settings.token)


if __name__ == "__main__":
    try:
        settings = load_settings()
    except ConfigError as e:
        for problem in e.problems:
            logging.error(f"Missing or invalid config value: {problem}")
        logging.error("Please fix config.yaml / .env and restart.")
        exit(1)

    asyncio.run(main(settings))
