import discord
import logging
from discord.ext import commands
from typing import Optional

from counters.audit import audit_log
from counters.config import Settings, load_settings
from counters.scheduler import DebounceScheduler
from counters.targets import build_targets, resolve_targets
from counters.updater import CounterUpdater


class CounterChannels(commands.Cog):
    """
    Keeps three voice channels renamed to the server's total members,
    online users and bots. Every membership or presence change asks the
    scheduler for an update; the scheduler decides when one actually runs.
    """

    def __init__(self, bot: commands.Bot, settings: Settings):
        self.bot = bot
        self.settings = settings

        # Assigned once the bot is ready and the configured server is found
        self.guild: Optional[discord.Guild] = None

        self.targets = build_targets(settings)
        self.updater = CounterUpdater(
            self.targets,
            guild_provider=lambda: self.guild,
            rename_timeout=settings.rename_timeout_seconds,
            off_label=settings.off_label,
        )
        self.scheduler = DebounceScheduler(
            self.updater.run, settings.cooldown_seconds, name="counter_update"
        )

        if self.scheduler.enabled:
            logging.info(f"Cooldown set to {self.scheduler.cooldown:g} seconds")
        else:
            logging.info("Cooldown disabled. Every change updates the counters.")

    # ---------------------------
    # Lifecycle
    # ---------------------------

    @commands.Cog.listener()
    async def on_ready(self):
        logging.info("\033[96mCounterChannels\033[0m cog synced successfully.")

        intents = getattr(self.bot, "intents", None)
        if not intents or not intents.members or not intents.presences:
            msg = (
                "Warning: Server Members or Presence Intent is disabled. "
                "Counts may be inaccurate. Enable both in the Developer Portal."
            )
            logging.warning(msg)
            audit_log(msg)

        guild = self.bot.get_guild(self.settings.server_id)
        if guild is None:
            logging.error(f"Bot is not added to server ID - {self.settings.server_id}.")
            logging.error("Exiting…")
            audit_log(
                f"Bot is not a member of configured server ({self.settings.server_id}). Shutting down."
            )
            self.scheduler.close()
            await self.bot.close()
            return

        self.guild = guild
        resolved = resolve_targets(guild, self.targets)
        audit_log(
            f"Resolved counter channels in guild '{guild.name}' ({guild.id}): "
            + ", ".join(f"{key}={'yes' if ok else 'no'}" for key, ok in resolved.items())
        )

        # Force an update once references are in place
        self.scheduler.request()

    def cog_unload(self):
        self.scheduler.close()

    async def shutdown_flush(self) -> int:
        """
        Put every counter into its off state. Bypasses the scheduler, stops
        it and waits for running updates so none can overwrite the off label.
        Renames are bounded by the rename timeout, so the wait is too.
        """
        self.scheduler.close()
        await self.scheduler.drain()
        attempted = await self.updater.flush_off()
        audit_log(f"Shutdown: set {attempted} counter channel(s) to '{self.settings.off_label}'.")
        return attempted

    # ---------------------------
    # Event listeners
    # ---------------------------

    def _is_our_guild(self, guild: Optional[discord.Guild]) -> bool:
        # Events before on_ready are covered by the forced first update
        if self.guild is None or guild is None:
            return False
        return guild.id == self.guild.id

    def _request_for(self, guild: Optional[discord.Guild]):
        if self._is_our_guild(guild):
            self.scheduler.request()

    @commands.Cog.listener()
    async def on_member_join(self, member: discord.Member):
        self._request_for(member.guild)

    @commands.Cog.listener()
    async def on_member_remove(self, member: discord.Member):
        self._request_for(member.guild)

    @commands.Cog.listener()
    async def on_member_update(self, before: discord.Member, after: discord.Member):
        self._request_for(after.guild)

    @commands.Cog.listener()
    async def on_presence_update(self, before: discord.Member, after: discord.Member):
        self._request_for(after.guild)

    @commands.Cog.listener()
    async def on_guild_available(self, guild: discord.Guild):
        self._request_for(guild)


async def setup(bot: commands.Bot):
    settings = getattr(bot, "counter_settings", None) or load_settings()
    await bot.add_cog(CounterChannels(bot, settings))
