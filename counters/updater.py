import asyncio
import discord
import enum
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from counters.errors import RenameErrorKind, classify_rename_error
from counters.metrics import Metrics, compute_metrics
from counters.targets import CounterTarget


class RenameOutcome(enum.Enum):
    RENAMED = "renamed"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RenameResult:
    key: str
    outcome: RenameOutcome
    error_kind: Optional[RenameErrorKind] = None


class CounterUpdater:
    """
    Recomputes the metrics and pushes them to every counter channel.
    A failure on one channel never stops the others, and nothing raised by
    a rename leaves run().
    """

    def __init__(
        self,
        targets: List[CounterTarget],
        guild_provider: Callable[[], Optional[discord.Guild]],
        rename_timeout: float = 30.0,
        off_label: str = "Off",
    ):
        self.targets = targets
        self._guild_provider = guild_provider
        self.rename_timeout = rename_timeout
        self.off_label = off_label
        self.updates = 0

    async def run(self) -> List[RenameResult]:
        metrics = compute_metrics(self._guild_provider())

        logging.info(f"[{self.updates}] Updating counters…")
        logging.info(metrics.summary())
        self.updates += 1

        return await asyncio.gather(
            *(self._update_target(t, metrics) for t in self.targets)
        )

    async def _update_target(
        self, target: CounterTarget, metrics: Metrics
    ) -> RenameResult:
        if not target.resolved:
            logging.warning(
                f"Tried to update {target.label} count, "
                "but the reference to the channel is missing."
            )
            return RenameResult(target.key, RenameOutcome.SKIPPED)

        desired = target.format_name(metrics.value_for(target.metric_field))
        if target.channel.name == desired:
            return RenameResult(target.key, RenameOutcome.UNCHANGED)

        try:
            await self._rename(target.channel, desired, reason="Counter update")
        except Exception as e:
            kind = classify_rename_error(e)
            self._log_failure(target, desired, kind, e)
            return RenameResult(target.key, RenameOutcome.FAILED, kind)
        return RenameResult(target.key, RenameOutcome.RENAMED)

    async def _rename(self, channel, name: str, reason: str):
        await asyncio.wait_for(
            channel.edit(name=name, reason=reason), timeout=self.rename_timeout
        )

    def _log_failure(
        self,
        target: CounterTarget,
        desired: str,
        kind: RenameErrorKind,
        error: Exception,
    ):
        channel_name = getattr(target.channel, "name", target.label)
        if kind is RenameErrorKind.PERMISSION_DENIED:
            logging.warning(
                f"Bot does not have enough permissions to modify #{channel_name}."
            )
        elif kind is RenameErrorKind.NOT_FOUND:
            logging.warning(
                f"Channel #{channel_name} for {target.label} no longer exists: {error}"
            )
        elif kind is RenameErrorKind.TRANSIENT:
            logging.warning(
                f"Temporary failure renaming #{channel_name} to '{desired}'. "
                f"It will be retried on the next update. {type(error).__name__}: {error}"
            )
        else:
            logging.error(
                f"Unexpected error renaming #{channel_name} to '{desired}': {error}",
                exc_info=(type(error), error, error.__traceback__),
            )

    async def flush_off(self) -> int:
        """Set every resolved counter to the off label. All failures are ignored."""
        resolved = [t for t in self.targets if t.resolved]
        await asyncio.gather(
            *(
                self._rename(t.channel, t.format_name(self.off_label), reason="Bot shutting down")
                for t in resolved
            ),
            return_exceptions=True,
        )
        return len(resolved)
