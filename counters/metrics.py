import discord
from dataclasses import dataclass
from typing import Iterable, Optional


@dataclass(frozen=True)
class Metrics:
    """Snapshot of the counts shown on the counter channels."""

    total: int = 0
    online: int = 0
    bots: int = 0

    def value_for(self, field: str) -> int:
        return getattr(self, field)

    def summary(self) -> str:
        return (
            f"Total members - {self.total}, "
            f"Online users - {self.online}, "
            f"Bots - {self.bots}"
        )


METRIC_FIELDS = ("total", "online", "bots")


def count_members(members: Iterable[discord.Member]) -> Metrics:
    """
    Count everything in a single pass over the roster.
    Bots are never counted as online users.
    """
    total = users = bots = 0
    for m in members:
        total += 1
        if m.bot:
            bots += 1
        elif m.status != discord.Status.offline:
            users += 1
    return Metrics(total=total, online=users, bots=bots)


def compute_metrics(guild: Optional[discord.Guild]) -> Metrics:
    """Metrics for the guild roster, or zeros while the guild is not available yet."""
    if guild is None:
        return Metrics()
    return count_members(guild.members)
