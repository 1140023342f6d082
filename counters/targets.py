import discord
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from counters.config import Settings
from counters.metrics import METRIC_FIELDS


@dataclass
class CounterTarget:
    """
    One counter channel bound to one metric field.
    `channel` is resolved once on ready and stays None if the id is unknown.
    """

    key: str
    channel_id: Optional[int]
    label: str
    metric_field: str
    channel: Optional[discord.abc.GuildChannel] = None

    def __post_init__(self):
        if self.metric_field not in METRIC_FIELDS:
            raise ValueError(
                f"Unknown metric '{self.metric_field}' for {self.key}. "
                f"Expected one of: {', '.join(METRIC_FIELDS)}"
            )

    @property
    def resolved(self) -> bool:
        return self.channel is not None

    def format_name(self, value) -> str:
        return f"{self.label} : {value}"


def build_targets(settings: Settings) -> List[CounterTarget]:
    return [
        CounterTarget(
            key="total",
            channel_id=settings.total_channel.id,
            label=settings.total_channel.name,
            metric_field="total",
        ),
        CounterTarget(
            key="online",
            channel_id=settings.online_channel.id,
            label=settings.online_channel.name,
            metric_field="online",
        ),
        CounterTarget(
            key="bots",
            channel_id=settings.bot_channel.id,
            label=settings.bot_channel.name,
            metric_field="bots",
        ),
    ]


def resolve_targets(guild: discord.Guild, targets: List[CounterTarget]) -> Dict[str, bool]:
    """
    Print every channel in the guild with its id, and attach the ones
    matching a configured target. Returns target key -> resolved.
    """
    for t in targets:
        t.channel = None
    by_id = {t.channel_id: t for t in targets if t.channel_id is not None}

    logging.info(f"Connected to {guild.name}, available channels:")
    for i, channel in enumerate(guild.channels):
        logging.info(f"    [{i}] {channel.name}, id - {channel.id}")
        target = by_id.get(channel.id)
        if target is not None:
            logging.info(f"Reference found for {target.label}")
            target.channel = channel

    for target in targets:
        if not target.resolved:
            logging.warning(
                f"No channel found for {target.label} (id {target.channel_id}). "
                "This counter will not be updated."
            )
    return {t.key: t.resolved for t in targets}
