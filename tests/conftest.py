"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import discord
import pytest

# Make the repo root importable without installing the project
sys.path.insert(0, str(Path(__file__).parent.parent))

from counters.config import ChannelConfig, Settings  # noqa: E402


@pytest.fixture(autouse=True)
def _isolated_audit_log(tmp_path, monkeypatch):
    monkeypatch.setattr("counters.audit.AUDIT_LOG_PATH", str(tmp_path / "audit.log"))


def make_member(bot: bool = False, status: discord.Status = discord.Status.online):
    member = MagicMock()
    member.bot = bot
    member.status = status
    return member


def make_channel(channel_id: int, name: str = "voice"):
    channel = MagicMock()
    channel.id = channel_id
    channel.name = name
    channel.edit = AsyncMock()
    return channel


def make_guild(guild_id: int = 1, members=None, channels=None, name: str = "Test Server"):
    guild = MagicMock()
    guild.id = guild_id
    guild.name = name
    guild.members = list(members or [])
    guild.channels = list(channels or [])
    return guild


def make_roster():
    """10 entries: 2 bots, 5 humans not offline, 3 humans offline."""
    return (
        [make_member(bot=True), make_member(bot=True, status=discord.Status.offline)]
        + [make_member(status=discord.Status.online)] * 2
        + [make_member(status=discord.Status.idle)] * 2
        + [make_member(status=discord.Status.dnd)]
        + [make_member(status=discord.Status.offline)] * 3
    )


@pytest.fixture
def settings():
    return Settings(
        token="test-token",
        server_id=1,
        cooldown_seconds=60,
        rename_timeout_seconds=5,
        total_channel=ChannelConfig(10, "Total members"),
        online_channel=ChannelConfig(20, "Online users"),
        bot_channel=ChannelConfig(None, "Bots"),
    )
