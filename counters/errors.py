import asyncio
import enum

import aiohttp
import discord

# Discord JSON error codes
MISSING_ACCESS = 50001
MISSING_PERMISSIONS = 50013

RATE_LIMITED_STATUS = 429


class RenameErrorKind(enum.Enum):
    PERMISSION_DENIED = "permission-denied"
    NOT_FOUND = "not-found"
    TRANSIENT = "transient"
    UNKNOWN = "unknown"


def classify_rename_error(error: BaseException) -> RenameErrorKind:
    """Map an exception raised by a channel rename onto a RenameErrorKind."""
    if isinstance(error, discord.Forbidden):
        return RenameErrorKind.PERMISSION_DENIED
    if isinstance(error, discord.NotFound):
        return RenameErrorKind.NOT_FOUND
    if isinstance(error, discord.DiscordServerError):
        return RenameErrorKind.TRANSIENT
    if isinstance(error, discord.HTTPException):
        if error.code in (MISSING_ACCESS, MISSING_PERMISSIONS):
            return RenameErrorKind.PERMISSION_DENIED
        if error.status == RATE_LIMITED_STATUS:
            return RenameErrorKind.TRANSIENT
        return RenameErrorKind.UNKNOWN
    if isinstance(error, (asyncio.TimeoutError, aiohttp.ClientError, OSError)):
        return RenameErrorKind.TRANSIENT
    return RenameErrorKind.UNKNOWN
