"""Discord REST API integration module."""

from fcrp.discord.client import DiscordClient, get_retry_after

__all__ = [
    "DiscordClient",
    "get_retry_after",
]
