"""Core utilities for FCRP role sync."""

from fcrp.core.config import (
    GuildCredentials,
    RoleTableConfig,
    get_discord_credentials,
    get_fan_discord_credentials,
    get_main_discord_credentials,
    get_role_table_config,
)

__all__ = [
    "GuildCredentials",
    "RoleTableConfig",
    "get_discord_credentials",
    "get_fan_discord_credentials",
    "get_main_discord_credentials",
    "get_role_table_config",
]
