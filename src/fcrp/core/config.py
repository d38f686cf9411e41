"""Configuration loading utilities."""

import json
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from fcrp.roles.models import Department, ExternalRoleId, Role


@dataclass(frozen=True)
class GuildCredentials:
    """Bot credentials for one Discord guild."""

    guild_id: str
    bot_token: str


def get_discord_credentials() -> GuildCredentials:
    """Get credentials for the community guild whose roles map to site roles.

    Returns:
        GuildCredentials for DISCORD_GUILD_ID

    Raises:
        ValueError: If any required variable is not set
    """
    load_dotenv()

    guild_id = os.getenv("DISCORD_GUILD_ID")
    bot_token = os.getenv("DISCORD_BOT_TOKEN")

    if not guild_id or not bot_token:
        raise ValueError(
            "Discord credentials not set. Required: DISCORD_GUILD_ID, DISCORD_BOT_TOKEN"
        )

    return GuildCredentials(guild_id=guild_id, bot_token=bot_token)


def get_main_discord_credentials() -> GuildCredentials:
    """Get credentials for the main guild whose roles map to departments.

    Raises:
        ValueError: If any required variable is not set
    """
    load_dotenv()

    guild_id = os.getenv("MAIN_DISCORD_GUILD_ID")
    bot_token = os.getenv("MAIN_DISCORD_BOT_TOKEN")

    if not guild_id or not bot_token:
        raise ValueError(
            "Main Discord credentials not set. Required: "
            "MAIN_DISCORD_GUILD_ID, MAIN_DISCORD_BOT_TOKEN"
        )

    return GuildCredentials(guild_id=guild_id, bot_token=bot_token)


def get_fan_discord_credentials() -> tuple[GuildCredentials, ExternalRoleId]:
    """Get credentials for the fan guild and its whitelist marker role.

    FAN_DISCORD_BOT_TOKEN falls back to DISCORD_BOT_TOKEN, since the
    community bot usually sits in the fan guild as well.

    Returns:
        Tuple of (credentials, whitelisted role ID)

    Raises:
        ValueError: If any required variable is not set
    """
    load_dotenv()

    guild_id = os.getenv("FAN_DISCORD_GUILD_ID")
    role_id = os.getenv("FAN_DISCORD_WHITELISTED_ROLE_ID")
    bot_token = os.getenv("FAN_DISCORD_BOT_TOKEN") or os.getenv("DISCORD_BOT_TOKEN")

    if not guild_id or not role_id or not bot_token:
        raise ValueError(
            "Fan Discord configuration not set. Required: FAN_DISCORD_GUILD_ID, "
            "FAN_DISCORD_WHITELISTED_ROLE_ID, FAN_DISCORD_BOT_TOKEN/DISCORD_BOT_TOKEN"
        )

    return GuildCredentials(guild_id=guild_id, bot_token=bot_token), role_id


@dataclass
class RoleTableConfig:
    """Discord role mappings loaded from config/discord_roles.json.

    Both lists are ordered. For roles the first entry a member holds wins,
    so the file lists the most privileged role first.
    """

    role_mapping: tuple[tuple[ExternalRoleId, Role], ...] = ()
    department_mapping: tuple[tuple[ExternalRoleId, Department], ...] = ()


def get_project_root() -> Path:
    """Get the project root directory."""
    current = Path(__file__).resolve()
    for parent in current.parents:
        if (parent / "pyproject.toml").exists():
            return parent
    raise RuntimeError("Could not find project root (no pyproject.toml found)")


def parse_role_table_config(config_data: dict) -> RoleTableConfig:
    """Build a RoleTableConfig from decoded JSON.

    Role and department names are converted to enums here and nowhere else.

    Raises:
        UnknownRoleError: If an entry names an unknown role
        UnknownDepartmentError: If an entry names an unknown department
    """
    return RoleTableConfig(
        role_mapping=tuple(
            (str(entry["id"]), Role.parse(entry["role"]))
            for entry in config_data.get("role_mapping", ())
        ),
        department_mapping=tuple(
            (str(entry["id"]), Department.parse(entry["department"]))
            for entry in config_data.get("department_mapping", ())
        ),
    )


def load_role_table_config(config_path: Path | None = None) -> RoleTableConfig:
    """Load role mappings from config file.

    Args:
        config_path: Override path (default: config/discord_roles.json at project root)
    """
    if config_path is None:
        config_path = get_project_root() / "config" / "discord_roles.json"

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open() as f:
        config_data = json.load(f)

    return parse_role_table_config(config_data)


# Cached config instance
_role_table_config: RoleTableConfig | None = None


def get_role_table_config() -> RoleTableConfig:
    """Get cached role mapping config.

    Loads config once and caches it for subsequent calls.
    """
    global _role_table_config
    if _role_table_config is None:
        _role_table_config = load_role_table_config()
    return _role_table_config
