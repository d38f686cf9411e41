"""Shared pytest fixtures."""

import pytest

from fcrp.roles.errors import NoExternalIdentityError
from fcrp.roles.mapping import DepartmentMappingTable, RoleMappingTable
from fcrp.roles.models import Department, Role
from fcrp.utils.config import Settings

# Discord role IDs used across tests
SENIOR_STAFF_ID = "1253758031112568832"
STAFF_ID = "1209852842727313438"
STAFF_IN_TRAINING_ID = "1209852843574693918"
MEMBER_ID = "1209852841825669120"

BSFR_ROLE_ID = "123456789012345678"
BSO_ROLE_ID = "234567890123456789"
FHP_ROLE_ID = "456789012345678901"
RNR_ADMIN_ROLE_ID = "111111111111111111"

WHITELISTED_ROLE_ID = "999999999999999999"


class FakeDiscordClient:
    """Stands in for DiscordClient, serving role lists from a dict.

    Users missing from ``roles`` behave like non-members (404). Entries in
    ``errors`` are raised instead of returning roles.
    """

    def __init__(
        self,
        guild_id: str = "guild",
        roles: dict[str, list[str]] | None = None,
        errors: dict[str, Exception] | None = None,
    ) -> None:
        self.guild_id = guild_id
        self.roles = roles or {}
        self.errors = errors or {}
        self.calls: list[str] = []

    def get_member_roles(self, user_id: str) -> list[str]:
        self.calls.append(user_id)
        if not user_id:
            raise NoExternalIdentityError()
        if user_id in self.errors:
            raise self.errors[user_id]
        if user_id not in self.roles:
            raise NoExternalIdentityError("User is not a member of the Discord server")
        return list(self.roles[user_id])


@pytest.fixture
def make_discord_client():
    """Factory for FakeDiscordClient instances."""
    return FakeDiscordClient


@pytest.fixture
def role_table():
    """Role table mirroring config/discord_roles.json."""
    return RoleMappingTable(
        [
            (SENIOR_STAFF_ID, Role.SENIOR_STAFF),
            (STAFF_ID, Role.STAFF),
            (STAFF_IN_TRAINING_ID, Role.STAFF_IN_TRAINING),
            (MEMBER_ID, Role.MEMBER),
        ]
    )


@pytest.fixture
def department_table():
    """Department table for the main guild."""
    return DepartmentMappingTable(
        [
            (BSFR_ROLE_ID, Department.BSFR),
            (BSO_ROLE_ID, Department.BSO),
            (FHP_ROLE_ID, Department.FHP),
            (RNR_ADMIN_ROLE_ID, Department.RNR_ADMINISTRATION),
        ]
    )


@pytest.fixture
def settings():
    """Settings with fast, deterministic values."""
    return Settings(
        discord_api_base="https://discord.test/api/v10",
        request_timeout=5.0,
        rate_limit_retries=3,
        rate_limit_buffer=0.5,
        default_retry_after=5.0,
        bulk_batch_size=2,
        bulk_batch_delay=1.0,
    )


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set mock environment variables for testing."""
    monkeypatch.setenv("DISCORD_GUILD_ID", "community-guild")
    monkeypatch.setenv("DISCORD_BOT_TOKEN", "community-token")
    monkeypatch.setenv("MAIN_DISCORD_GUILD_ID", "main-guild")
    monkeypatch.setenv("MAIN_DISCORD_BOT_TOKEN", "main-token")
    monkeypatch.setenv("FAN_DISCORD_GUILD_ID", "fan-guild")
    monkeypatch.setenv("FAN_DISCORD_WHITELISTED_ROLE_ID", WHITELISTED_ROLE_ID)
    monkeypatch.setenv("FAN_DISCORD_BOT_TOKEN", "fan-token")
