"""Fetch a member's Discord role IDs without letting failures escape."""

import logging

from fcrp.discord.client import DiscordClient
from fcrp.roles.errors import RoleSyncError
from fcrp.roles.models import ExternalRoleId

logger = logging.getLogger(__name__)


class RoleFetcher:
    """Reads role IDs for one guild through a DiscordClient.

    ``get_roles`` raises so the sync service can report why a fetch failed.
    The ``fetch_*`` methods fail soft and return nothing instead, for
    callers that only need a best-effort answer. Nothing is cached; every
    call is a fresh request.
    """

    def __init__(self, client: DiscordClient) -> None:
        self.client = client

    @property
    def guild_id(self) -> str:
        """Guild this fetcher reads from."""
        return self.client.guild_id

    def get_roles(self, external_user_id: str | None) -> list[ExternalRoleId]:
        """Role IDs in the order Discord returned them.

        Raises:
            NoExternalIdentityError: If there is no user ID or the user is not in the guild
            ExternalServiceUnavailableError: If Discord fails or stays rate limited
        """
        return self.client.get_member_roles(external_user_id or "")

    def fetch_roles_ordered(self, external_user_id: str | None) -> list[ExternalRoleId]:
        """Like ``get_roles`` but returns an empty list on any failure."""
        if not external_user_id:
            return []
        try:
            return self.get_roles(external_user_id)
        except RoleSyncError as e:
            logger.warning(
                f"Could not fetch roles for {external_user_id} in guild {self.guild_id}: "
                f"{e.message}"
            )
            return []

    def fetch_roles(self, external_user_id: str | None) -> frozenset[ExternalRoleId]:
        """Role IDs as a set, empty on any failure."""
        return frozenset(self.fetch_roles_ordered(external_user_id))

    def has_role(self, external_user_id: str | None, role_id: ExternalRoleId) -> bool:
        """Whether the member holds role_id. False if the fetch fails."""
        return role_id in self.fetch_roles(external_user_id)
