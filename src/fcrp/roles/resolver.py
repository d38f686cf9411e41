"""Resolve a member's site role and departments from Discord."""

import logging

from fcrp.roles.errors import NoExternalIdentityError, NoRolesFoundError, NotWhitelistedError
from fcrp.roles.fetcher import RoleFetcher
from fcrp.roles.mapping import DepartmentMappingTable, RoleMappingTable
from fcrp.roles.models import Department, ExternalRoleId, Role

logger = logging.getLogger(__name__)


class RoleResolver:
    """Site role from the community guild's roles."""

    def __init__(self, fetcher: RoleFetcher, table: RoleMappingTable) -> None:
        self.fetcher = fetcher
        self.table = table

    def resolve_user_role(self, external_user_id: str | None) -> Role | None:
        """Resolve the member's role, or None if Discord gave no roles.

        None means "could not determine", which is different from
        APPLICANT. Callers must not demote a user on None.
        """
        role_ids = self.fetcher.fetch_roles(external_user_id)
        if not role_ids:
            return None
        return self.table.resolve(role_ids)

    def require_user_role(self, external_user_id: str | None) -> Role:
        """Resolve the member's role, raising instead of returning None.

        Raises:
            NoRolesFoundError: If Discord returned no roles
            NoExternalIdentityError: If the member cannot be found
            ExternalServiceUnavailableError: If Discord fails
        """
        role_ids = self.fetcher.get_roles(external_user_id)
        if not role_ids:
            raise NoRolesFoundError()
        role = self.table.resolve(role_ids)
        logger.debug(f"Resolved {external_user_id} to {role} from {len(role_ids)} Discord roles")
        return role


class DepartmentResolver:
    """Departments from the main guild's roles, gated on the fan guild whitelist."""

    def __init__(
        self,
        fetcher: RoleFetcher,
        table: DepartmentMappingTable,
        whitelist_fetcher: RoleFetcher | None = None,
        whitelist_role_id: ExternalRoleId | None = None,
    ) -> None:
        self.fetcher = fetcher
        self.table = table
        self.whitelist_fetcher = whitelist_fetcher
        self.whitelist_role_id = whitelist_role_id

    def resolve_departments(self, external_user_id: str | None) -> list[Department]:
        """Departments the member holds, in the order Discord listed the roles.

        The first element is only a default. When more than one comes back
        the user has to pick their primary department.
        """
        return self.table.resolve(self.fetcher.fetch_roles_ordered(external_user_id))

    def require_departments(self, external_user_id: str | None) -> list[Department]:
        """Like ``resolve_departments`` but raises when Discord fails.

        Raises:
            NoRolesFoundError: If no department roles are held
            NoExternalIdentityError: If the member is not in the main guild
            ExternalServiceUnavailableError: If Discord fails
        """
        departments = self.table.resolve(self.fetcher.get_roles(external_user_id))
        if not departments:
            raise NoRolesFoundError(
                "No departments found. User may not be in the Main Discord "
                "or have no department roles."
            )
        return departments

    def is_whitelisted(self, external_user_id: str | None) -> bool:
        """Whether the member holds the whitelist marker role in the fan guild.

        Fails closed: no configured marker, or a failed fetch, means False.
        """
        if self.whitelist_fetcher is None or not self.whitelist_role_id:
            logger.error("Fan Discord whitelist is not configured")
            return False
        return self.whitelist_fetcher.has_role(external_user_id, self.whitelist_role_id)

    def require_whitelisted(self, external_user_id: str | None) -> None:
        """Raise unless the member holds the marker role in the fan guild.

        Unlike ``is_whitelisted`` an outage is not reported as "not whitelisted".

        Raises:
            NotWhitelistedError: If the marker is not configured, the member is
                not in the fan guild, or lacks the marker role
            ExternalServiceUnavailableError: If the fan guild cannot be read
        """
        if self.whitelist_fetcher is None or not self.whitelist_role_id:
            logger.error("Fan Discord whitelist is not configured")
            raise NotWhitelistedError()

        try:
            role_ids = self.whitelist_fetcher.get_roles(external_user_id)
        except NoExternalIdentityError:
            raise NotWhitelistedError() from None

        if self.whitelist_role_id not in role_ids:
            raise NotWhitelistedError()
