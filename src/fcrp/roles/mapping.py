"""Discord role ID to site role and department mapping tables."""

import logging
from collections.abc import Iterable, Sequence

from fcrp.core.config import get_role_table_config
from fcrp.roles.models import Department, ExternalRoleId, Role

logger = logging.getLogger(__name__)

DEFAULT_ROLE = Role.APPLICANT


def _check_unique(entries: Sequence[tuple[ExternalRoleId, object]], table: str) -> None:
    seen: set[ExternalRoleId] = set()
    for role_id, _ in entries:
        if role_id in seen:
            raise ValueError(f"Duplicate Discord role ID {role_id} in {table} mapping")
        seen.add(role_id)


class RoleMappingTable:
    """Ordered Discord role ID -> Role pairs, most privileged first.

    A member may hold several mapped Discord roles. The first entry in the
    table that the member holds decides the site role, which is how a member
    with both "Staff" and "Senior Staff" ends up as SENIOR_STAFF.
    """

    def __init__(self, entries: Iterable[tuple[ExternalRoleId, Role]]) -> None:
        self.entries: tuple[tuple[ExternalRoleId, Role], ...] = tuple(
            (str(role_id), Role.parse(role)) for role_id, role in entries
        )
        _check_unique(self.entries, "role")

    def __len__(self) -> int:
        return len(self.entries)

    def resolve(self, external_role_ids: Iterable[ExternalRoleId]) -> Role:
        """Return the role of the first table entry present in external_role_ids.

        Args:
            external_role_ids: Discord role IDs held by the member

        Returns:
            The matched Role, or APPLICANT if nothing matches
        """
        held = set(external_role_ids)
        for role_id, role in self.entries:
            if role_id in held:
                return role
        return DEFAULT_ROLE


class DepartmentMappingTable:
    """Discord role ID -> Department pairs for the main guild."""

    def __init__(self, entries: Iterable[tuple[ExternalRoleId, Department]]) -> None:
        self.entries: tuple[tuple[ExternalRoleId, Department], ...] = tuple(
            (str(role_id), Department.parse(department)) for role_id, department in entries
        )
        _check_unique(self.entries, "department")
        self._by_id = dict(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def resolve(self, external_role_ids: Iterable[ExternalRoleId]) -> list[Department]:
        """Map role IDs to departments, keeping the order the IDs came in.

        Unmapped IDs are dropped and each department appears once.
        """
        departments: list[Department] = []
        for role_id in external_role_ids:
            department = self._by_id.get(role_id)
            if department is not None and department not in departments:
                departments.append(department)
        return departments


def get_role_mapping() -> RoleMappingTable:
    """Build the role table from config/discord_roles.json."""
    table = RoleMappingTable(get_role_table_config().role_mapping)
    if not table.entries:
        logger.warning(f"Role mapping is empty; every member resolves to {DEFAULT_ROLE}")
    return table


def get_department_mapping() -> DepartmentMappingTable:
    """Build the department table from config/discord_roles.json."""
    return DepartmentMappingTable(get_role_table_config().department_mapping)
