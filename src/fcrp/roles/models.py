"""Data models for role and department sync."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum

from fcrp.roles.errors import UnknownDepartmentError, UnknownRoleError

# Discord snowflake for a guild role
ExternalRoleId = str


def _normalize(value: str) -> str:
    return value.strip().upper().replace("-", "_").replace(" ", "_")


class Role(StrEnum):
    """Internal authorization level, declared lowest privilege first.

    Comparisons follow privilege, so ``Role.STAFF < Role.ADMIN`` holds even
    though the names sort the other way.
    """

    APPLICANT = "APPLICANT"
    MEMBER = "MEMBER"
    STAFF_IN_TRAINING = "STAFF_IN_TRAINING"
    STAFF = "STAFF"
    SENIOR_STAFF = "SENIOR_STAFF"
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"
    SPECIAL_ADVISOR = "SPECIAL_ADVISOR"
    SENIOR_ADMIN = "SENIOR_ADMIN"
    HEAD_ADMIN = "HEAD_ADMIN"
    WEBMASTER = "WEBMASTER"

    @property
    def privilege(self) -> int:
        """Position in the privilege order (0 = lowest)."""
        return _ROLE_PRIVILEGE[self]

    @classmethod
    def parse(cls, value: str | Role) -> Role:
        """Convert an external role name to a Role.

        Accepts any case and spaces or dashes in place of underscores
        (``"senior staff"`` -> ``Role.SENIOR_STAFF``).

        Raises:
            UnknownRoleError: If the value names no role
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise UnknownRoleError(value)
        try:
            return cls(_normalize(value))
        except ValueError:
            raise UnknownRoleError(value) from None

    def _privilege_of(self, other: object) -> int:
        if not isinstance(other, Role):
            raise TypeError(f"Cannot compare Role with {type(other).__name__}: {other!r}")
        return other.privilege

    def __lt__(self, other: object) -> bool:
        return self.privilege < self._privilege_of(other)

    def __le__(self, other: object) -> bool:
        return self.privilege <= self._privilege_of(other)

    def __gt__(self, other: object) -> bool:
        return self.privilege > self._privilege_of(other)

    def __ge__(self, other: object) -> bool:
        return self.privilege >= self._privilege_of(other)


_ROLE_PRIVILEGE: dict[Role, int] = {role: index for index, role in enumerate(Role)}


class Department(StrEnum):
    """Organizational unit a member belongs to."""

    BSFR = "BSFR"
    RNR = "RNR"
    RNR_ADMINISTRATION = "RNR_ADMINISTRATION"
    RNR_STAFF = "RNR_STAFF"
    BSO = "BSO"
    MPD = "MPD"
    FHP = "FHP"
    COMMS = "COMMS"
    FWC = "FWC"
    CIV = "CIV"
    DEV = "DEV"
    N_A = "N_A"

    @classmethod
    def parse(cls, value: str | Department) -> Department:
        """Convert an external department name to a Department.

        Raises:
            UnknownDepartmentError: If the value names no department
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            raise UnknownDepartmentError(value)
        try:
            return cls(_normalize(value))
        except ValueError:
            raise UnknownDepartmentError(value) from None


@dataclass
class UserRecord:
    """The persisted slice of a user that role sync reads and writes."""

    id: int
    external_id: str | None  # Discord user ID
    role: Role = Role.APPLICANT
    department: Department | None = None

    @classmethod
    def from_dict(cls, data: dict) -> UserRecord:
        """Create from a stored record, converting role and department once."""
        department = data.get("department")
        return cls(
            id=int(data["id"]),
            external_id=data.get("discordId") or None,
            role=Role.parse(data.get("role") or Role.APPLICANT),
            department=Department.parse(department) if department else None,
        )

    def to_dict(self) -> dict:
        """Convert to the stored record format."""
        return {
            "id": self.id,
            "discordId": self.external_id,
            "role": str(self.role),
            "department": str(self.department) if self.department else None,
        }


@dataclass(frozen=True)
class Actor:
    """The signed-in caller asking for a sync."""

    user_id: int
    role: Role


@dataclass
class SyncResult:
    """Outcome of one sync call, returned to the caller for display."""

    success: bool
    message: str
    changed: bool = False
    previous_value: Role | Department | None = None
    new_value: Role | Department | None = None
    candidates: list[Department] = field(default_factory=list)

    @property
    def needs_selection(self) -> bool:
        """True when the caller must pick one of ``candidates`` and retry."""
        return not self.success and bool(self.candidates)


@dataclass
class BulkSyncResult:
    """Outcome of syncing every eligible user."""

    success: bool
    message: str
    processed: int = 0
    updated: int = 0
    failed: list[int] = field(default_factory=list)
    results: dict[int, SyncResult] = field(default_factory=dict)
