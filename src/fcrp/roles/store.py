"""User record storage for role sync.

The real site keeps users in its own database. Sync code only needs the
four operations on ``UserStore``, so the database handle is passed in
rather than reached through a global client. ``InMemoryUserStore`` serves
tests and local development; ``JsonUserStore`` backs the CLI with a JSON
export of the user table.
"""

import json
import logging
from pathlib import Path
from typing import Protocol, runtime_checkable

from fcrp.roles.errors import PersistFailedError
from fcrp.roles.models import Department, Role, UserRecord
from fcrp.roles.permissions import has_admin_permission

logger = logging.getLogger(__name__)


@runtime_checkable
class UserStore(Protocol):
    """Persistence used by RoleSyncService.

    Writes are single-field and last-write-wins; there is no version check
    between a read and the following write.
    """

    def get(self, user_id: int) -> UserRecord | None:
        """Fetch one user, or None if unknown."""
        ...

    def list_syncable(self) -> list[UserRecord]:
        """Users with a Discord ID whose role may be synced (non-admin)."""
        ...

    def update_role(self, user_id: int, role: Role) -> None:
        """Persist a new role. Raises PersistFailedError on failure."""
        ...

    def update_department(self, user_id: int, department: Department | None) -> None:
        """Persist a new primary department. Raises PersistFailedError on failure."""
        ...


class InMemoryUserStore:
    """Dict-backed UserStore."""

    def __init__(self, users: list[UserRecord] | None = None) -> None:
        self._users: dict[int, UserRecord] = {u.id: u for u in users or []}

    def add(self, user: UserRecord) -> None:
        """Insert or replace a user."""
        self._users[user.id] = user

    def all(self) -> list[UserRecord]:
        """Every stored user, ordered by ID."""
        return [self._users[user_id] for user_id in sorted(self._users)]

    def get(self, user_id: int) -> UserRecord | None:
        """Fetch one user, or None if unknown."""
        return self._users.get(user_id)

    def list_syncable(self) -> list[UserRecord]:
        """Users with a Discord ID and a non-admin role."""
        return [u for u in self.all() if u.external_id and not has_admin_permission(u.role)]

    def _require(self, user_id: int) -> UserRecord:
        user = self._users.get(user_id)
        if user is None:
            raise PersistFailedError(f"User {user_id} not found")
        return user

    def update_role(self, user_id: int, role: Role) -> None:
        """Persist a new role."""
        self._require(user_id).role = role

    def update_department(self, user_id: int, department: Department | None) -> None:
        """Persist a new primary department."""
        self._require(user_id).department = department


class JsonUserStore(InMemoryUserStore):
    """UserStore over a JSON file holding a list of user records.

    Each record looks like ``{"id": 1, "discordId": "...", "role": "MEMBER",
    "department": "BSO"}``. Every update rewrites the file.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(self._load())

    def _load(self) -> list[UserRecord]:
        if not self.path.exists():
            raise FileNotFoundError(f"User file not found: {self.path}")

        with self.path.open() as f:
            data = json.load(f)

        if not isinstance(data, list):
            raise ValueError(f"Expected a list of users in {self.path}")

        users = [UserRecord.from_dict(item) for item in data]
        logger.info(f"Loaded {len(users)} users from {self.path}")
        return users

    def save(self) -> None:
        """Write all users back to the file."""
        try:
            with self.path.open("w") as f:
                json.dump([u.to_dict() for u in self.all()], f, indent=2)
        except OSError as e:
            raise PersistFailedError(f"Could not write {self.path}: {e}") from e

    def update_role(self, user_id: int, role: Role) -> None:
        """Persist a new role and save the file, restoring the old role if saving fails."""
        previous = self._require(user_id).role
        super().update_role(user_id, role)
        try:
            self.save()
        except PersistFailedError:
            super().update_role(user_id, previous)
            raise

    def update_department(self, user_id: int, department: Department | None) -> None:
        """Persist a new primary department and save the file."""
        previous = self._require(user_id).department
        super().update_department(user_id, department)
        try:
            self.save()
        except PersistFailedError:
            super().update_department(user_id, previous)
            raise
