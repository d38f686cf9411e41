"""Sync a user's site role and department from Discord.

Each call runs start to finish inside the caller's request:

1. check the caller is signed in and allowed to act on the user
2. load the user and their linked Discord ID
3. fetch roles from Discord (department sync checks the fan guild whitelist first)
4. resolve the new role or department
5. compare with the stored value and write only if it differs

Any failure along the way comes back as ``SyncResult(success=False)`` with
a message for the user. Nothing is written unless every step succeeded.
"""

import logging
import time
from collections.abc import Iterator
from contextlib import ExitStack, contextmanager

from fcrp.core.config import (
    get_discord_credentials,
    get_fan_discord_credentials,
    get_main_discord_credentials,
)
from fcrp.discord.client import DiscordClient
from fcrp.roles.errors import (
    AmbiguousDepartmentError,
    NoExternalIdentityError,
    NotAuthenticatedError,
    NotAuthorizedError,
    PersistFailedError,
    RoleSyncError,
    UnknownDepartmentError,
)
from fcrp.roles.fetcher import RoleFetcher
from fcrp.roles.mapping import get_department_mapping, get_role_mapping
from fcrp.roles.models import Actor, BulkSyncResult, Department, Role, SyncResult, UserRecord
from fcrp.roles.permissions import has_admin_permission
from fcrp.roles.resolver import DepartmentResolver, RoleResolver
from fcrp.roles.store import UserStore
from fcrp.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


class RoleSyncService:
    """Applies Discord roles and departments to stored users."""

    def __init__(
        self,
        store: UserStore,
        role_resolver: RoleResolver,
        department_resolver: DepartmentResolver | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.store = store
        self.role_resolver = role_resolver
        self.department_resolver = department_resolver
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    def _authorize(self, actor: Actor | None, user_id: int) -> None:
        """Allow the user themselves, or an admin acting on anyone."""
        if actor is None:
            raise NotAuthenticatedError()
        if actor.user_id != user_id and not has_admin_permission(actor.role):
            raise NotAuthorizedError()

    def _load_user(self, user_id: int) -> UserRecord:
        user = self.store.get(user_id)
        if user is None:
            raise NoExternalIdentityError("User not found")
        return user

    def _load_linked_user(self, user_id: int) -> UserRecord:
        user = self._load_user(user_id)
        if not user.external_id:
            raise NoExternalIdentityError()
        return user

    def _write_role(self, user: UserRecord, role: Role) -> None:
        try:
            self.store.update_role(user.id, role)
        except PersistFailedError:
            raise
        except Exception as e:
            raise PersistFailedError("Failed to save role") from e

    def _write_department(self, user: UserRecord, department: Department | None) -> None:
        try:
            self.store.update_department(user.id, department)
        except PersistFailedError:
            raise
        except Exception as e:
            raise PersistFailedError("Failed to save department") from e

    # ------------------------------------------------------------------
    # Role
    # ------------------------------------------------------------------

    def _sync_user_role(self, user: UserRecord, dry_run: bool = False) -> SyncResult:
        if has_admin_permission(user.role):
            raise NotAuthorizedError("Cannot change admin role")

        new_role = self.role_resolver.require_user_role(user.external_id)
        previous = user.role

        if new_role == previous:
            return SyncResult(
                success=True,
                message="Role already up to date",
                previous_value=previous,
                new_value=new_role,
            )

        if dry_run:
            return SyncResult(
                success=True,
                message=f"Would update role to {new_role}",
                changed=True,
                previous_value=previous,
                new_value=new_role,
            )

        self._write_role(user, new_role)
        logger.info(f"Updated user {user.id} role: {previous} -> {new_role}")
        return SyncResult(
            success=True,
            message=f"Role updated to {new_role}",
            changed=True,
            previous_value=previous,
            new_value=new_role,
        )

    def sync_role(self, actor: Actor | None, user_id: int, dry_run: bool = False) -> SyncResult:
        """Re-derive a user's role from the community guild and store it.

        Args:
            actor: The signed-in caller, None if not signed in
            user_id: Site user ID to sync
            dry_run: Resolve and compare but do not write

        Returns:
            SyncResult; ``changed`` is False when the role was already current
        """
        try:
            self._authorize(actor, user_id)
            user = self._load_linked_user(user_id)
            return self._sync_user_role(user, dry_run=dry_run)
        except RoleSyncError as e:
            logger.warning(f"Role sync failed for user {user_id}: {e.message}")
            return SyncResult(success=False, message=e.message)

    def sync_all_roles(self, actor: Actor | None, dry_run: bool = False) -> BulkSyncResult:
        """Sync every non-admin user with a linked Discord account.

        Users are processed in batches with a pause between batches to stay
        clear of Discord's rate limits. One user's failure does not stop
        the run.
        """
        if actor is None:
            return BulkSyncResult(success=False, message=NotAuthenticatedError().message)
        if not has_admin_permission(actor.role):
            return BulkSyncResult(success=False, message=NotAuthorizedError().message)

        users = self.store.list_syncable()
        logger.info(f"Found {len(users)} users to sync")

        batch_size = self.settings.bulk_batch_size
        summary = BulkSyncResult(success=True, message="")

        for start in range(0, len(users), batch_size):
            for user in users[start : start + batch_size]:
                try:
                    result = self._sync_user_role(user, dry_run=dry_run)
                except RoleSyncError as e:
                    logger.warning(f"Role sync failed for user {user.id}: {e.message}")
                    result = SyncResult(success=False, message=e.message)

                summary.processed += 1
                summary.results[user.id] = result
                if not result.success:
                    summary.failed.append(user.id)
                elif result.changed:
                    summary.updated += 1

            if start + batch_size < len(users):
                time.sleep(self.settings.bulk_batch_delay)

        summary.message = f"Processed {summary.processed} users, updated {summary.updated} roles"
        if summary.failed:
            summary.message += f", {len(summary.failed)} failed"
        return summary

    # ------------------------------------------------------------------
    # Department
    # ------------------------------------------------------------------

    def _require_department_resolver(self) -> DepartmentResolver:
        if self.department_resolver is None:
            raise RoleSyncError("Department sync is not configured")
        return self.department_resolver

    def _apply_department(
        self, user: UserRecord, department: Department, dry_run: bool
    ) -> SyncResult:
        previous = user.department

        if department == previous:
            return SyncResult(
                success=True,
                message="Department already up to date",
                previous_value=previous,
                new_value=department,
            )

        if dry_run:
            return SyncResult(
                success=True,
                message=f"Would set department to {department}",
                changed=True,
                previous_value=previous,
                new_value=department,
            )

        self._write_department(user, department)
        logger.info(f"Updated user {user.id} department: {previous} -> {department}")
        return SyncResult(
            success=True,
            message=f"Department set to {department}",
            changed=True,
            previous_value=previous,
            new_value=department,
        )

    def sync_department(
        self,
        actor: Actor | None,
        user_id: int,
        selection: Department | str | None = None,
        dry_run: bool = False,
    ) -> SyncResult:
        """Re-derive a user's primary department from the main guild.

        Requires the whitelist marker role in the fan guild. When the user
        holds several department roles and no ``selection`` is given,
        nothing is written and the result lists the candidates so the
        caller can ask the user and call again with their choice.

        Args:
            actor: The signed-in caller, None if not signed in
            user_id: Site user ID to sync
            selection: Department chosen by the user among the candidates
            dry_run: Resolve and compare but do not write
        """
        try:
            self._authorize(actor, user_id)
            user = self._load_linked_user(user_id)
            resolver = self._require_department_resolver()
            resolver.require_whitelisted(user.external_id)

            departments = resolver.require_departments(user.external_id)

            if selection is not None:
                chosen = Department.parse(selection)
                if chosen not in departments:
                    raise RoleSyncError(f"{chosen} is not one of your Discord departments")
            elif len(departments) == 1:
                chosen = departments[0]
            else:
                raise AmbiguousDepartmentError(departments)

            return self._apply_department(user, chosen, dry_run)
        except AmbiguousDepartmentError as e:
            logger.info(f"User {user_id} holds several departments: {e.candidates}")
            return SyncResult(success=False, message=e.message, candidates=e.candidates)
        except RoleSyncError as e:
            logger.warning(f"Department sync failed for user {user_id}: {e.message}")
            return SyncResult(success=False, message=e.message)
        except UnknownDepartmentError as e:
            return SyncResult(success=False, message=str(e))

    def update_primary_department(
        self, actor: Actor | None, user_id: int, department: Department | str
    ) -> SyncResult:
        """Set a user's primary department directly.

        Users may only change their own department this way.
        """
        try:
            if actor is None:
                raise NotAuthenticatedError()
            if actor.user_id != user_id:
                raise NotAuthorizedError("You can only update your own department")

            user = self._load_user(user_id)
            return self._apply_department(user, Department.parse(department), dry_run=False)
        except RoleSyncError as e:
            logger.warning(f"Department update failed for user {user_id}: {e.message}")
            return SyncResult(success=False, message=e.message)
        except UnknownDepartmentError as e:
            return SyncResult(success=False, message=str(e))


@contextmanager
def open_sync_service(
    store: UserStore,
    include_departments: bool = True,
    settings: Settings | None = None,
) -> Iterator[RoleSyncService]:
    """Build a RoleSyncService with Discord clients configured from the environment.

    Usage::

        with open_sync_service(JsonUserStore(path)) as service:
            result = service.sync_role(actor, 42)

    Raises:
        ValueError: If a required Discord credential is missing
    """
    settings = settings or get_settings()

    with ExitStack() as stack:
        community = stack.enter_context(DiscordClient(get_discord_credentials(), settings))
        role_resolver = RoleResolver(RoleFetcher(community), get_role_mapping())

        department_resolver = None
        if include_departments:
            main = stack.enter_context(DiscordClient(get_main_discord_credentials(), settings))
            fan_credentials, whitelist_role_id = get_fan_discord_credentials()
            fan = stack.enter_context(DiscordClient(fan_credentials, settings))
            department_resolver = DepartmentResolver(
                RoleFetcher(main),
                get_department_mapping(),
                whitelist_fetcher=RoleFetcher(fan),
                whitelist_role_id=whitelist_role_id,
            )

        yield RoleSyncService(store, role_resolver, department_resolver, settings=settings)
