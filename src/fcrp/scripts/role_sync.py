#!/usr/bin/env python3
"""Sync site roles and departments from Discord.

Works on a JSON export of the user table (a list of
``{"id", "discordId", "role", "department"}`` records) and writes changes
back to the same file.
"""

import argparse
import logging
import sys
from pathlib import Path

from fcrp.roles.models import Actor, BulkSyncResult, Role, SyncResult
from fcrp.roles.permissions import format_role_display
from fcrp.roles.store import JsonUserStore
from fcrp.roles.sync import open_sync_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Silence noisy libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

# Command-line runs act with full privileges
SYSTEM_ACTOR = Actor(user_id=0, role=Role.WEBMASTER)


def _display(value) -> str:
    if value is None:
        return "None"
    return format_role_display(value)


def print_sync_result(user_id: int, result: SyncResult) -> None:
    """Print the outcome of a single-user sync."""
    status = "OK" if result.success else "FAILED"
    print(f"\n[{status}] User {user_id}: {result.message}")
    if result.changed:
        print(f"    {_display(result.previous_value)} -> {_display(result.new_value)}")
    if result.candidates:
        print("    Candidates:")
        for department in result.candidates:
            print(f"      - {department}")
        print("    Re-run with --select <DEPARTMENT> to choose one.")


def print_bulk_report(result: BulkSyncResult) -> None:
    """Print a summary report for a full role sync."""
    print("\n" + "=" * 70)
    print("DISCORD ROLE SYNC REPORT")
    print("=" * 70)
    print(f"\n  {result.message}")

    changed = {uid: r for uid, r in result.results.items() if r.success and r.changed}
    if changed:
        print(f"\n{'=' * 70}")
        print("UPDATED")
        print("=" * 70)
        for user_id, r in sorted(changed.items()):
            print(f"  ~ User {user_id}: {_display(r.previous_value)} -> {_display(r.new_value)}")

    if result.failed:
        print(f"\n{'=' * 70}")
        print("FAILED")
        print("=" * 70)
        for user_id in result.failed:
            print(f"  ! User {user_id}: {result.results[user_id].message}")


def run_sync(
    users_path: Path,
    user_id: int | None = None,
    sync_all: bool = False,
    departments: bool = False,
    selection: str | None = None,
    dry_run: bool = False,
) -> int:
    """Run the requested sync and print the results.

    Returns:
        Process exit code (0 on success, 1 on failure)
    """
    store = JsonUserStore(users_path)

    with open_sync_service(store, include_departments=departments) as service:
        if sync_all:
            bulk = service.sync_all_roles(SYSTEM_ACTOR, dry_run=dry_run)
            print_bulk_report(bulk)
            result_ok = bulk.success
        elif departments:
            result = service.sync_department(
                SYSTEM_ACTOR, user_id, selection=selection, dry_run=dry_run
            )
            print_sync_result(user_id, result)
            result_ok = result.success
        else:
            result = service.sync_role(SYSTEM_ACTOR, user_id, dry_run=dry_run)
            print_sync_result(user_id, result)
            result_ok = result.success

    if dry_run:
        print("\n*** DRY RUN - No changes made ***\n")

    return 0 if result_ok else 1


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Sync site roles and departments from Discord",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--users",
        type=Path,
        required=True,
        help="JSON file with the user records to sync",
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument(
        "--user-id",
        type=int,
        help="Sync a single user by site user ID",
    )
    target.add_argument(
        "--all",
        action="store_true",
        help="Sync roles for every non-admin user with a Discord ID",
    )
    parser.add_argument(
        "--departments",
        action="store_true",
        help="Sync the primary department instead of the role",
    )
    parser.add_argument(
        "--select",
        type=str,
        help="Primary department to use when several apply",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would change without making changes",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.all and args.departments:
        parser.error("--departments syncs one user at a time; use --user-id")
    if args.select and not args.departments:
        parser.error("--select requires --departments")

    try:
        return run_sync(
            users_path=args.users,
            user_id=args.user_id,
            sync_all=args.all,
            departments=args.departments,
            selection=args.select,
            dry_run=args.dry_run,
        )
    except (FileNotFoundError, ValueError) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
