"""Role and department resolution, permission checks, and sync."""

from fcrp.roles.models import (
    Actor,
    BulkSyncResult,
    Department,
    ExternalRoleId,
    Role,
    SyncResult,
    UserRecord,
)
from fcrp.roles.permissions import (
    Category,
    assignable_roles,
    can_assign_role,
    can_override,
    can_post_in_category,
    format_role_display,
    has_admin_permission,
    has_review_permission,
    has_staff_permission,
)

__all__ = [
    "Actor",
    "BulkSyncResult",
    "Category",
    "Department",
    "ExternalRoleId",
    "Role",
    "SyncResult",
    "UserRecord",
    "assignable_roles",
    "can_assign_role",
    "can_override",
    "can_post_in_category",
    "format_role_display",
    "has_admin_permission",
    "has_review_permission",
    "has_staff_permission",
]
