"""Permission checks on already-resolved roles and departments.

Every function here is pure and total. A ``None`` role means the caller
is not signed in, and every check answers False for it.
"""

from enum import IntEnum

from fcrp.roles.models import Department, Role

# Admin panel access
ADMIN_ROLES: frozenset[Role] = frozenset(
    {
        Role.ADMIN,
        Role.MODERATOR,
        Role.SPECIAL_ADVISOR,
        Role.SENIOR_ADMIN,
        Role.HEAD_ADMIN,
        Role.WEBMASTER,
    }
)

# Staff panel access
STAFF_ROLES: frozenset[Role] = frozenset({Role.STAFF, Role.SENIOR_STAFF}) | ADMIN_ROLES

# May override department decisions (review boards, application templates)
OVERRIDE_ROLES: frozenset[Role] = frozenset(
    {Role.SPECIAL_ADVISOR, Role.SENIOR_ADMIN, Role.HEAD_ADMIN, Role.WEBMASTER}
)

# May post in the announcements category
ANNOUNCEMENT_ROLES: frozenset[Role] = frozenset(
    {Role.SPECIAL_ADVISOR, Role.SENIOR_ADMIN, Role.HEAD_ADMIN}
)

# Departments that run recruitment and retention
RNR_DEPARTMENTS: frozenset[Department] = frozenset(
    {Department.RNR, Department.RNR_ADMINISTRATION, Department.RNR_STAFF}
)


class Category(IntEnum):
    """Forum categories with posting restrictions."""

    ANNOUNCEMENTS = 1
    RECRUITMENT = 2


CATEGORY_SLUGS: dict[str, Category] = {
    "announcements": Category.ANNOUNCEMENTS,
    "recruitment": Category.RECRUITMENT,
}

# Who may post in each restricted category. A category not listed here is
# open to any signed-in user.
CATEGORY_RULES: dict[Category, tuple[frozenset[Role], frozenset[Department]]] = {
    Category.ANNOUNCEMENTS: (ANNOUNCEMENT_ROLES, frozenset()),
    Category.RECRUITMENT: (frozenset(), frozenset({Department.RNR_ADMINISTRATION})),
}


def has_staff_permission(role: Role | None) -> bool:
    """Check if the role can open the staff panel."""
    return role in STAFF_ROLES


def has_admin_permission(role: Role | None) -> bool:
    """Check if the role can open the admin panel."""
    return role in ADMIN_ROLES


def can_override(role: Role | None) -> bool:
    """Check if the role may override department-level decisions."""
    return role in OVERRIDE_ROLES


def has_review_permission(role: Role | None, department: Department | None = None) -> bool:
    """Check if the user may review department applications.

    Senior roles always can; otherwise the user must belong to a
    recruitment and retention department.
    """
    if role is None:
        return False
    return can_override(role) or department in RNR_DEPARTMENTS


def _category_key(category_id: int | str) -> Category | int | str:
    if isinstance(category_id, str):
        slug = category_id.strip().lower()
        if slug in CATEGORY_SLUGS:
            return CATEGORY_SLUGS[slug]
        if slug.isdecimal():
            category_id = int(slug)
        else:
            return slug
    try:
        return Category(category_id)
    except ValueError:
        return category_id


def can_post_in_category(
    category_id: int | str,
    role: Role | None,
    department: Department | None = None,
) -> bool:
    """Check if a user may start threads or announcements in a category.

    Args:
        category_id: Numeric category ID or its slug ("announcements", "recruitment")
        role: The user's resolved role, None if not signed in
        department: The user's primary department

    Returns:
        True if the role or department is allowed in the category
    """
    if role is None:
        return False

    rule = CATEGORY_RULES.get(_category_key(category_id))
    if rule is None:
        return True

    allowed_roles, allowed_departments = rule
    return role in allowed_roles or department in allowed_departments


def can_assign_role(actor_role: Role | None, target_role: Role | None) -> bool:
    """Check if actor_role may hand out target_role (strictly lower roles only)."""
    if actor_role is None or target_role is None:
        return False
    return target_role < actor_role


def assignable_roles(actor_role: Role | None) -> list[Role]:
    """Roles the actor may assign, highest first."""
    if actor_role is None:
        return []
    return sorted((role for role in Role if role < actor_role), reverse=True)


def format_role_display(role: Role | str) -> str:
    """Human-readable role name ("SENIOR_STAFF" -> "Senior Staff")."""
    return " ".join(word.capitalize() for word in str(role).split("_"))
