"""User roles and permission hierarchy.

Role Hierarchy (descending permissions):
- SUPER_ADMIN: Tenant owner; everything, including session administration
- ADMIN: Session administration and audit log access
- INSTRUCTOR: Courses, schedules, attendance
- STAFF: Day-to-day operations

┌──────────────────────┬─────────────┬───────┬────────────┬───────┐
│ Action               │ SUPER_ADMIN │ ADMIN │ INSTRUCTOR │ STAFF │
├──────────────────────┼─────────────┼───────┼────────────┼───────┤
│ Revoke any session   │      ✓      │   ✓   │            │       │
│ View audit logs      │      ✓      │   ✓   │            │       │
│ Manage own sessions  │      ✓      │   ✓   │     ✓      │   ✓   │
└──────────────────────┴─────────────┴───────┴────────────┴───────┘
"""

from enum import Enum
from typing import Optional, Set


class UserRole(str, Enum):
    """User roles. Values are the strings carried in the JWT ``role`` claim."""
    SUPER_ADMIN = "super_admin"
    ADMIN = "admin"
    INSTRUCTOR = "instructor"
    STAFF = "staff"


# Role hierarchy: Each role includes permissions of all roles below it
ROLE_HIERARCHY = {
    UserRole.SUPER_ADMIN: {UserRole.SUPER_ADMIN, UserRole.ADMIN, UserRole.INSTRUCTOR, UserRole.STAFF},
    UserRole.ADMIN: {UserRole.ADMIN, UserRole.INSTRUCTOR, UserRole.STAFF},
    UserRole.INSTRUCTOR: {UserRole.INSTRUCTOR, UserRole.STAFF},
    UserRole.STAFF: {UserRole.STAFF},
}


def parse_role(value: Optional[str]) -> Optional[UserRole]:
    """Map a claim value to a role, None for unknown values."""
    try:
        return UserRole(str(value).lower())
    except ValueError:
        return None


def has_permission(user_role: Optional[UserRole], required_role: UserRole) -> bool:
    """Check if a user role satisfies a required role.

    Examples:
        >>> has_permission(UserRole.SUPER_ADMIN, UserRole.ADMIN)
        True
        >>> has_permission(UserRole.STAFF, UserRole.ADMIN)
        False
        >>> has_permission(None, UserRole.STAFF)
        False
    """
    if user_role is None:
        return False
    return required_role in ROLE_HIERARCHY.get(user_role, set())


def get_allowed_roles(required_role: UserRole) -> Set[UserRole]:
    """Get all roles that satisfy ``required_role``.

    Example:
        >>> sorted(r.value for r in get_allowed_roles(UserRole.ADMIN))
        ['admin', 'super_admin']
    """
    return {role for role, permissions in ROLE_HIERARCHY.items() if required_role in permissions}
