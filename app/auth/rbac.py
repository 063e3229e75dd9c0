from typing import Dict, FrozenSet, Optional

from fastapi import Depends, HTTPException, status

from app.auth.dependencies import get_current_user
from app.auth.schemas import CurrentUser
from app.core.enums import UserRole

ADMIN = UserRole.ADMIN.value
EXECUTIVE_CHEF = UserRole.EXECUTIVE_CHEF.value
MENTOR = UserRole.MENTOR.value
PROFESSOR = UserRole.PROFESSOR.value
STUDENT = UserRole.STUDENT.value

# Capability -> roles holding it. Single source for every role predicate below.
CAPABILITIES: Dict[str, FrozenSet[str]] = {
    "admin": frozenset({ADMIN}),
    "access_student": frozenset({ADMIN, EXECUTIVE_CHEF, MENTOR, PROFESSOR}),
    "manage_students": frozenset({ADMIN, MENTOR}),
    "access_accounting": frozenset({ADMIN}),
    "manage_packs": frozenset({ADMIN}),
    "create_events": frozenset({ADMIN, MENTOR, PROFESSOR}),
}

# Admins can impersonate every role except other admins.
IMPERSONATION_TARGET_ROLES: FrozenSet[str] = frozenset({STUDENT, MENTOR, PROFESSOR, EXECUTIVE_CHEF})


def has_capability(role: Optional[str], capability: str) -> bool:
    if not role:
        return False
    return role in CAPABILITIES.get(capability, frozenset())


def is_admin(role: Optional[str]) -> bool:
    return role == ADMIN


def is_executive_chef(role: Optional[str]) -> bool:
    return role == EXECUTIVE_CHEF


def is_mentor(role: Optional[str]) -> bool:
    return role == MENTOR


def is_professor(role: Optional[str]) -> bool:
    return role == PROFESSOR


def is_student(role: Optional[str]) -> bool:
    return role == STUDENT


def can_access_student(role: Optional[str]) -> bool:
    return has_capability(role, "access_student")


def can_manage_students(role: Optional[str]) -> bool:
    return has_capability(role, "manage_students")


def can_access_accounting(role: Optional[str]) -> bool:
    return has_capability(role, "access_accounting")


def can_manage_packs(role: Optional[str]) -> bool:
    return has_capability(role, "manage_packs")


def can_create_events(role: Optional[str]) -> bool:
    return has_capability(role, "create_events")


def is_valid_impersonation_target(role: Optional[str]) -> bool:
    return role in IMPERSONATION_TARGET_ROLES


async def require_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Require ADMIN role."""
    if not is_admin(current_user.role):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden - Admin access required",
        )
    return current_user


def require_capability(capability: str):
    """
    Dependency factory to enforce a capability from the policy table.

    Example:
        Depends(require_capability("access_accounting"))
    """
    if capability not in CAPABILITIES:
        raise ValueError(f"Unknown capability: {capability}")

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not has_capability(current_user.role, capability):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _checker
