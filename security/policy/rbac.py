"""
Role-Based Access Control (RBAC) system.

Roles (highest to lowest privilege):
  - owner: Full system access, including assigning owner/admin roles
  - admin: Full access except owner-only actions
  - archivist: Edits and deletes archive records, cannot create documents
  - reader: Read-only access

Permissions:
  - createDocument, editDocument, readDocument, deleteDocument
  - manageUsers, assignElevatedRoles

Every action consults the single POLICY table once. Decisions are pure
functions of (role, permission) and never depend on the targeted entity.

Classes:
  - Role: Role enum with privilege ordering
  - Permission: Permission enum
  - AccessDecision: Explicit allow/deny result
  - PermissionChecker: Policy lookup and enforcement
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Union

from loguru import logger

from archive.errors import PermissionDeniedError, ValidationFailedError


class Role(str, Enum):
    OWNER = "owner"
    ADMIN = "admin"
    ARCHIVIST = "archivist"
    READER = "reader"

    @property
    def rank(self) -> int:
        return _ROLE_RANK[self]

    @property
    def is_elevated(self) -> bool:
        return self in (Role.OWNER, Role.ADMIN)

    @classmethod
    def parse(cls, value: Union[str, "Role"]) -> "Role":
        if isinstance(value, Role):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationFailedError(
                f"Unknown role '{value}'. Must be one of: {', '.join(r.value for r in cls)}"
            )


_ROLE_RANK = {Role.OWNER: 4, Role.ADMIN: 3, Role.ARCHIVIST: 2, Role.READER: 1}


class Permission(str, Enum):
    CREATE_DOCUMENT = "createDocument"
    EDIT_DOCUMENT = "editDocument"
    READ_DOCUMENT = "readDocument"
    DELETE_DOCUMENT = "deleteDocument"
    MANAGE_USERS = "manageUsers"
    ASSIGN_ELEVATED_ROLES = "assignElevatedRoles"


POLICY: Dict[Role, FrozenSet[Permission]] = {
    Role.OWNER: frozenset(Permission),
    Role.ADMIN: frozenset(Permission) - {Permission.ASSIGN_ELEVATED_ROLES},
    Role.ARCHIVIST: frozenset({
        Permission.EDIT_DOCUMENT,
        Permission.READ_DOCUMENT,
        Permission.DELETE_DOCUMENT,
    }),
    Role.READER: frozenset({Permission.READ_DOCUMENT}),
}


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    role: Optional[Role]
    permission: Permission
    reason: str

    def __bool__(self) -> bool:
        return self.allowed


def has_permission(role: Optional[Union[Role, str]], permission: Union[Permission, str]) -> bool:
    """Pure policy lookup. No role means no permissions."""
    if role is None:
        return False
    return Permission(permission) in POLICY.get(Role.parse(role), frozenset())


def permissions_for(role: Optional[Union[Role, str]]) -> FrozenSet[Permission]:
    if role is None:
        return frozenset()
    return POLICY[Role.parse(role)]


class PermissionChecker:
    """Evaluates the policy table and raises on denied actions."""

    def __init__(self, policy: Dict[Role, FrozenSet[Permission]] = None):
        self._policy = policy or POLICY

    def check(self, role: Optional[Union[Role, str]], permission: Union[Permission, str]) -> AccessDecision:
        permission = Permission(permission)
        if role is None:
            return AccessDecision(False, None, permission, "not authenticated")

        role = Role.parse(role)
        if permission in self._policy.get(role, frozenset()):
            return AccessDecision(True, role, permission, "granted by policy")
        return AccessDecision(False, role, permission, f"role '{role.value}' lacks '{permission.value}'")

    def enforce(
        self,
        role: Optional[Union[Role, str]],
        permission: Union[Permission, str],
        action: str = None,
    ) -> AccessDecision:
        """Return the decision if allowed, otherwise raise PermissionDeniedError."""
        decision = self.check(role, permission)
        if not decision.allowed:
            logger.warning(f"[RBAC] Denied {action or decision.permission.value}: {decision.reason}")
            raise PermissionDeniedError(
                f"Permission denied: {action or decision.permission.value}",
                detail={"permission": decision.permission.value, "reason": decision.reason},
            )
        return decision

    def can_manage_role(self, actor_role: Optional[Union[Role, str]], target_role: Union[Role, str]) -> bool:
        """
        Whether actor may assign target_role, or edit/delete a user holding it.

        Owner and admin roles are reserved to actors with assignElevatedRoles.
        """
        if not self.check(actor_role, Permission.MANAGE_USERS).allowed:
            return False
        if Role.parse(target_role).is_elevated:
            return self.check(actor_role, Permission.ASSIGN_ELEVATED_ROLES).allowed
        return True


permission_checker = PermissionChecker()
