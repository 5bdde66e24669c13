"""
Role-Based Access Control (RBAC) dependencies for FastAPI.
Reusable dependency functions that guard routes with permission checks
before the service layer runs.
"""

from fastapi import Depends, HTTPException
from loguru import logger

from apps.api.dependencies import get_current_user
from auth.models import User
from security.policy.rbac import Permission, permission_checker


def require_permission(required_permission: Permission):
    """
    Dependency factory: Require specific permission.
    """
    async def _require_permission(user: User = Depends(get_current_user)) -> User:
        decision = permission_checker.check(user.role, required_permission)
        if not decision.allowed:
            logger.warning(f"User {user.id} denied permission: {required_permission.value}")
            raise HTTPException(
                status_code=403,
                detail=f"Permission '{required_permission.value}' required"
            )
        return user

    return _require_permission
