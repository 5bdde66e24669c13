"""
User administration endpoints (manageUsers permission).

Exposed endpoints:
- GET /api/users - List users
- POST /api/users - Create a user with a role
- PUT /api/users/{user_id}/role - Change a user's role
- DELETE /api/users/{user_id} - Delete a user
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from pydantic import BaseModel, EmailStr

from apps.api.dependencies import get_auth_manager, http_error
from archive.errors import ArchiveError
from auth.auth_manager import AuthManager
from auth.models import User
from auth.rbac_dependencies import require_permission
from security.policy.rbac import Permission, Role

router = APIRouter(
    prefix="/api/users",
    tags=["users"],
    dependencies=[Depends(require_permission(Permission.MANAGE_USERS))],
)


class CreateUserRequest(BaseModel):
    name: str
    email: EmailStr
    password: str
    role: Role = Role.READER


class RoleUpdateRequest(BaseModel):
    role: Role


@router.get("", response_model=List[User])
async def list_users(manager: AuthManager = Depends(get_auth_manager)):
    try:
        return manager.list_users()
    except ArchiveError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"[USERS] List error: {e}")
        raise HTTPException(status_code=500, detail="Failed to list users")


@router.post("", response_model=User, status_code=201)
async def create_user(data: CreateUserRequest, manager: AuthManager = Depends(get_auth_manager)):
    try:
        return manager.create_user(data.name, data.email, data.password, data.role)
    except ArchiveError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"[USERS] Create error: {e}")
        raise HTTPException(status_code=500, detail="Failed to create user")


@router.put("/{user_id}/role", response_model=User)
async def update_user_role(
    user_id: str,
    data: RoleUpdateRequest,
    manager: AuthManager = Depends(get_auth_manager),
):
    try:
        return manager.update_user_role(user_id, data.role)
    except ArchiveError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"[USERS] Role update error: {e}")
        raise HTTPException(status_code=500, detail="Failed to update role")


@router.delete("/{user_id}")
async def delete_user(user_id: str, manager: AuthManager = Depends(get_auth_manager)):
    try:
        manager.delete_user(user_id)
        return {"success": True, "message": "User deleted"}
    except ArchiveError as e:
        raise http_error(e)
    except Exception as e:
        logger.error(f"[USERS] Delete error: {e}")
        raise HTTPException(status_code=500, detail="Failed to delete user")
