"""
FastAPI authentication endpoints.

Exposed endpoints:
- POST /api/auth/register - Create an account (first account becomes owner)
- POST /api/auth/login - Exchange credentials for a bearer token
- POST /api/auth/logout - Revoke the current bearer token
- GET /api/auth/me - Current user and permissions
"""

from fastapi import APIRouter, Depends, HTTPException, Request
from loguru import logger
from pydantic import BaseModel, EmailStr, Field

from apps.api.dependencies import (
    ArchiveContainer,
    get_bearer_token,
    get_container,
    get_current_user,
    http_error,
)
from archive.errors import ArchiveError
from auth.models import User
from auth.session import AuthSession
from security.policy.rbac import permissions_for

router = APIRouter(prefix="/api/auth", tags=["auth"])

# ==================== REQUEST MODELS ====================

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str


class LoginRequest(BaseModel):
    email: str
    password: str

# ==================== HELPER FUNCTIONS ====================

def get_client_ip(request: Request) -> str:
    """Extract client IP from request"""
    if request.client:
        return request.client.host
    return "unknown"


def _token_response(container: ArchiveContainer, user: User) -> dict:
    return {
        "success": True,
        "access_token": container.auth.issue_token(user),
        "token_type": "bearer",
        "expires_in": container.auth.jwt_expiry,
        "user": user.model_dump(mode="json"),
    }

# ==================== REGISTRATION ====================

@router.post("/register", status_code=201)
async def register(
    data: RegisterRequest,
    request: Request,
    container: ArchiveContainer = Depends(get_container),
):
    """Register a new user and log them in."""
    try:
        user = container.auth.register(data.name, data.email, data.password)
        logger.info(f"User registered: {data.email} from {get_client_ip(request)}")
        return _token_response(container, user)

    except ArchiveError as e:
        logger.warning(f"[REGISTER] Rejected {data.email}: {e.message}")
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Registration error: {e}")
        raise HTTPException(status_code=500, detail="Registration failed")

# ==================== LOGIN & LOGOUT ====================

@router.post("/login")
async def login(
    data: LoginRequest,
    request: Request,
    container: ArchiveContainer = Depends(get_container),
):
    """Login user and return a bearer access token."""
    try:
        manager = container.auth.for_session(AuthSession.for_user(None))
        user = manager.login(data.email, data.password)
        logger.info(f"User logged in: {data.email} from {get_client_ip(request)}")
        return _token_response(container, user)

    except ArchiveError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Login error: {e}")
        raise HTTPException(status_code=500, detail="Login failed")


@router.post("/logout")
async def logout(
    token: str = Depends(get_bearer_token),
    user: User = Depends(get_current_user),
    container: ArchiveContainer = Depends(get_container),
):
    """Logout user and revoke the presented token."""
    try:
        container.blacklist.revoke(token, ttl=container.auth.jwt_expiry)
        container.auth.for_session(AuthSession.for_user(user)).logout()
        logger.info(f"User logged out: {user.id}")
        return {"success": True, "message": "Logged out successfully"}

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Logout error: {e}")
        raise HTTPException(status_code=500, detail="Logout failed")


@router.get("/me")
async def me(user: User = Depends(get_current_user)):
    """Current user with the permissions granted by their role."""
    return {
        "user": user.model_dump(mode="json"),
        "permissions": sorted(p.value for p in permissions_for(user.role)),
    }
