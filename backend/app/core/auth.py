"""
Authentication dependencies for KRA Assist Backend
Validates Supabase access tokens (HS256 JWTs) and provides user context
"""
import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from pydantic import BaseModel

from app.core.config import settings

logger = logging.getLogger(__name__)

# Security scheme for bearer tokens
security = HTTPBearer(auto_error=False)

SUPABASE_JWT_ALGORITHM = "HS256"
SUPABASE_JWT_AUDIENCE = "authenticated"


class AuthUser(BaseModel):
    """User data extracted from a Supabase access token"""
    id: str
    email: Optional[str] = None
    role: str = "user"


def decode_supabase_token(token: str) -> dict:
    """
    Decode and validate a Supabase access token.

    Supabase access token payload:
    {
        "sub": "<auth.users.id>",
        "email": "owner@duka.co.ke",
        "aud": "authenticated",
        "role": "authenticated",
        "exp": 1234567890,
        ...
    }
    """
    try:
        return jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=[SUPABASE_JWT_ALGORITHM],
            audience=SUPABASE_JWT_AUDIENCE,
        )
    except JWTError as e:
        if "expired" in str(e).lower():
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            )
        logger.warning(f"Rejected access token: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid JWT",
            headers={"WWW-Authenticate": "Bearer"},
        )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> AuthUser:
    """
    Dependency that extracts and validates the current user from the bearer token.

    Usage:
        @router.get("/profile")
        async def read_profile(user: AuthUser = Depends(get_current_user)):
            ...
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = decode_supabase_token(credentials.credentials)

    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token payload: missing subject",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return AuthUser(id=user_id, email=payload.get("email"))


def require_role(required_role: str):
    """
    Dependency factory for role-based access control.

    Roles are stored in the user_roles table, not in the token, so a role
    change takes effect on the next request.

    Usage:
        @router.delete("/plans/{plan_id}")
        async def delete_plan(plan_id: str, user: AuthUser = Depends(require_role("admin"))):
            ...
    """
    async def role_checker(user: AuthUser = Depends(get_current_user)) -> AuthUser:
        from app.repositories.profile_repository import ProfileRepository

        if not ProfileRepository().has_role(user.id, required_role):
            logger.warning(f"User {user.id} denied: requires role {required_role}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{required_role.capitalize()} access required",
            )

        return user.model_copy(update={"role": required_role})

    return role_checker


require_admin = require_role("admin")
