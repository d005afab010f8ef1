"""
Shared dependencies: the authenticated user plus role guards.
"""

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from .api.v1.users_fastapi import current_active_user as get_current_user
from .models.developer import DeveloperProfile
from .models.user import USER_ROLE_CLIENT, USER_ROLE_DEVELOPER, User
from .platform.database import get_db


def require_client(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != USER_ROLE_CLIENT:
        raise HTTPException(status_code=403, detail="Client account required")
    return current_user


def require_developer(current_user: User = Depends(get_current_user)) -> User:
    if current_user.role != USER_ROLE_DEVELOPER:
        raise HTTPException(status_code=403, detail="Developer account required")
    return current_user


def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not current_user.is_superuser:
        raise HTTPException(status_code=403, detail="Admin access required")
    return current_user


def get_developer_profile(
    current_user: User = Depends(require_developer),
    db: Session = Depends(get_db),
) -> DeveloperProfile:
    profile = db.query(DeveloperProfile).filter(DeveloperProfile.user_id == current_user.id).first()
    if profile is None:
        raise HTTPException(status_code=404, detail="Developer profile not found")
    return profile


__all__ = ["get_current_user", "require_client", "require_developer", "require_admin", "get_developer_profile"]
