"""Admin moderation of developer profiles."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...deps import require_admin
from ...models.developer import ApprovalStatus, DeveloperProfile
from ...models.user import User
from ...platform.database import get_db
from ...schemas.developer import DeveloperApprovalUpdate, DeveloperProfileResponse
from ...shared.utils import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.get("/developers", response_model=List[DeveloperProfileResponse])
def list_developers(
    approval_status: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    query = db.query(DeveloperProfile)
    if approval_status:
        if approval_status not in ApprovalStatus.ALL:
            raise HTTPException(status_code=400, detail="Invalid approval_status filter")
        query = query.filter(DeveloperProfile.admin_approval_status == approval_status)
    return query.order_by(DeveloperProfile.id.asc()).offset(offset).limit(limit).all()


@router.patch("/developers/{developer_id}/approval", response_model=DeveloperProfileResponse)
def update_developer_approval(
    developer_id: int,
    data: DeveloperApprovalUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    profile = db.get(DeveloperProfile, developer_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Developer not found")

    profile.admin_approval_status = data.admin_approval_status
    if data.admin_approval_status == ApprovalStatus.APPROVED:
        profile.approved_at = profile.approved_at or utcnow()
    if data.whatsapp_verified is not None:
        profile.whatsapp_verified = data.whatsapp_verified
    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(profile)
    logger.info(
        "Developer approval updated developer_id=%s status=%s by admin_id=%s",
        profile.id,
        profile.admin_approval_status,
        current_user.id,
    )
    return profile
