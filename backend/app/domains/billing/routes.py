"""Billing: connect and project quotas for the current period."""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...components.billing.quota import get_quota_status
from ...deps import get_current_user, require_client
from ...models.billing import Package
from ...models.user import User
from ...platform.database import get_db
from ...schemas.billing import PackageResponse, QuotaResponse

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.get("/quotas", response_model=QuotaResponse)
def get_quotas(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client),
):
    quota = get_quota_status(db, current_user.id)
    db.commit()
    return QuotaResponse(
        package_name=quota.package_name,
        connects_limit=quota.connects_limit,
        connects_used=quota.connects_used,
        connects_remaining=quota.connects_remaining,
        projects_limit=quota.projects_limit,
        projects_used=quota.projects_used,
        projects_remaining=quota.projects_remaining,
        period_start=quota.period_start,
        period_end=quota.period_end,
    )


@router.get("/packages", response_model=List[PackageResponse])
def list_packages(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return db.query(Package).filter(Package.is_active.is_(True)).order_by(Package.price_usd.asc()).all()
