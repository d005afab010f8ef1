"""Scheduler-facing endpoints.

An external scheduler calls ``/cron/expire-candidates`` every minute. When
``CRON_SECRET`` is configured the call must carry it as a bearer token.
"""

import hmac
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from ...components.expiry.service import run_expiry_sweep
from ...deps import require_admin
from ...models.cron_run import CronRun
from ...models.user import User
from ...platform.config import settings
from ...platform.database import get_db
from ...schemas.cron import CronRunResponse, ExpirySweepResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/cron", tags=["Cron"])


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    expected = (settings.CRON_SECRET or "").strip()
    if not expected:
        return
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(token.strip(), expected):
        logger.warning("Rejected cron call with missing or invalid secret")
        raise HTTPException(status_code=401, detail="Unauthorized")


def _expire_candidates(db: Session) -> ExpirySweepResponse:
    try:
        result = run_expiry_sweep(db, trigger="http")
    except Exception:
        raise HTTPException(status_code=500, detail="Failed to expire candidates")
    return ExpirySweepResponse(
        success=True,
        data=result,
        message=f"Expired {result['expired_count']} candidates",
    )


@router.post("/expire-candidates", response_model=ExpirySweepResponse, dependencies=[Depends(verify_cron_secret)])
def expire_candidates(db: Session = Depends(get_db)):
    return _expire_candidates(db)


@router.get("/expire-candidates", response_model=ExpirySweepResponse, dependencies=[Depends(verify_cron_secret)])
def expire_candidates_get(db: Session = Depends(get_db)):
    return _expire_candidates(db)


@router.get("/runs", response_model=List[CronRunResponse])
def list_cron_runs(
    job: Optional[str] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    query = db.query(CronRun)
    if job:
        query = query.filter(CronRun.job == job)
    return query.order_by(CronRun.id.desc()).limit(limit).all()
