"""Deadline sweep for auto-rotation offers.

The sweep is idempotent: it only touches ``pending`` rows whose deadline
has passed, so running it twice in a row expires nothing the second time.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session

from ...models.assignment import CANDIDATE_STATUS_TEXT, AssignmentCandidate, BatchType, CandidateStatus
from ...models.cron_run import CronRun
from ...models.project import Project, ProjectStatus
from ...platform.config import settings
from ...platform.request_context import current_or_new_request_id
from ...shared.utils import isoformat_utc, utcnow

logger = logging.getLogger(__name__)

EXPIRE_CANDIDATES_JOB = "expire-candidates"
CLEANUP_CANDIDATES_JOB = "cleanup-candidates"


def expire_pending_candidates(db: Session, now: datetime | None = None) -> dict:
    """Mark overdue pending auto-rotation candidates as expired."""
    now = now or utcnow()
    try:
        result = db.execute(
            update(AssignmentCandidate)
            .where(
                AssignmentCandidate.response_status == CandidateStatus.PENDING,
                AssignmentCandidate.source == BatchType.AUTO_ROTATION,
                AssignmentCandidate.acceptance_deadline.isnot(None),
                AssignmentCandidate.acceptance_deadline < now,
            )
            .values(
                response_status=CandidateStatus.EXPIRED,
                responded_at=now,
                status_text_for_client=CANDIDATE_STATUS_TEXT[CandidateStatus.EXPIRED],
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    expired_count = result.rowcount or 0
    if expired_count:
        logger.info("Expired %d pending candidates", expired_count)
    return {"expired_count": expired_count, "processed_at": isoformat_utc(now)}


def cleanup_old_candidates(db: Session, older_than_days: int | None = None, now: datetime | None = None) -> int:
    """Delete expired and invalidated candidates assigned before the retention cutoff.

    Only projects that can no longer be claimed are cleaned: on an open
    project those rows still keep developers out of later batches.
    """
    days = older_than_days if older_than_days is not None else settings.ROTATION_CANDIDATE_RETENTION_DAYS
    cutoff = (now or utcnow()) - timedelta(days=days)
    try:
        result = db.execute(
            delete(AssignmentCandidate)
            .where(
                AssignmentCandidate.response_status.in_((CandidateStatus.EXPIRED, CandidateStatus.INVALIDATED)),
                AssignmentCandidate.assigned_at < cutoff,
                AssignmentCandidate.project_id.in_(
                    select(Project.id).where(Project.status.not_in(ProjectStatus.CLAIMABLE))
                ),
            )
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    deleted = result.rowcount or 0
    logger.info("Deleted %d old candidates (cutoff=%s)", deleted, cutoff.isoformat())
    return deleted


def run_recorded_job(db: Session, job: str, trigger: str, func, *args, **kwargs):
    """Run ``func(db, ...)`` inside a ``CronRun`` record (started -> succeeded | failed)."""
    correlation_id = current_or_new_request_id()
    run = CronRun(
        job=job,
        status="started",
        details={"correlation_id": correlation_id, "trigger": trigger},
        started_at=utcnow(),
    )
    db.add(run)
    db.commit()
    run_id = run.id

    try:
        result = func(db, *args, **kwargs)
    except Exception as exc:
        db.rollback()
        run = db.get(CronRun, run_id)
        run.status = "failed"
        run.success = False
        run.finished_at = utcnow()
        run.details = {"correlation_id": correlation_id, "trigger": trigger, "error": str(exc)}
        db.commit()
        logger.exception("Cron job %s failed (run_id=%s)", job, run_id, extra={"job": job, "run_id": run_id})
        raise

    run = db.get(CronRun, run_id)
    run.status = "succeeded"
    run.success = True
    run.finished_at = utcnow()
    run.details = {"correlation_id": correlation_id, "trigger": trigger, "result": result}
    db.commit()
    return result


def run_expiry_sweep(db: Session, trigger: str = "http") -> dict:
    return run_recorded_job(db, EXPIRE_CANDIDATES_JOB, trigger, expire_pending_candidates)


def run_candidate_cleanup(db: Session, trigger: str = "celery", older_than_days: int | None = None) -> int:
    return run_recorded_job(
        db, CLEANUP_CANDIDATES_JOB, trigger, cleanup_old_candidates, older_than_days=older_than_days
    )
