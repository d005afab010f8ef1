import logging
from .celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def send_candidate_invitations(self, candidate_ids: list[int], request_id: str | None = None):
    """Email developers that landed in a new batch or received a manual invite."""
    from ..components.notifications.service import send_candidate_invitations_sync
    from ..platform.database import SessionLocal

    db = SessionLocal()
    try:
        sent = send_candidate_invitations_sync(db, candidate_ids)
        logger.info(f"Sent {sent} assignment invitations", extra={"request_id": request_id or self.request.id})
        return {"sent": sent}
    except Exception as exc:
        logger.error(f"Failed to send assignment invitations: {exc}", extra={"request_id": request_id or self.request.id})
        raise self.retry(exc=exc)
    finally:
        db.close()


@celery_app.task(bind=True, max_retries=3, default_retry_delay=60)
def send_acceptance_notification(self, candidate_id: int, request_id: str | None = None):
    """Tell the client that a developer accepted their project."""
    from ..components.notifications.service import send_acceptance_notification_sync
    from ..platform.database import SessionLocal

    db = SessionLocal()
    try:
        sent = send_acceptance_notification_sync(db, candidate_id)
        return {"sent": sent}
    except Exception as exc:
        logger.error(
            f"Failed to send acceptance notification for candidate {candidate_id}: {exc}",
            extra={"request_id": request_id or self.request.id},
        )
        raise self.retry(exc=exc)
    finally:
        db.close()


@celery_app.task
def expire_candidates():
    """Periodic task: expire overdue pending auto-rotation candidates."""
    from ..components.expiry.service import run_expiry_sweep
    from ..platform.database import SessionLocal

    db = SessionLocal()
    try:
        return run_expiry_sweep(db, trigger="celery")
    except Exception as e:
        logger.error(f"Expiry sweep failed: {e}")
        return {"expired_count": 0, "error": str(e)}
    finally:
        db.close()


@celery_app.task
def cleanup_old_candidates(older_than_days: int | None = None):
    """Periodic task: delete long-expired and invalidated candidates."""
    from ..components.expiry.service import run_candidate_cleanup
    from ..platform.database import SessionLocal

    db = SessionLocal()
    try:
        deleted = run_candidate_cleanup(db, trigger="celery", older_than_days=older_than_days)
        logger.info(f"Cleaned up {deleted} old candidates")
        return {"deleted": deleted}
    except Exception as e:
        logger.error(f"Candidate cleanup failed: {e}")
        return {"deleted": 0, "error": str(e)}
    finally:
        db.close()
