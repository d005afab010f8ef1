"""Assignment notification helpers.

``dispatch_*`` run after the database commit: synchronously when Celery is
disabled in MVP mode, otherwise through the Celery tasks. Delivery
problems are logged and never surface to the API caller.
"""

import logging
from typing import Iterable

from sqlalchemy.orm import Session, joinedload

from ...models.assignment import AssignmentCandidate, CandidateStatus
from ...models.developer import DeveloperProfile
from ...platform.config import settings
from ...platform.request_context import get_request_id
from ...shared.utils import ensure_utc
from .email_client import EmailService

logger = logging.getLogger(__name__)


def _email_service() -> EmailService | None:
    if settings.NOTIFICATIONS_DISABLE_SENDING:
        return None
    if not (settings.RESEND_API_KEY or "").strip():
        return None
    return EmailService(api_key=settings.RESEND_API_KEY, from_email=settings.EMAIL_FROM)


def _deadline_text(candidate: AssignmentCandidate) -> str | None:
    deadline = ensure_utc(candidate.acceptance_deadline)
    if deadline is None:
        return None
    return f"at {deadline.strftime('%H:%M')} UTC"


def send_candidate_invitations_sync(db: Session, candidate_ids: Iterable[int]) -> int:
    """Email every still-pending candidate; returns how many emails went out."""
    email_svc = _email_service()
    if email_svc is None:
        return 0
    candidates = (
        db.query(AssignmentCandidate)
        .options(
            joinedload(AssignmentCandidate.developer).joinedload(DeveloperProfile.user),
            joinedload(AssignmentCandidate.project),
        )
        .filter(
            AssignmentCandidate.id.in_(list(candidate_ids)),
            AssignmentCandidate.response_status == CandidateStatus.PENDING,
        )
        .all()
    )
    sent = 0
    for candidate in candidates:
        user = candidate.developer.user if candidate.developer else None
        if user is None or not user.email:
            continue
        result = email_svc.send_assignment_invitation(
            developer_email=user.email,
            developer_name=user.full_name or user.email,
            project_title=candidate.project.title,
            invitation_link=f"{settings.FRONTEND_URL}/developer/invitations/{candidate.id}",
            deadline_text=_deadline_text(candidate),
            client_message=candidate.client_message,
        )
        if result["success"]:
            sent += 1
    return sent


def send_acceptance_notification_sync(db: Session, candidate_id: int) -> bool:
    email_svc = _email_service()
    if email_svc is None:
        return False
    candidate = (
        db.query(AssignmentCandidate)
        .options(
            joinedload(AssignmentCandidate.developer).joinedload(DeveloperProfile.user),
            joinedload(AssignmentCandidate.project),
        )
        .filter(AssignmentCandidate.id == candidate_id)
        .first()
    )
    if candidate is None or candidate.response_status != CandidateStatus.ACCEPTED:
        return False
    client = candidate.project.client
    developer_user = candidate.developer.user if candidate.developer else None
    if client is None or not client.email:
        return False
    result = email_svc.send_assignment_accepted(
        client_email=client.email,
        client_name=client.full_name or client.email,
        developer_name=(developer_user.full_name if developer_user else None) or "A developer",
        project_title=candidate.project.title,
        project_link=f"{settings.FRONTEND_URL}/projects/{candidate.project_id}",
    )
    return bool(result["success"])


def dispatch_candidate_invitations(db: Session, candidate_ids: Iterable[int]) -> None:
    candidate_ids = list(candidate_ids)
    if not candidate_ids:
        return
    if settings.MVP_DISABLE_CELERY:
        try:
            sent = send_candidate_invitations_sync(db, candidate_ids)
            logger.info("Sent %d assignment invitations", sent)
        except Exception:
            logger.exception("Assignment invitation emails failed")
        return
    from ...tasks.rotation_tasks import send_candidate_invitations

    try:
        send_candidate_invitations.delay(candidate_ids=candidate_ids, request_id=get_request_id())
    except Exception:
        logger.exception("Failed to queue assignment invitation emails")


def dispatch_acceptance_notification(db: Session, candidate_id: int) -> None:
    if settings.MVP_DISABLE_CELERY:
        try:
            send_acceptance_notification_sync(db, candidate_id)
        except Exception:
            logger.exception("Acceptance notification failed for candidate_id=%s", candidate_id)
        return
    from ...tasks.rotation_tasks import send_acceptance_notification

    try:
        send_acceptance_notification.delay(candidate_id=candidate_id, request_id=get_request_id())
    except Exception:
        logger.exception("Failed to queue acceptance notification for candidate_id=%s", candidate_id)
