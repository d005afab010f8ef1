from .celery_app import celery_app
from .rotation_tasks import (
    send_candidate_invitations,
    send_acceptance_notification,
    expire_candidates,
    cleanup_old_candidates,
)

__all__ = [
    "celery_app",
    "send_candidate_invitations",
    "send_acceptance_notification",
    "expire_candidates",
    "cleanup_old_candidates",
]
