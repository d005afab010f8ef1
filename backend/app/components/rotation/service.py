"""Assignment rotation: batch generation, refresh, and first-accept-wins responses."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from ...models.assignment import (
    CANDIDATE_STATUS_TEXT,
    AssignmentBatch,
    AssignmentCandidate,
    BatchStatus,
    BatchType,
    CandidateStatus,
    RotationCursor,
)
from ...models.contact_grant import CONTACT_GRANT_REASON_ACCEPTED, ContactGrant
from ...models.developer import ApprovalStatus, AvailabilityStatus, DeveloperProfile
from ...models.project import Project, ProjectStatus
from ...components.billing.quota import consume_connect
from ...components.notifications.service import (
    dispatch_acceptance_notification,
    dispatch_candidate_invitations,
)
from ...platform.config import settings
from ...shared.utils import ensure_utc, utcnow
from . import eligibility
from .errors import (
    AssignmentConflictError,
    CandidateNotFoundError,
    DeveloperNotFoundError,
    InvalidCandidateStateError,
    InvalidInviteError,
    InvalidProjectStateError,
    NotCandidateOwnerError,
    ProjectNotFoundError,
    QuotaExceededError,
)
from .selection import (
    LEVEL_GATHER_ORDER,
    BatchSelection,
    DeveloperCandidate,
    apply_fair_ordering,
    cursor_updates,
    exclusion_window,
    merge_by_developer,
    rebalance_and_trim,
    resolve_selection,
)

logger = logging.getLogger(__name__)

GENERATE_BLOCKED_STATUSES = (ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETED, ProjectStatus.CANCELED)
REFRESH_BLOCKED_STATUSES = (ProjectStatus.ACCEPTED,) + GENERATE_BLOCKED_STATUSES
MANUAL_INVITE_BLOCKED_STATUSES = (ProjectStatus.COMPLETED, ProjectStatus.CANCELED)


@dataclass
class BatchGenerationResult:
    batch: AssignmentBatch
    candidates: list[AssignmentCandidate]
    selection: BatchSelection
    replaced_batch_id: int | None = None

    @property
    def batch_id(self) -> int:
        return self.batch.id


def _selection(selection: Mapping[str, Any] | None) -> BatchSelection:
    defaults = settings.rotation_selection_defaults
    return resolve_selection(
        selection,
        defaults=BatchSelection(
            fresher_count=defaults.fresher_count,
            mid_count=defaults.mid_count,
            expert_count=defaults.expert_count,
        ),
        max_per_level=settings.ROTATION_MAX_LEVEL_COUNT,
    )


def _skill_ids(project: Project) -> list[int]:
    seen: list[int] = []
    for raw in project.skills_required or []:
        try:
            skill_id = int(raw)
        except (TypeError, ValueError):
            continue
        if skill_id not in seen:
            seen.append(skill_id)
    return seen


def _lock_project(db: Session, project_id: int) -> Project:
    project = db.query(Project).filter(Project.id == project_id).with_for_update().first()
    if project is None:
        raise ProjectNotFoundError("Project not found")
    return project


def _next_batch_number(db: Session, project_id: int) -> int:
    last = (
        db.query(AssignmentBatch.batch_number)
        .filter(AssignmentBatch.project_id == project_id)
        .order_by(AssignmentBatch.batch_number.desc())
        .first()
    )
    return (last[0] if last else 0) + 1


def _candidates_for_skill_level(
    db: Session,
    *,
    skill_id: int,
    level: str,
    quota: int,
    client_user_id: int,
    exclude_ids: set[int],
) -> list[DeveloperCandidate]:
    limit = min(quota * 2, settings.ROTATION_POOL_SIZE_CAP)
    pool_kwargs = dict(
        skill_id=skill_id,
        level=level,
        client_user_id=client_user_id,
        exclude_ids=exclude_ids,
        limit=limit,
    )
    developers = eligibility.load_skill_level_pool(db, whatsapp_only=True, **pool_kwargs)
    if not developers:
        developers = eligibility.load_skill_level_pool(db, whatsapp_only=False, **pool_kwargs)
    if not developers:
        return []

    entries = eligibility.build_pool_entries(db, developers, settings.ROTATION_DEFAULT_RESPONSE_TIME_MS)
    cursor = (
        db.query(RotationCursor)
        .filter(RotationCursor.skill_id == skill_id, RotationCursor.level == level)
        .first()
    )
    ordered = apply_fair_ordering(entries, cursor.last_developer_ids if cursor else None)
    return [
        DeveloperCandidate(
            developer_id=entry.developer_id,
            level=entry.level,
            skill_ids=[skill_id],
            usual_response_time_ms=entry.usual_response_time_ms,
        )
        for entry in ordered[:quota]
    ]


def _recycle(
    db: Session,
    project: Project,
    *,
    exclude_ids: set[int],
    needed: int,
) -> list[DeveloperCandidate]:
    """Re-offer developers whose earlier offer was replaced, while they stay eligible."""
    previous = eligibility.recyclable_candidates(db, project.id, settings.ROTATION_RECYCLE_LOOKBACK_BATCHES)
    if not previous:
        return []
    eligible = eligibility.load_eligible_developers(
        db,
        {c.developer_id for c in previous},
        client_user_id=project.client_id,
        exclude_ids=exclude_ids,
    )

    recycled: list[DeveloperCandidate] = []
    taken: set[int] = set()
    for old in previous:
        if len(recycled) >= needed:
            break
        developer = eligible.get(old.developer_id)
        if developer is None or developer.id in taken:
            continue
        taken.add(developer.id)
        recycled.append(
            DeveloperCandidate(
                developer_id=developer.id,
                level=developer.level,
                skill_ids=list(old.skill_ids or []),
                usual_response_time_ms=old.usual_response_time_ms_snapshot
                or developer.usual_response_time_ms
                or settings.ROTATION_DEFAULT_RESPONSE_TIME_MS,
            )
        )
    return recycled


def _upsert_cursors(db: Session, skill_ids: list[int], selected: list[DeveloperCandidate]) -> None:
    for (skill_id, level), developer_ids in cursor_updates(skill_ids, selected).items():
        cursor = (
            db.query(RotationCursor)
            .filter(RotationCursor.skill_id == skill_id, RotationCursor.level == level)
            .first()
        )
        if cursor is None:
            db.add(RotationCursor(skill_id=skill_id, level=level, last_developer_ids=developer_ids))
        else:
            cursor.last_developer_ids = developer_ids


def _build_batch(
    db: Session,
    project: Project,
    selection: BatchSelection,
    extra_exclude_ids: set[int] | None = None,
) -> tuple[AssignmentBatch, list[AssignmentCandidate]]:
    """Select developers and persist a new current batch. Caller owns the transaction."""
    existing_batches = db.query(AssignmentBatch).filter(AssignmentBatch.project_id == project.id).count()

    exclude_ids = set(extra_exclude_ids or ())
    exclude_ids |= eligibility.recent_batch_developer_ids(db, project.id, exclusion_window(existing_batches))
    exclude_ids |= eligibility.project_blocked_developer_ids(db, project.id)
    exclude_ids |= eligibility.over_limit_developer_ids(db, settings.ROTATION_MAX_PENDING_INVITES_PER_DEV)

    skill_ids = _skill_ids(project)
    gathered: list[DeveloperCandidate] = []
    for skill_id in skill_ids:
        for level in LEVEL_GATHER_ORDER:
            quota = selection.count_for(level)
            if quota <= 0:
                continue
            gathered.extend(
                _candidates_for_skill_level(
                    db,
                    skill_id=skill_id,
                    level=level,
                    quota=quota,
                    client_user_id=project.client_id,
                    exclude_ids=exclude_ids,
                )
            )

    selected = rebalance_and_trim(merge_by_developer(gathered), selection)
    shortfall = selection.total - len(selected)
    if shortfall > 0:
        recycled = _recycle(
            db,
            project,
            exclude_ids=exclude_ids | {c.developer_id for c in selected},
            needed=shortfall,
        )
        if recycled:
            logger.info("Recycling %d developers for project_id=%s", len(recycled), project.id)
        selected.extend(recycled)

    now = utcnow()
    batch = AssignmentBatch(
        project_id=project.id,
        batch_number=_next_batch_number(db, project.id),
        status=BatchStatus.ACTIVE if selected else BatchStatus.COMPLETED,
        batch_type=BatchType.AUTO_ROTATION,
        is_no_expire=False,
        selection=selection.as_dict(),
        created_at=now,
    )
    db.add(batch)
    db.flush()

    project.current_batch_id = batch.id
    if selected:
        if project.status == ProjectStatus.SUBMITTED:
            project.status = ProjectStatus.ASSIGNING
    elif project.status in ProjectStatus.CLAIMABLE:
        project.status = ProjectStatus.SUBMITTED

    deadline = now + timedelta(minutes=settings.ROTATION_ACCEPTANCE_DEADLINE_MINUTES)
    candidates = []
    for picked in selected:
        candidate = AssignmentCandidate(
            batch_id=batch.id,
            project_id=project.id,
            developer_id=picked.developer_id,
            level=picked.level,
            assigned_at=now,
            acceptance_deadline=deadline,
            response_status=CandidateStatus.PENDING,
            usual_response_time_ms_snapshot=picked.usual_response_time_ms,
            status_text_for_client=CANDIDATE_STATUS_TEXT[CandidateStatus.PENDING],
            is_first_accepted=False,
            source=BatchType.AUTO_ROTATION,
            skill_ids=sorted(picked.skill_ids),
        )
        db.add(candidate)
        candidates.append(candidate)

    _upsert_cursors(db, skill_ids, selected)
    db.flush()

    logger.info(
        "Generated batch project_id=%s batch_number=%s candidates=%d excluded=%d",
        project.id,
        batch.batch_number,
        len(candidates),
        len(exclude_ids),
        extra={"project_id": project.id, "batch_id": batch.id},
    )
    return batch, candidates


def generate_batch(
    db: Session,
    project_id: int,
    selection: Mapping[str, Any] | None = None,
) -> BatchGenerationResult:
    """Create the next auto-rotation batch for a project and make it current."""
    resolved = _selection(selection)
    try:
        project = _lock_project(db, project_id)
        if project.status in GENERATE_BLOCKED_STATUSES:
            raise InvalidProjectStateError(f"Cannot generate batch for project with status: {project.status}")
        batch, candidates = _build_batch(db, project, resolved)
        db.commit()
    except Exception:
        db.rollback()
        raise

    dispatch_candidate_invitations(db, [c.id for c in candidates])
    return BatchGenerationResult(batch=batch, candidates=candidates, selection=resolved)


def refresh_batch(
    db: Session,
    project_id: int,
    selection: Mapping[str, Any] | None = None,
) -> BatchGenerationResult:
    """Replace the current batch: pending offers are invalidated and a fresh batch is built."""
    resolved = _selection(selection)
    replaced_batch_id = None
    try:
        project = _lock_project(db, project_id)
        if project.status in REFRESH_BLOCKED_STATUSES:
            raise InvalidProjectStateError(f"Cannot refresh batch for project with status: {project.status}")

        current = db.get(AssignmentBatch, project.current_batch_id) if project.current_batch_id else None
        exclude_ids: set[int] = set()
        if current is not None:
            now = utcnow()
            for candidate in current.candidates:
                exclude_ids.add(candidate.developer_id)
                if candidate.response_status == CandidateStatus.PENDING:
                    candidate.response_status = CandidateStatus.INVALIDATED
                    candidate.invalidated_at = now
                    candidate.status_text_for_client = CANDIDATE_STATUS_TEXT[CandidateStatus.INVALIDATED]
            current.status = BatchStatus.REPLACED
            replaced_batch_id = current.id
            db.flush()

        batch, candidates = _build_batch(db, project, resolved, extra_exclude_ids=exclude_ids)
        db.commit()
    except Exception:
        db.rollback()
        raise

    if replaced_batch_id is not None:
        logger.info("Replaced batch_id=%s for project_id=%s", replaced_batch_id, project_id)
    dispatch_candidate_invitations(db, [c.id for c in candidates])
    return BatchGenerationResult(
        batch=batch,
        candidates=candidates,
        selection=resolved,
        replaced_batch_id=replaced_batch_id,
    )


def can_generate_new_batch(db: Session, project_id: int) -> bool:
    """Advisory check: too many batches, or repeated empty batches, suggest stopping."""
    batches = (
        db.query(AssignmentBatch)
        .filter(
            AssignmentBatch.project_id == project_id,
            AssignmentBatch.batch_type == BatchType.AUTO_ROTATION,
        )
        .order_by(AssignmentBatch.batch_number.asc())
        .all()
    )
    if len(batches) >= settings.ROTATION_MAX_BATCHES_PER_PROJECT:
        return False
    if not batches:
        return True
    empty = [batch for batch in batches if not batch.candidates]
    if not batches[-1].candidates and len(empty) >= settings.ROTATION_MAX_EMPTY_BATCHES:
        return False
    return True


def _load_candidate(db: Session, candidate_id: int) -> AssignmentCandidate:
    candidate = (
        db.query(AssignmentCandidate)
        .options(joinedload(AssignmentCandidate.batch), joinedload(AssignmentCandidate.developer))
        .filter(AssignmentCandidate.id == candidate_id)
        .first()
    )
    if candidate is None:
        raise CandidateNotFoundError("Candidate not found")
    return candidate


def accept_candidate(db: Session, candidate_id: int, user_id: int) -> AssignmentCandidate:
    """First-accept-wins: claim the project for the calling developer.

    The project claim and the candidate transition are conditional updates,
    so a concurrent accept for the same project affects zero rows and fails
    with :class:`AssignmentConflictError`.
    """
    try:
        candidate = _load_candidate(db, candidate_id)
        if candidate.developer is None or candidate.developer.user_id != user_id:
            raise NotCandidateOwnerError("You can only accept your own assignments")
        if candidate.response_status != CandidateStatus.PENDING:
            raise InvalidCandidateStateError(f"Cannot accept candidate with status: {candidate.response_status}")

        now = utcnow()
        deadline = ensure_utc(candidate.acceptance_deadline)
        if deadline is not None and now > deadline:
            raise InvalidCandidateStateError("Acceptance deadline has passed")

        batch = candidate.batch
        if batch.status != BatchStatus.ACTIVE:
            raise InvalidCandidateStateError(f"Cannot accept candidate from {batch.status} batch")

        project = _lock_project(db, candidate.project_id)
        is_manual = candidate.source == BatchType.MANUAL_INVITE
        if not is_manual and project.current_batch_id != batch.id:
            raise InvalidCandidateStateError("This batch is no longer current")
        if project.client_id == user_id:
            raise InvalidCandidateStateError("You cannot accept your own project")

        claim = update(Project).where(
            Project.id == project.id,
            Project.status.in_(ProjectStatus.CLAIMABLE),
            Project.contact_reveal_enabled.is_(False),
        )
        if not is_manual:
            claim = claim.where(Project.current_batch_id == batch.id)
        claimed = db.execute(
            claim.values(
                status=ProjectStatus.ACCEPTED,
                contact_reveal_enabled=True,
                contact_revealed_developer_id=candidate.developer_id,
                accepted_at=now,
                updated_at=now,
            ).execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            raise AssignmentConflictError("Project already accepted by another developer or batch replaced")

        marked = db.execute(
            update(AssignmentCandidate)
            .where(
                AssignmentCandidate.id == candidate.id,
                AssignmentCandidate.response_status == CandidateStatus.PENDING,
                AssignmentCandidate.is_first_accepted.is_(False),
                or_(
                    AssignmentCandidate.acceptance_deadline.is_(None),
                    AssignmentCandidate.acceptance_deadline >= now,
                ),
            )
            .values(
                response_status=CandidateStatus.ACCEPTED,
                responded_at=now,
                is_first_accepted=True,
                status_text_for_client=CANDIDATE_STATUS_TEXT[CandidateStatus.ACCEPTED],
            )
            .execution_options(synchronize_session=False)
        )
        if marked.rowcount != 1:
            raise AssignmentConflictError("Candidate no longer pending or deadline passed")

        db.execute(
            update(AssignmentBatch)
            .where(AssignmentBatch.id == batch.id)
            .values(status=BatchStatus.COMPLETED)
            .execution_options(synchronize_session=False)
        )

        grant = (
            db.query(ContactGrant)
            .filter(
                ContactGrant.client_id == project.client_id,
                ContactGrant.developer_id == candidate.developer_id,
                ContactGrant.project_id == project.id,
            )
            .first()
        )
        if grant is None:
            db.add(
                ContactGrant(
                    client_id=project.client_id,
                    developer_id=candidate.developer_id,
                    project_id=project.id,
                    reason=CONTACT_GRANT_REASON_ACCEPTED,
                    allow_email=True,
                    allow_phone=True,
                    allow_whatsapp=True,
                )
            )
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Concurrent accept rejected for candidate_id=%s", candidate_id)
        raise AssignmentConflictError("Project already accepted by another developer")
    except Exception:
        db.rollback()
        raise

    db.refresh(candidate)
    logger.info(
        "Candidate accepted candidate_id=%s project_id=%s developer_id=%s",
        candidate.id,
        candidate.project_id,
        candidate.developer_id,
        extra={"project_id": candidate.project_id, "candidate_id": candidate.id},
    )
    dispatch_acceptance_notification(db, candidate.id)
    return candidate


def reject_candidate(db: Session, candidate_id: int, user_id: int) -> AssignmentCandidate:
    """Decline an offer. Allowed after the deadline as long as it is still pending."""
    try:
        candidate = _load_candidate(db, candidate_id)
        if candidate.developer is None or candidate.developer.user_id != user_id:
            raise NotCandidateOwnerError("You can only reject your own assignments")
        if candidate.response_status != CandidateStatus.PENDING:
            raise InvalidCandidateStateError(f"Cannot reject candidate with status: {candidate.response_status}")
        if candidate.batch.status != BatchStatus.ACTIVE:
            raise InvalidCandidateStateError(f"Cannot reject candidate from {candidate.batch.status} batch")

        now = utcnow()
        rejected = db.execute(
            update(AssignmentCandidate)
            .where(
                AssignmentCandidate.id == candidate.id,
                AssignmentCandidate.response_status == CandidateStatus.PENDING,
            )
            .values(
                response_status=CandidateStatus.REJECTED,
                responded_at=now,
                status_text_for_client=CANDIDATE_STATUS_TEXT[CandidateStatus.REJECTED],
            )
            .execution_options(synchronize_session=False)
        )
        if rejected.rowcount != 1:
            raise InvalidCandidateStateError("Candidate is no longer pending")
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(candidate)
    logger.info("Candidate rejected candidate_id=%s project_id=%s", candidate.id, candidate.project_id)
    return candidate


def create_manual_invite(
    db: Session,
    project: Project,
    developer_id: int,
    message: str,
    *,
    title: str | None = None,
    budget: Any = None,
    description: str | None = None,
    charge_connect: bool = False,
) -> AssignmentCandidate:
    """Invite one developer directly. Manual invites never expire and never become current.

    With ``charge_connect`` the client's connect is spent in the same
    transaction as the invite, so neither is saved without the other.
    """
    if project.status in MANUAL_INVITE_BLOCKED_STATUSES:
        raise InvalidProjectStateError(f"Cannot invite developers to a {project.status} project")

    developer = db.get(DeveloperProfile, developer_id)
    if developer is None:
        raise DeveloperNotFoundError("Developer not found")
    if developer.admin_approval_status != ApprovalStatus.APPROVED:
        raise InvalidInviteError("Developer is not approved")
    if developer.availability_status == AvailabilityStatus.NOT_AVAILABLE:
        raise InvalidInviteError("Developer is not available")
    if developer.user_id == project.client_id:
        raise InvalidInviteError("You cannot invite yourself")

    message = (message or "").strip()
    if not message:
        raise InvalidInviteError("Message is required")
    if len(message) > settings.MANUAL_INVITE_MESSAGE_MAX_LENGTH:
        raise InvalidInviteError(
            f"Message must be at most {settings.MANUAL_INVITE_MESSAGE_MAX_LENGTH} characters"
        )

    existing = (
        db.query(AssignmentCandidate.id)
        .filter(
            AssignmentCandidate.project_id == project.id,
            AssignmentCandidate.developer_id == developer.id,
            AssignmentCandidate.source == BatchType.MANUAL_INVITE,
            AssignmentCandidate.response_status == CandidateStatus.PENDING,
        )
        .first()
    )
    if existing is not None:
        raise InvalidInviteError("Developer already has a pending invite for this project")

    metadata = {
        key: value
        for key, value in (("title", title), ("budget", budget), ("description", description))
        if value is not None
    }
    if "budget" in metadata:
        metadata["budget"] = str(metadata["budget"])

    try:
        now = utcnow()
        batch = AssignmentBatch(
            project_id=project.id,
            batch_number=_next_batch_number(db, project.id),
            status=BatchStatus.ACTIVE,
            batch_type=BatchType.MANUAL_INVITE,
            is_no_expire=True,
            created_at=now,
        )
        db.add(batch)
        db.flush()
        candidate = AssignmentCandidate(
            batch_id=batch.id,
            project_id=project.id,
            developer_id=developer.id,
            level=developer.level,
            assigned_at=now,
            acceptance_deadline=None,
            response_status=CandidateStatus.PENDING,
            usual_response_time_ms_snapshot=developer.usual_response_time_ms
            or settings.ROTATION_DEFAULT_RESPONSE_TIME_MS,
            status_text_for_client=CANDIDATE_STATUS_TEXT[CandidateStatus.PENDING],
            is_first_accepted=False,
            source=BatchType.MANUAL_INVITE,
            client_message=message,
            skill_ids=_skill_ids(project),
            invite_metadata=metadata or None,
        )
        db.add(candidate)
        db.flush()
        if charge_connect and not consume_connect(db, project.client_id):
            raise QuotaExceededError("Connect quota exhausted for this billing period")
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(candidate)
    logger.info(
        "Manual invite created candidate_id=%s project_id=%s developer_id=%s",
        candidate.id,
        project.id,
        developer.id,
    )
    dispatch_candidate_invitations(db, [candidate.id])
    return candidate
