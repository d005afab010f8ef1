"""Database queries deciding which developers may be offered a project."""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models.assignment import AssignmentBatch, AssignmentCandidate, BatchStatus, BatchType, CandidateStatus
from ...models.developer import ApprovalStatus, AvailabilityStatus, DeveloperProfile, DeveloperSkill
from .selection import PoolEntry, calculate_response_time

# Statuses that keep a developer out of any further batch for the same project
PROJECT_BLOCKING_STATUSES = (
    CandidateStatus.PENDING,
    CandidateStatus.ACCEPTED,
    CandidateStatus.REJECTED,
    CandidateStatus.EXPIRED,
)

_HISTORY_SAMPLE_SIZE = 5


def project_blocked_developer_ids(db: Session, project_id: int) -> set[int]:
    rows = (
        db.query(AssignmentCandidate.developer_id)
        .filter(
            AssignmentCandidate.project_id == project_id,
            AssignmentCandidate.response_status.in_(PROJECT_BLOCKING_STATUSES),
        )
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def recent_batch_developer_ids(db: Session, project_id: int, window: int) -> set[int]:
    """Developers offered in the ``window`` most recent batches of the project."""
    if window <= 0:
        return set()
    batch_ids = [
        row[0]
        for row in db.query(AssignmentBatch.id)
        .filter(AssignmentBatch.project_id == project_id)
        .order_by(AssignmentBatch.batch_number.desc())
        .limit(window)
        .all()
    ]
    if not batch_ids:
        return set()
    rows = (
        db.query(AssignmentCandidate.developer_id)
        .filter(AssignmentCandidate.batch_id.in_(batch_ids))
        .distinct()
        .all()
    )
    return {row[0] for row in rows}


def over_limit_developer_ids(db: Session, limit: int) -> set[int]:
    """Developers already holding ``limit`` pending invites in active auto-rotation batches."""
    rows = (
        db.query(AssignmentCandidate.developer_id)
        .join(AssignmentBatch, AssignmentBatch.id == AssignmentCandidate.batch_id)
        .filter(
            AssignmentCandidate.response_status == CandidateStatus.PENDING,
            AssignmentCandidate.source == BatchType.AUTO_ROTATION,
            AssignmentBatch.status == BatchStatus.ACTIVE,
        )
        .group_by(AssignmentCandidate.developer_id)
        .having(func.count(AssignmentCandidate.id) >= limit)
        .all()
    )
    return {row[0] for row in rows}


def _eligible_query(db: Session, client_user_id: int, exclude_ids: Iterable[int]):
    exclude_ids = list(exclude_ids)
    query = db.query(DeveloperProfile).filter(
        DeveloperProfile.admin_approval_status == ApprovalStatus.APPROVED,
        DeveloperProfile.availability_status == AvailabilityStatus.AVAILABLE,
        DeveloperProfile.user_id != client_user_id,
    )
    if exclude_ids:
        query = query.filter(DeveloperProfile.id.notin_(exclude_ids))
    return query


def load_skill_level_pool(
    db: Session,
    *,
    skill_id: int,
    level: str,
    client_user_id: int,
    exclude_ids: Iterable[int],
    limit: int,
    whatsapp_only: bool,
) -> list[DeveloperProfile]:
    """Eligible developers for one (skill, level), ordered by id."""
    query = (
        _eligible_query(db, client_user_id, exclude_ids)
        .join(DeveloperSkill, DeveloperSkill.developer_id == DeveloperProfile.id)
        .filter(DeveloperSkill.skill_id == skill_id, DeveloperProfile.level == level)
    )
    if whatsapp_only:
        query = query.filter(DeveloperProfile.whatsapp_verified.is_(True))
    return query.order_by(DeveloperProfile.id.asc()).limit(limit).all()


def load_eligible_developers(
    db: Session,
    developer_ids: Iterable[int],
    *,
    client_user_id: int,
    exclude_ids: Iterable[int],
) -> dict[int, DeveloperProfile]:
    developer_ids = list(developer_ids)
    if not developer_ids:
        return {}
    developers = (
        _eligible_query(db, client_user_id, exclude_ids)
        .filter(DeveloperProfile.id.in_(developer_ids))
        .all()
    )
    return {developer.id: developer for developer in developers}


def build_pool_entries(db: Session, developers: list[DeveloperProfile], default_response_ms: int) -> list[PoolEntry]:
    """Attach response history (last five answers) to each pool developer."""
    if not developers:
        return []
    history: dict[int, list[AssignmentCandidate]] = defaultdict(list)
    rows = (
        db.query(AssignmentCandidate)
        .filter(
            AssignmentCandidate.developer_id.in_([d.id for d in developers]),
            AssignmentCandidate.response_status.in_((CandidateStatus.ACCEPTED, CandidateStatus.REJECTED)),
            AssignmentCandidate.responded_at.isnot(None),
        )
        .order_by(AssignmentCandidate.responded_at.desc())
        .all()
    )
    for row in rows:
        if len(history[row.developer_id]) < _HISTORY_SAMPLE_SIZE:
            history[row.developer_id].append(row)

    entries = []
    for developer in developers:
        recent = history.get(developer.id, [])
        fallback = developer.usual_response_time_ms or default_response_ms
        entries.append(
            PoolEntry(
                developer_id=developer.id,
                level=developer.level,
                last_responded_at=recent[0].responded_at if recent else None,
                accepted_count=sum(1 for c in recent if c.response_status == CandidateStatus.ACCEPTED),
                usual_response_time_ms=calculate_response_time(
                    ((c.assigned_at, c.responded_at) for c in recent), default=fallback
                ),
            )
        )
    return entries


def recyclable_candidates(db: Session, project_id: int, lookback: int) -> list[AssignmentCandidate]:
    """Invalidated offers from the ``lookback`` most recent batches, newest batch first."""
    batch_ids = [
        row[0]
        for row in db.query(AssignmentBatch.id)
        .filter(
            AssignmentBatch.project_id == project_id,
            AssignmentBatch.batch_type == BatchType.AUTO_ROTATION,
        )
        .order_by(AssignmentBatch.batch_number.desc())
        .limit(lookback)
        .all()
    ]
    if not batch_ids:
        return []
    order = {batch_id: index for index, batch_id in enumerate(batch_ids)}
    rows = (
        db.query(AssignmentCandidate)
        .filter(
            AssignmentCandidate.batch_id.in_(batch_ids),
            AssignmentCandidate.response_status == CandidateStatus.INVALIDATED,
        )
        .order_by(AssignmentCandidate.id.asc())
        .all()
    )
    return sorted(rows, key=lambda c: order[c.batch_id])
