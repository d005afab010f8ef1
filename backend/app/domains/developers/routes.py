"""Developer self-service: profile, skills, and incoming invitations."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload

from ...deps import get_developer_profile
from ...models.assignment import AssignmentCandidate, CandidateStatus
from ...models.developer import DeveloperProfile, DeveloperSkill
from ...models.skill import Skill
from ...platform.database import get_db
from ...schemas.assignment import CandidateResponse, InvitationResponse
from ...schemas.developer import DeveloperProfileResponse, DeveloperProfileUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/developers", tags=["Developers"])


@router.get("/me", response_model=DeveloperProfileResponse)
def get_my_profile(profile: DeveloperProfile = Depends(get_developer_profile)):
    return profile


@router.put("/me", response_model=DeveloperProfileResponse)
def update_my_profile(
    data: DeveloperProfileUpdate,
    db: Session = Depends(get_db),
    profile: DeveloperProfile = Depends(get_developer_profile),
):
    updates = data.model_dump(exclude_unset=True, exclude={"skills"})
    for field, value in updates.items():
        setattr(profile, field, value)

    if data.skills is not None:
        skill_ids = [item.skill_id for item in data.skills]
        known = {row[0] for row in db.query(Skill.id).filter(Skill.id.in_(skill_ids)).all()}
        missing = sorted(set(skill_ids) - known)
        if missing:
            raise HTTPException(status_code=400, detail=f"Unknown skill ids: {missing}")
        years_by_skill = {item.skill_id: item.years for item in data.skills}
        # Update in place so unchanged (developer, skill) rows keep their identity
        for existing in list(profile.skills):
            if existing.skill_id in years_by_skill:
                existing.years = years_by_skill.pop(existing.skill_id)
            else:
                profile.skills.remove(existing)
        for skill_id, years in years_by_skill.items():
            profile.skills.append(DeveloperSkill(skill_id=skill_id, years=years))

    try:
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(profile)
    logger.info("Developer profile updated developer_id=%s", profile.id)
    return profile


@router.get("/me/invitations", response_model=List[InvitationResponse])
def list_my_invitations(
    response_status: Optional[str] = Query(default=None),
    db: Session = Depends(get_db),
    profile: DeveloperProfile = Depends(get_developer_profile),
):
    query = (
        db.query(AssignmentCandidate)
        .options(joinedload(AssignmentCandidate.project))
        .filter(AssignmentCandidate.developer_id == profile.id)
    )
    if response_status:
        if response_status not in (CandidateStatus.PENDING,) + CandidateStatus.TERMINAL:
            raise HTTPException(status_code=400, detail="Invalid response_status filter")
        query = query.filter(AssignmentCandidate.response_status == response_status)
    candidates = query.order_by(AssignmentCandidate.assigned_at.desc(), AssignmentCandidate.id.desc()).all()
    return [
        InvitationResponse(
            **CandidateResponse.model_validate(candidate).model_dump(),
            project_title=candidate.project.title if candidate.project else None,
            project_status=candidate.project.status if candidate.project else None,
            invite_metadata=candidate.invite_metadata,
        )
        for candidate in candidates
    ]
