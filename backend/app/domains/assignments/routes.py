"""Developer responses to assignment offers."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...components.rotation.errors import RotationError, as_http_exception
from ...components.rotation.service import accept_candidate, reject_candidate
from ...deps import require_developer
from ...models.project import Project
from ...models.user import User
from ...platform.database import get_db
from ...schemas.assignment import CandidateActionResponse, CandidateResponse
from ...schemas.project import ProjectResponse

router = APIRouter(prefix="/assignments", tags=["Assignments"])


@router.post("/{candidate_id}/accept", response_model=CandidateActionResponse)
def accept_assignment(
    candidate_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_developer),
):
    try:
        candidate = accept_candidate(db, candidate_id, current_user.id)
    except RotationError as exc:
        raise as_http_exception(exc) from exc
    project = db.get(Project, candidate.project_id)
    return CandidateActionResponse(
        message="Assignment accepted successfully! The client can now contact you.",
        candidate=CandidateResponse.model_validate(candidate),
        project=ProjectResponse.model_validate(project),
    )


@router.post("/{candidate_id}/reject", response_model=CandidateActionResponse)
def reject_assignment(
    candidate_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_developer),
):
    try:
        candidate = reject_candidate(db, candidate_id, current_user.id)
    except RotationError as exc:
        raise as_http_exception(exc) from exc
    return CandidateActionResponse(
        message="Assignment rejected successfully.",
        candidate=CandidateResponse.model_validate(candidate),
    )
