"""Client-facing project routes: posting, assignment view, batches, manual invites."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from ...components.billing.quota import can_post_project, can_use_connect, increment_project_usage
from ...components.rotation.errors import RotationError, as_http_exception
from ...components.rotation.service import (
    BatchGenerationResult,
    can_generate_new_batch,
    create_manual_invite,
    generate_batch,
    refresh_batch,
)
from ...deps import require_client
from ...models.assignment import AssignmentBatch, AssignmentCandidate, CandidateStatus
from ...models.developer import DeveloperLevel
from ...models.project import Project, ProjectStatus
from ...models.skill import Skill
from ...models.user import User
from ...platform.database import get_db
from ...schemas.assignment import (
    AssignmentViewResponse,
    BatchGenerationResponse,
    BatchResponse,
    BatchSelectionRequest,
    CandidateResponse,
    ManualInviteRequest,
)
from ...schemas.project import ProjectCreate, ProjectResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/projects", tags=["Projects"])

# Generation is refused once a developer holds the project
_GENERATE_ROUTE_BLOCKED = (ProjectStatus.ACCEPTED, ProjectStatus.IN_PROGRESS, ProjectStatus.COMPLETED)


def _get_owned_project(db: Session, project_id: int, user: User) -> Project:
    project = db.query(Project).filter(Project.id == project_id).first()
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    if project.client_id != user.id:
        raise HTTPException(status_code=403, detail="You do not own this project")
    return project


def _require_connect(db: Session, user: User) -> None:
    allowed = can_use_connect(db, user.id)
    # Persist auto-provisioned subscription rows either way
    db.commit()
    if not allowed:
        raise HTTPException(status_code=402, detail="Connect quota exhausted for this billing period")


def _sorted_candidates(candidates: List[AssignmentCandidate]) -> List[AssignmentCandidate]:
    return sorted(
        candidates,
        key=lambda c: (DeveloperLevel.RANK.get(c.level, len(DeveloperLevel.RANK)), c.assigned_at, c.id),
    )


def _generation_response(db: Session, project_id: int, result: BatchGenerationResult) -> BatchGenerationResponse:
    return BatchGenerationResponse(
        batch=BatchResponse.model_validate(result.batch),
        candidates=[CandidateResponse.model_validate(c) for c in _sorted_candidates(result.candidates)],
        replaced_batch_id=result.replaced_batch_id,
        can_generate_more=can_generate_new_batch(db, project_id),
    )


@router.post("", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def create_project(
    data: ProjectCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client),
):
    skill_ids = list(dict.fromkeys(data.skills_required))
    known = {row[0] for row in db.query(Skill.id).filter(Skill.id.in_(skill_ids)).all()}
    missing = [skill_id for skill_id in skill_ids if skill_id not in known]
    if missing:
        raise HTTPException(status_code=400, detail=f"Unknown skill ids: {missing}")

    if not can_post_project(db, current_user.id):
        db.commit()
        raise HTTPException(status_code=402, detail="Project quota exhausted for this billing period")

    project = Project(
        client_id=current_user.id,
        title=data.title.strip(),
        description=data.description,
        budget=data.budget,
        skills_required=skill_ids,
        status=ProjectStatus.SUBMITTED,
    )
    try:
        db.add(project)
        increment_project_usage(db, current_user.id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    db.refresh(project)
    logger.info("Project created project_id=%s client_id=%s", project.id, current_user.id)
    return project


@router.get("", response_model=List[ProjectResponse])
def list_projects(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client),
):
    return (
        db.query(Project)
        .filter(Project.client_id == current_user.id)
        .order_by(Project.created_at.desc(), Project.id.desc())
        .all()
    )


@router.get("/{project_id}", response_model=ProjectResponse)
def get_project(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client),
):
    return _get_owned_project(db, project_id, current_user)


@router.get("/{project_id}/assignment", response_model=AssignmentViewResponse)
def get_assignment(
    project_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client),
):
    """Current batch with its candidates, most experienced first."""
    project = _get_owned_project(db, project_id, current_user)
    batch = db.get(AssignmentBatch, project.current_batch_id) if project.current_batch_id else None
    candidates = _sorted_candidates(list(batch.candidates)) if batch else []
    return AssignmentViewResponse(
        project=ProjectResponse.model_validate(project),
        batch=BatchResponse.model_validate(batch) if batch else None,
        candidates=[CandidateResponse.model_validate(c) for c in candidates],
    )


@router.post("/{project_id}/batches/generate", response_model=BatchGenerationResponse)
def generate_project_batch(
    project_id: int,
    selection: Optional[BatchSelectionRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client),
):
    project = _get_owned_project(db, project_id, current_user)
    if project.status in _GENERATE_ROUTE_BLOCKED:
        raise HTTPException(status_code=400, detail=f"Cannot generate batch for project with status: {project.status}")
    if project.current_batch_id:
        accepted = (
            db.query(AssignmentCandidate.id)
            .filter(
                AssignmentCandidate.batch_id == project.current_batch_id,
                AssignmentCandidate.response_status == CandidateStatus.ACCEPTED,
            )
            .first()
        )
        if accepted is not None:
            raise HTTPException(status_code=400, detail="Current batch already has an accepted developer")

    _require_connect(db, current_user)
    if not can_generate_new_batch(db, project.id):
        logger.warning("Project project_id=%s is past the advisory batch limits", project.id)

    try:
        result = generate_batch(db, project.id, selection.model_dump(exclude_none=True) if selection else None)
    except RotationError as exc:
        raise as_http_exception(exc) from exc
    return _generation_response(db, project.id, result)


@router.post("/{project_id}/batches/refresh", response_model=BatchGenerationResponse)
def refresh_project_batch(
    project_id: int,
    selection: Optional[BatchSelectionRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client),
):
    project = _get_owned_project(db, project_id, current_user)
    _require_connect(db, current_user)
    try:
        result = refresh_batch(db, project.id, selection.model_dump(exclude_none=True) if selection else None)
    except RotationError as exc:
        raise as_http_exception(exc) from exc
    return _generation_response(db, project.id, result)


@router.post("/{project_id}/invites/manual", response_model=CandidateResponse, status_code=status.HTTP_201_CREATED)
def create_project_manual_invite(
    project_id: int,
    data: ManualInviteRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_client),
):
    project = _get_owned_project(db, project_id, current_user)
    _require_connect(db, current_user)
    try:
        candidate = create_manual_invite(
            db,
            project,
            data.developer_id,
            data.message,
            title=data.title,
            budget=data.budget,
            description=data.description,
            charge_connect=True,
        )
    except RotationError as exc:
        raise as_http_exception(exc) from exc
    return candidate
