from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field

from .project import ProjectResponse


class BatchSelectionRequest(BaseModel):
    """Per-level quota overrides; omitted levels keep the configured defaults.

    Bounds are checked by the rotation service so out-of-range values answer 400.
    """

    fresher_count: Optional[int] = None
    mid_count: Optional[int] = None
    expert_count: Optional[int] = None


class ManualInviteRequest(BaseModel):
    developer_id: int
    message: str
    title: Optional[str] = Field(default=None, max_length=200)
    budget: Optional[Decimal] = Field(default=None, ge=0)
    description: Optional[str] = Field(default=None, max_length=10000)


class CandidateResponse(BaseModel):
    id: int
    batch_id: int
    project_id: int
    developer_id: int
    level: str
    assigned_at: Optional[datetime] = None
    acceptance_deadline: Optional[datetime] = None
    response_status: str
    responded_at: Optional[datetime] = None
    invalidated_at: Optional[datetime] = None
    usual_response_time_ms_snapshot: Optional[int] = None
    status_text_for_client: Optional[str] = None
    is_first_accepted: bool = False
    source: str
    client_message: Optional[str] = None
    skill_ids: Optional[List[int]] = None

    model_config = {"from_attributes": True}


class BatchResponse(BaseModel):
    id: int
    project_id: int
    batch_number: int
    status: str
    batch_type: str
    is_no_expire: bool = False
    selection: Optional[dict] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class BatchGenerationResponse(BaseModel):
    batch: BatchResponse
    candidates: List[CandidateResponse]
    replaced_batch_id: Optional[int] = None
    can_generate_more: bool = True


class AssignmentViewResponse(BaseModel):
    project: ProjectResponse
    batch: Optional[BatchResponse] = None
    candidates: List[CandidateResponse] = []


class CandidateActionResponse(BaseModel):
    success: bool = True
    message: str
    candidate: CandidateResponse
    project: Optional[ProjectResponse] = None


class InvitationResponse(CandidateResponse):
    project_title: Optional[str] = None
    project_status: Optional[str] = None
    invite_metadata: Optional[dict] = None
