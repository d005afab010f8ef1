from .project import ProjectCreate, ProjectResponse
from .assignment import (
    AssignmentViewResponse,
    BatchGenerationResponse,
    BatchResponse,
    BatchSelectionRequest,
    CandidateActionResponse,
    CandidateResponse,
    InvitationResponse,
    ManualInviteRequest,
)
from .developer import DeveloperApprovalUpdate, DeveloperProfileResponse, DeveloperProfileUpdate
from .skill import SkillCreate, SkillResponse
from .billing import PackageResponse, QuotaResponse
from .cron import CronRunResponse, ExpirySweepResponse

__all__ = [
    "ProjectCreate",
    "ProjectResponse",
    "AssignmentViewResponse",
    "BatchGenerationResponse",
    "BatchResponse",
    "BatchSelectionRequest",
    "CandidateActionResponse",
    "CandidateResponse",
    "InvitationResponse",
    "ManualInviteRequest",
    "DeveloperApprovalUpdate",
    "DeveloperProfileResponse",
    "DeveloperProfileUpdate",
    "SkillCreate",
    "SkillResponse",
    "PackageResponse",
    "QuotaResponse",
    "CronRunResponse",
    "ExpirySweepResponse",
]
