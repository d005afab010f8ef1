from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, Field


class DeveloperSkillInput(BaseModel):
    skill_id: int
    years: Optional[int] = Field(default=None, ge=0, le=60)


class DeveloperProfileUpdate(BaseModel):
    headline: Optional[str] = Field(default=None, max_length=200)
    bio: Optional[str] = Field(default=None, max_length=5000)
    level: Optional[Literal["FRESHER", "MID", "EXPERT"]] = None
    availability_status: Optional[Literal["available", "not_available"]] = None
    skills: Optional[List[DeveloperSkillInput]] = Field(default=None, max_length=30)


class DeveloperSkillResponse(BaseModel):
    skill_id: int
    years: Optional[int] = None

    model_config = {"from_attributes": True}


class DeveloperProfileResponse(BaseModel):
    id: int
    user_id: int
    level: str
    headline: Optional[str] = None
    bio: Optional[str] = None
    admin_approval_status: str
    availability_status: str
    whatsapp_verified: bool = False
    usual_response_time_ms: Optional[int] = None
    approved_at: Optional[datetime] = None
    skills: List[DeveloperSkillResponse] = []

    model_config = {"from_attributes": True}


class DeveloperApprovalUpdate(BaseModel):
    admin_approval_status: Literal["pending", "approved", "rejected"]
    whatsapp_verified: Optional[bool] = None
