from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=10000)
    budget: Optional[Decimal] = Field(default=None, ge=0)
    skills_required: List[int] = Field(min_length=1, max_length=20)


class ProjectResponse(BaseModel):
    id: int
    client_id: int
    title: str
    description: Optional[str] = None
    budget: Optional[Decimal] = None
    skills_required: List[int] = []
    status: str
    current_batch_id: Optional[int] = None
    contact_reveal_enabled: bool = False
    contact_revealed_developer_id: Optional[int] = None
    accepted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
