from datetime import datetime
from typing import Optional
from pydantic import BaseModel


class ExpirySweepData(BaseModel):
    expired_count: int
    processed_at: str


class ExpirySweepResponse(BaseModel):
    success: bool = True
    data: ExpirySweepData
    message: str


class CronRunResponse(BaseModel):
    id: int
    job: str
    status: str
    success: Optional[bool] = None
    details: Optional[dict] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
