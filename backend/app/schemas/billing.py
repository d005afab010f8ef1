from datetime import datetime
from decimal import Decimal
from pydantic import BaseModel


class PackageResponse(BaseModel):
    id: int
    name: str
    price_usd: Decimal
    connects_per_month: int
    projects_per_month: int

    model_config = {"from_attributes": True}


class QuotaResponse(BaseModel):
    package_name: str
    connects_limit: int
    connects_used: int
    connects_remaining: int
    projects_limit: int
    projects_used: int
    projects_remaining: int
    period_start: datetime
    period_end: datetime
