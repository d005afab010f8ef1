from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, String
from sqlalchemy.sql import func

from ..platform.database import Base


class CronRun(Base):
    __tablename__ = "cron_runs"

    id = Column(Integer, primary_key=True, index=True)
    job = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False, default="started")
    success = Column(Boolean, nullable=True)
    details = Column(JSON, nullable=True)
    started_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    finished_at = Column(DateTime(timezone=True), nullable=True)
