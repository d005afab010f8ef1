from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, Numeric, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..platform.database import Base


class ProjectStatus:
    SUBMITTED = "submitted"
    ASSIGNING = "assigning"
    ACCEPTED = "accepted"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"

    ALL = (SUBMITTED, ASSIGNING, ACCEPTED, IN_PROGRESS, COMPLETED, CANCELED)
    # Statuses in which a developer can still claim the project
    CLAIMABLE = (SUBMITTED, ASSIGNING)


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    budget = Column(Numeric(12, 2), nullable=True)
    skills_required = Column(JSON, nullable=False, default=list)
    status = Column(String, nullable=False, default=ProjectStatus.SUBMITTED, index=True)
    # No FK: batches reference projects, keeping the pointer loose avoids a cycle
    current_batch_id = Column(Integer, nullable=True, index=True)
    contact_reveal_enabled = Column(Boolean, nullable=False, default=False)
    contact_revealed_developer_id = Column(Integer, ForeignKey("developer_profiles.id"), nullable=True)
    accepted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    client = relationship("User", back_populates="projects")
    batches = relationship(
        "AssignmentBatch",
        back_populates="project",
        order_by="AssignmentBatch.batch_number",
        cascade="all, delete-orphan",
    )
    revealed_developer = relationship("DeveloperProfile")
