from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..platform.database import Base


class BatchStatus:
    ACTIVE = "active"
    COMPLETED = "completed"
    REPLACED = "replaced"


class BatchType:
    AUTO_ROTATION = "AUTO_ROTATION"
    MANUAL_INVITE = "MANUAL_INVITE"


class CandidateStatus:
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"
    INVALIDATED = "invalidated"

    TERMINAL = (ACCEPTED, REJECTED, EXPIRED, INVALIDATED)


CANDIDATE_STATUS_TEXT = {
    CandidateStatus.PENDING: "developer is checking",
    CandidateStatus.ACCEPTED: "developer accepted",
    CandidateStatus.REJECTED: "developer declined",
    CandidateStatus.EXPIRED: "no response",
    CandidateStatus.INVALIDATED: "replaced",
}


class AssignmentBatch(Base):
    __tablename__ = "assignment_batches"
    __table_args__ = (UniqueConstraint("project_id", "batch_number", name="uq_assignment_batch_number"),)

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), index=True, nullable=False)
    batch_number = Column(Integer, nullable=False)
    status = Column(String, nullable=False, default=BatchStatus.ACTIVE, index=True)
    batch_type = Column("type", String, nullable=False, default=BatchType.AUTO_ROTATION)
    is_no_expire = Column(Boolean, nullable=False, default=False)
    selection = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    project = relationship("Project", back_populates="batches")
    candidates = relationship("AssignmentCandidate", back_populates="batch", cascade="all, delete-orphan")


class AssignmentCandidate(Base):
    __tablename__ = "assignment_candidates"
    __table_args__ = (
        # At most one first-accepted candidate per project
        Index(
            "uq_assignment_candidates_first_accepted",
            "project_id",
            unique=True,
            sqlite_where=text("is_first_accepted = 1"),
            postgresql_where=text("is_first_accepted"),
        ),
        Index("ix_assignment_candidates_status_deadline", "response_status", "acceptance_deadline"),
    )

    id = Column(Integer, primary_key=True, index=True)
    batch_id = Column(Integer, ForeignKey("assignment_batches.id"), index=True, nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id"), index=True, nullable=False)
    developer_id = Column(Integer, ForeignKey("developer_profiles.id"), index=True, nullable=False)
    level = Column(String, nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    # Null for manual invites, which never expire
    acceptance_deadline = Column(DateTime(timezone=True), nullable=True)
    response_status = Column(String, nullable=False, default=CandidateStatus.PENDING, index=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    invalidated_at = Column(DateTime(timezone=True), nullable=True)
    usual_response_time_ms_snapshot = Column(Integer, nullable=True)
    status_text_for_client = Column(String, nullable=True)
    is_first_accepted = Column(Boolean, nullable=False, default=False)
    source = Column(String, nullable=False, default=BatchType.AUTO_ROTATION)
    client_message = Column(Text, nullable=True)
    skill_ids = Column(JSON, nullable=True)
    invite_metadata = Column("metadata", JSON, nullable=True)

    batch = relationship("AssignmentBatch", back_populates="candidates")
    project = relationship("Project")
    developer = relationship("DeveloperProfile")


class RotationCursor(Base):
    __tablename__ = "rotation_cursors"
    __table_args__ = (UniqueConstraint("skill_id", "level", name="uq_rotation_cursor_skill_level"),)

    id = Column(Integer, primary_key=True, index=True)
    skill_id = Column(Integer, ForeignKey("skills.id"), index=True, nullable=False)
    level = Column(String, nullable=False)
    last_developer_ids = Column(JSON, nullable=False, default=list)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
