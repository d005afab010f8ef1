from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..platform.database import Base


class DeveloperLevel:
    FRESHER = "FRESHER"
    MID = "MID"
    EXPERT = "EXPERT"

    ALL = (FRESHER, MID, EXPERT)
    # Display order: most experienced first
    RANK = {EXPERT: 0, MID: 1, FRESHER: 2}


class ApprovalStatus:
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    ALL = (PENDING, APPROVED, REJECTED)


class AvailabilityStatus:
    AVAILABLE = "available"
    NOT_AVAILABLE = "not_available"

    ALL = (AVAILABLE, NOT_AVAILABLE)


class DeveloperProfile(Base):
    __tablename__ = "developer_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, index=True, nullable=False)
    level = Column(String, nullable=False, default=DeveloperLevel.FRESHER)
    headline = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    admin_approval_status = Column(String, nullable=False, default=ApprovalStatus.PENDING, index=True)
    availability_status = Column(String, nullable=False, default=AvailabilityStatus.AVAILABLE, index=True)
    whatsapp_verified = Column(Boolean, nullable=False, default=False)
    # Fallback when the developer has no response history yet
    usual_response_time_ms = Column(Integer, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    user = relationship("User", back_populates="developer_profile")
    skills = relationship("DeveloperSkill", back_populates="developer", cascade="all, delete-orphan")


class DeveloperSkill(Base):
    __tablename__ = "developer_skills"
    __table_args__ = (UniqueConstraint("developer_id", "skill_id", name="uq_developer_skill"),)

    id = Column(Integer, primary_key=True, index=True)
    developer_id = Column(Integer, ForeignKey("developer_profiles.id"), index=True, nullable=False)
    skill_id = Column(Integer, ForeignKey("skills.id"), index=True, nullable=False)
    years = Column(Integer, nullable=True)

    developer = relationship("DeveloperProfile", back_populates="skills")
    skill = relationship("Skill")
