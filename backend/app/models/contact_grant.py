from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from ..platform.database import Base

CONTACT_GRANT_REASON_ACCEPTED = "ACCEPTED_PROJECT"


class ContactGrant(Base):
    __tablename__ = "contact_grants"
    __table_args__ = (
        UniqueConstraint("client_id", "developer_id", "project_id", name="uq_contact_grant"),
    )

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    developer_id = Column(Integer, ForeignKey("developer_profiles.id"), index=True, nullable=False)
    project_id = Column(Integer, ForeignKey("projects.id"), index=True, nullable=False)
    reason = Column(String, nullable=False, default=CONTACT_GRANT_REASON_ACCEPTED)
    allow_email = Column(Boolean, nullable=False, default=True)
    allow_phone = Column(Boolean, nullable=False, default=True)
    allow_whatsapp = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
