from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fastapi_users.db import SQLAlchemyBaseUserTable

from ..platform.database import Base

USER_ROLE_CLIENT = "client"
USER_ROLE_DEVELOPER = "developer"
USER_ROLES = (USER_ROLE_CLIENT, USER_ROLE_DEVELOPER)


class User(SQLAlchemyBaseUserTable[int], Base):
    """User model extending FastAPI-Users base with marketplace fields.

    Admins are regular users with ``is_superuser`` set.
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True, autoincrement=True)
    full_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    role: Mapped[str] = mapped_column(
        String, nullable=False, default=USER_ROLE_CLIENT, server_default=USER_ROLE_CLIENT
    )
    phone_e164: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    developer_profile = relationship("DeveloperProfile", back_populates="user", uselist=False)
    projects = relationship("Project", back_populates="client")
