from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..platform.database import Base


class Package(Base):
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False)
    price_usd = Column(Numeric(10, 2), nullable=False, default=0)
    connects_per_month = Column(Integer, nullable=False, default=0)
    projects_per_month = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=False)
    status = Column(String, nullable=False, default="active", index=True)
    current_period_start = Column(DateTime(timezone=True), nullable=False)
    current_period_end = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    package = relationship("Package")
    usages = relationship("SubscriptionUsage", back_populates="subscription", cascade="all, delete-orphan")


class SubscriptionUsage(Base):
    __tablename__ = "subscription_usage"
    __table_args__ = (UniqueConstraint("subscription_id", "period_start", name="uq_subscription_usage_period"),)

    id = Column(Integer, primary_key=True, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), index=True, nullable=False)
    period_start = Column(DateTime(timezone=True), nullable=False)
    period_end = Column(DateTime(timezone=True), nullable=False)
    connects_used = Column(Integer, nullable=False, default=0)
    projects_used = Column(Integer, nullable=False, default=0)

    subscription = relationship("Subscription", back_populates="usages")
