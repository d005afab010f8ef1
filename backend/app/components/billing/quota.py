"""Per-client connect and project quotas backed by subscriptions.

Clients without a subscription are provisioned onto the free plan on first
use. Functions here flush but never commit; the calling route owns the
transaction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from ...models.billing import Package, Subscription, SubscriptionUsage
from ...platform.config import settings
from ...shared.utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

SUBSCRIPTION_ACTIVE = "active"


@dataclass
class QuotaStatus:
    package_name: str
    connects_limit: int
    connects_used: int
    projects_limit: int
    projects_used: int
    period_start: datetime
    period_end: datetime

    @property
    def connects_remaining(self) -> int:
        return max(self.connects_limit - self.connects_used, 0)

    @property
    def projects_remaining(self) -> int:
        return max(self.projects_limit - self.projects_used, 0)


def get_free_package(db: Session) -> Package:
    package = db.query(Package).filter(Package.name == settings.FREE_PLAN_NAME).first()
    if package is None:
        package = Package(
            name=settings.FREE_PLAN_NAME,
            price_usd=0,
            connects_per_month=settings.FREE_PLAN_CONNECTS_PER_MONTH,
            projects_per_month=settings.FREE_PLAN_PROJECTS_PER_MONTH,
            is_active=True,
        )
        db.add(package)
        db.flush()
        logger.info("Provisioned default package %s", package.name)
    return package


def get_or_create_subscription(db: Session, client_id: int, now: datetime | None = None) -> Subscription:
    now = now or utcnow()
    subscription = (
        db.query(Subscription)
        .filter(Subscription.client_id == client_id, Subscription.status == SUBSCRIPTION_ACTIVE)
        .order_by(Subscription.id.desc())
        .first()
    )
    if subscription is None:
        package = get_free_package(db)
        subscription = Subscription(
            client_id=client_id,
            package_id=package.id,
            status=SUBSCRIPTION_ACTIVE,
            current_period_start=now,
            current_period_end=now + timedelta(days=settings.BILLING_PERIOD_DAYS),
        )
        db.add(subscription)
        db.flush()
        logger.info("Auto-provisioned %s for client_id=%s", package.name, client_id)
        return subscription

    # Roll the period forward when it lapsed
    period = timedelta(days=settings.BILLING_PERIOD_DAYS)
    start = ensure_utc(subscription.current_period_start)
    end = ensure_utc(subscription.current_period_end)
    if now >= end:
        while now >= end:
            start, end = end, end + period
        subscription.current_period_start = start
        subscription.current_period_end = end
        db.flush()
    return subscription


def _usage_for_period(db: Session, subscription: Subscription) -> SubscriptionUsage:
    usage = (
        db.query(SubscriptionUsage)
        .filter(
            SubscriptionUsage.subscription_id == subscription.id,
            SubscriptionUsage.period_start == subscription.current_period_start,
        )
        .first()
    )
    if usage is None:
        usage = SubscriptionUsage(
            subscription_id=subscription.id,
            period_start=subscription.current_period_start,
            period_end=subscription.current_period_end,
            connects_used=0,
            projects_used=0,
        )
        db.add(usage)
        db.flush()
    return usage


def get_quota_status(db: Session, client_id: int) -> QuotaStatus:
    subscription = get_or_create_subscription(db, client_id)
    usage = _usage_for_period(db, subscription)
    package = subscription.package
    return QuotaStatus(
        package_name=package.name,
        connects_limit=package.connects_per_month,
        connects_used=usage.connects_used,
        projects_limit=package.projects_per_month,
        projects_used=usage.projects_used,
        period_start=ensure_utc(subscription.current_period_start),
        period_end=ensure_utc(subscription.current_period_end),
    )


def can_use_connect(db: Session, client_id: int, count: int = 1) -> bool:
    if settings.MVP_DISABLE_CONNECT_QUOTA:
        return True
    return get_quota_status(db, client_id).connects_remaining >= count


def can_post_project(db: Session, client_id: int) -> bool:
    if settings.MVP_DISABLE_CONNECT_QUOTA:
        return True
    return get_quota_status(db, client_id).projects_remaining >= 1


def increment_project_usage(db: Session, client_id: int) -> None:
    subscription = get_or_create_subscription(db, client_id)
    usage = _usage_for_period(db, subscription)
    usage.projects_used = (usage.projects_used or 0) + 1
    db.flush()


def consume_connect(db: Session, client_id: int, count: int = 1) -> bool:
    """Charge ``count`` connects in one conditional UPDATE.

    Returns False, charging nothing, when the period quota would be exceeded.
    Concurrent callers cannot both spend the last connect.
    """
    subscription = get_or_create_subscription(db, client_id)
    usage = _usage_for_period(db, subscription)
    stmt = update(SubscriptionUsage).where(SubscriptionUsage.id == usage.id)
    if not settings.MVP_DISABLE_CONNECT_QUOTA:
        limit = subscription.package.connects_per_month
        stmt = stmt.where(SubscriptionUsage.connects_used + count <= limit)
    result = db.execute(
        stmt.values(connects_used=SubscriptionUsage.connects_used + count).execution_options(
            synchronize_session=False
        )
    )
    db.expire(usage)
    return result.rowcount == 1
