from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import update
from sqlalchemy.orm import Session

from ahaar.core.config import SUBSCRIPTION_DAYS
from ahaar.core.errors import NotFound, PaymentRequired
from ahaar.models.brand import Brand
from ahaar.models.plan import Plan
from ahaar.utils.clock import utcnow

logger = logging.getLogger(__name__)
SUBSCRIPTION_PREFIX = "[SUBSCRIPTION]"


def subscription_state(brand: Brand, now: datetime | None = None) -> str:
    now = now or utcnow()
    if not brand.selected_plan_id or brand.subscription_end_time is None:
        return "no_plan"
    if brand.subscription_end_time < now or not brand.subscription_status:
        return "expired"
    return "active"


def expire_subscription(db: Session, brand_id: str) -> bool:
    """Flip an active subscription to inactive; True only for the caller that wrote."""
    result = db.execute(
        update(Brand)
        .where(Brand.brand_id == brand_id, Brand.subscription_status.is_(True))
        .values(subscription_status=False)
    )
    db.commit()
    flipped = result.rowcount == 1
    if flipped:
        logger.info("%s expired brand_id=%s", SUBSCRIPTION_PREFIX, brand_id)
    return flipped


def check_subscription(db: Session, brand_id: str | None, now: datetime | None = None) -> None:
    now = now or utcnow()
    brand = db.query(Brand).filter(Brand.brand_id == brand_id).first()
    if brand is None:
        raise NotFound("Brand not found")

    state = subscription_state(brand, now)
    if state == "no_plan":
        raise PaymentRequired("No plan selected. Please purchase a plan to continue.")
    if state == "expired":
        if brand.subscription_status:
            expire_subscription(db, brand.brand_id)
        raise PaymentRequired("Your subscription is expired.")


def start_subscription(
    db: Session,
    brand: Brand,
    plan: Plan,
    amount: float,
    now: datetime | None = None,
) -> Brand:
    now = now or utcnow()
    brand.selected_plan_id = plan.plan_id
    brand.selected_plan_name = plan.plan_name
    brand.subscription_status = True
    brand.previous_payment_amount = amount
    brand.previous_payment_time = now
    brand.subscription_end_time = now + timedelta(days=SUBSCRIPTION_DAYS)
    logger.info(
        "%s started brand_id=%s plan_id=%s end_time=%s",
        SUBSCRIPTION_PREFIX,
        brand.brand_id,
        plan.plan_id,
        brand.subscription_end_time.isoformat(),
    )
    return brand
