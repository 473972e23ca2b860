from __future__ import annotations

from sqlalchemy import func
from sqlalchemy.orm import Session

from coupon_engine.core.errors import storage_errors
from coupon_engine.models.commission import Commission
from coupon_engine.models.eligibility_policy import EligibilityPolicy
from coupon_engine.models.subscription import Plan, Subscription
from coupon_engine.services.eligibility import EligibilityResult, evaluate_eligibility


ACTIVE_SUBSCRIPTION_STATUSES: tuple[str, ...] = ("active", "trialing")
QUALIFYING_COMMISSION_STATUSES: tuple[str, ...] = ("available", "paid")


def get_policy(db: Session, product_id: str | None) -> EligibilityPolicy | None:
    if not product_id:
        return None
    return db.query(EligibilityPolicy).filter(EligibilityPolicy.product_id == product_id).first()


def get_affiliate_plan_name(db: Session, affiliate_id: str) -> str:
    row = (
        db.query(Plan.name)
        .join(Subscription, Subscription.plan_id == Plan.id)
        .filter(Subscription.user_id == affiliate_id)
        .filter(Subscription.status.in_(ACTIVE_SUBSCRIPTION_STATUSES))
        .order_by(Subscription.created_at.desc(), Subscription.id.desc())
        .first()
    )
    if row is None:
        return ""
    return str(row[0] or "")


def count_cross_product_sales(db: Session, affiliate_id: str, product_id: str | None) -> int:
    query = (
        db.query(func.count(Commission.id))
        .filter(Commission.affiliate_id == affiliate_id)
        .filter(Commission.status.in_(QUALIFYING_COMMISSION_STATUSES))
    )
    if product_id:
        # Sales of the gated product never unlock that same product.
        query = query.filter(Commission.product_id != product_id)
    return int(query.scalar() or 0)


def check_eligibility(db: Session, affiliate_id: str, product_id: str | None) -> EligibilityResult:
    with storage_errors(db, "eligibility.check"):
        policy = get_policy(db, product_id)
        if policy is None:
            return evaluate_eligibility(product_id, None, "", 0)
        plan_name = get_affiliate_plan_name(db, affiliate_id)
        sales = count_cross_product_sales(db, affiliate_id, product_id)
    return evaluate_eligibility(product_id, policy, plan_name, sales)
