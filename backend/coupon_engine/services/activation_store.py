from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from coupon_engine.core.errors import (
    ActivationNotFound,
    ConflictError,
    EligibilityError,
    StorageUnavailable,
    ValidationError,
    storage_errors,
)
from coupon_engine.models.coupon import AffiliateCoupon, CouponTemplate
from coupon_engine.services.activity_log import log_activity
from coupon_engine.services.code_generator import generate_code, normalize_code_part
from coupon_engine.services.standing import check_eligibility


logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ActivationResult:
    activation: AffiliateCoupon
    created: bool


def _live(query):
    return query.filter(AffiliateCoupon.deleted_at.is_(None))


def get_live_activation(db: Session, affiliate_id: str, template_id: str) -> AffiliateCoupon | None:
    return _live(
        db.query(AffiliateCoupon).filter(
            AffiliateCoupon.affiliate_id == affiliate_id,
            AffiliateCoupon.coupon_id == template_id,
        )
    ).first()


def _get_owned(db: Session, affiliate_id: str, activation_id: str) -> AffiliateCoupon:
    with storage_errors(db, "coupons.lookup"):
        row = _live(
            db.query(AffiliateCoupon).filter(
                AffiliateCoupon.id == activation_id,
                AffiliateCoupon.affiliate_id == affiliate_id,
            )
        ).first()
    if row is None:
        raise ActivationNotFound("Coupon activation not found")
    return row


def _find_code_clash(
    db: Session, affiliate_id: str, product_id: str | None, template_id: str, custom_code: str
) -> AffiliateCoupon | None:
    return _live(
        db.query(AffiliateCoupon).filter(
            AffiliateCoupon.affiliate_id == affiliate_id,
            AffiliateCoupon.product_id == product_id,
            AffiliateCoupon.coupon_id != template_id,
            AffiliateCoupon.custom_code == custom_code,
        )
    ).first()


def _insert(db: Session, row: AffiliateCoupon) -> AffiliateCoupon:
    try:
        db.add(row)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise ConflictError("A live activation already exists for this coupon") from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("coupons.activate.storage_error affiliate_id=%s template_id=%s", row.affiliate_id, row.coupon_id)
        raise StorageUnavailable("The coupon store is temporarily unavailable, try again") from exc
    db.refresh(row)
    return row


def activate(
    db: Session,
    affiliate_id: str,
    template_id: str,
    handle: str | None,
    product_id: str | None = None,
    now: datetime | None = None,
) -> ActivationResult:
    """Create the affiliate's personalized activation of a coupon template.

    Repeating the call for a template that already has a live activation
    returns that activation untouched, including when two requests race.
    """
    affiliate_id = str(affiliate_id or "").strip()
    template_id = str(template_id or "").strip()
    if not affiliate_id or not template_id:
        raise ValidationError("affiliate_id and template_id are required")

    with storage_errors(db, "coupons.activate"):
        existing = get_live_activation(db, affiliate_id, template_id)
        template = None if existing is not None else db.get(CouponTemplate, template_id)
    if existing is not None:
        logger.info("coupons.activate.noop affiliate_id=%s template_id=%s", affiliate_id, template_id)
        return ActivationResult(activation=existing, created=False)

    if template is None or not template.is_active or not template.is_visible_to_affiliates:
        raise ValidationError("Coupon template is not available")
    if product_id and template.product_id and product_id != template.product_id:
        raise ValidationError("Coupon template does not belong to this product")

    eligibility = check_eligibility(db, affiliate_id, template.product_id)
    if not eligibility.eligible:
        logger.warning(
            "coupons.activate.ineligible affiliate_id=%s template_id=%s unmet=%s",
            affiliate_id,
            template_id,
            eligibility.unmet_requirements,
        )
        raise EligibilityError(eligibility.unmet_requirements)

    if not normalize_code_part(handle):
        raise ValidationError("Complete your profile first: set a username before activating coupons")

    custom_code = generate_code(handle, template.code, bool(template.is_primary))
    with storage_errors(db, "coupons.activate"):
        clash = _find_code_clash(db, affiliate_id, template.product_id, template_id, custom_code)
    if clash is not None:
        raise ValidationError(f"Code {custom_code} is already used by another coupon of this product")

    row = AffiliateCoupon(
        affiliate_id=affiliate_id,
        coupon_id=template_id,
        product_id=template.product_id,
        custom_code=custom_code,
        custom_code_history=custom_code,
        username_at_creation=handle,
        coupon_code_at_creation=template.code,
        is_active=True,
        created_at=(now or utcnow()),
    )
    try:
        row = _insert(db, row)
    except ConflictError:
        with storage_errors(db, "coupons.activate"):
            winner = get_live_activation(db, affiliate_id, template_id)
            clash = None if winner is not None else _find_code_clash(
                db, affiliate_id, template.product_id, template_id, custom_code
            )
        if clash is not None:
            logger.warning("coupons.activate.code_clash affiliate_id=%s code=%s", affiliate_id, custom_code)
            raise ValidationError(f"Code {custom_code} is already used by another coupon of this product")
        if winner is None:
            raise StorageUnavailable("The coupon store is temporarily unavailable, try again")
        logger.warning("coupons.activate.conflict_recovered affiliate_id=%s template_id=%s", affiliate_id, template_id)
        return ActivationResult(activation=winner, created=False)

    logger.info(
        "coupons.activate.created affiliate_id=%s template_id=%s activation_id=%s",
        affiliate_id,
        template_id,
        row.id,
    )
    log_activity(
        db,
        user_id=affiliate_id,
        activity_type="coupon_activated",
        description=f"Coupon {custom_code} activated",
        metadata={"coupon_id": template_id, "custom_code": custom_code, "product_id": template.product_id},
    )
    return ActivationResult(activation=row, created=True)


def _set_active(db: Session, affiliate_id: str, activation_id: str, is_active: bool) -> tuple[AffiliateCoupon, bool]:
    row = _get_owned(db, affiliate_id, activation_id)
    if bool(row.is_active) == is_active:
        return row, False
    with storage_errors(db, "coupons.toggle"):
        row.is_active = is_active
        db.commit()
        db.refresh(row)
    return row, True


def deactivate(db: Session, affiliate_id: str, activation_id: str) -> AffiliateCoupon:
    row, changed = _set_active(db, affiliate_id, activation_id, False)
    if changed:
        logger.info("coupons.deactivate affiliate_id=%s activation_id=%s", affiliate_id, activation_id)
        log_activity(
            db,
            user_id=affiliate_id,
            activity_type="coupon_deactivated",
            description="Coupon deactivated",
            metadata={"affiliate_coupon_id": activation_id},
        )
    return row


def reactivate(db: Session, affiliate_id: str, activation_id: str) -> AffiliateCoupon:
    # Eligibility is a one-time unlock and is not checked again here.
    row, changed = _set_active(db, affiliate_id, activation_id, True)
    if changed:
        logger.info("coupons.reactivate affiliate_id=%s activation_id=%s", affiliate_id, activation_id)
        log_activity(
            db,
            user_id=affiliate_id,
            activity_type="coupon_reactivated",
            description="Coupon reactivated",
            metadata={"affiliate_coupon_id": activation_id},
        )
    return row


def list_for_affiliate(db: Session, affiliate_id: str, product_id: str | None = None) -> list[AffiliateCoupon]:
    with storage_errors(db, "coupons.list"):
        query = _live(db.query(AffiliateCoupon).filter(AffiliateCoupon.affiliate_id == affiliate_id))
        if product_id:
            query = query.filter(AffiliateCoupon.product_id == product_id)
        return query.order_by(AffiliateCoupon.created_at.desc(), AffiliateCoupon.id.desc()).all()


def soft_delete_activations(
    db: Session,
    affiliate_id: str,
    template_id: str | None = None,
    now: datetime | None = None,
) -> int:
    """Retire an affiliate's live activations without removing the rows.

    This is the account-deletion and handle-change path. A later activation of
    the same template inserts a new row.
    """
    now = now or utcnow()
    with storage_errors(db, "coupons.soft_delete"):
        query = _live(db.query(AffiliateCoupon).filter(AffiliateCoupon.affiliate_id == affiliate_id))
        if template_id:
            query = query.filter(AffiliateCoupon.coupon_id == template_id)
        rows = query.all()
        for row in rows:
            row.deleted_at = now
            row.is_active = False
        db.commit()

    if rows:
        logger.info("coupons.soft_delete affiliate_id=%s count=%s", affiliate_id, len(rows))
        log_activity(
            db,
            user_id=affiliate_id,
            activity_type="coupons_deleted",
            description=f"{len(rows)} coupon activation(s) deleted",
            metadata={"coupon_id": template_id, "count": len(rows)},
        )
    return len(rows)
