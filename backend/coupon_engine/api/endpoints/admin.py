from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from coupon_engine.core.database import get_db
from coupon_engine.core.errors import storage_errors
from coupon_engine.core.security import CurrentUser, require_admin
from coupon_engine.core.settings import settings
from coupon_engine.models.coupon import CouponTemplate
from coupon_engine.models.eligibility_policy import EligibilityPolicy
from coupon_engine.models.product import Product
from coupon_engine.schemas.coupon import (
    CouponTemplateCreate,
    CouponTemplateResponse,
    CouponTemplateUpdate,
    EligibilityPolicyIn,
    EligibilityPolicyResponse,
    SoftDeleteRequest,
)
from coupon_engine.services.activation_store import soft_delete_activations
from coupon_engine.services.catalog import invalidate_catalog
from coupon_engine.services.code_generator import normalize_code_part


logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_admin)])

_NULLABLE_TEMPLATE_FIELDS = {"description", "valid_until", "max_uses"}


def _template_out(row: CouponTemplate) -> CouponTemplateResponse:
    return CouponTemplateResponse(
        id=str(row.id),
        code=row.code,
        name=row.name,
        description=row.description,
        kind=row.kind,
        value=float(row.value or 0),
        product_id=row.product_id,
        is_active=bool(row.is_active),
        is_primary=bool(row.is_primary),
        is_visible_to_affiliates=bool(row.is_visible_to_affiliates),
        valid_until=row.valid_until,
        max_uses=row.max_uses,
        current_uses=row.current_uses,
    )


def _require_product(db: Session, product_id: str | None) -> None:
    if product_id and db.get(Product, product_id) is None:
        raise HTTPException(status_code=404, detail="Product not found")


@router.get("/admin/coupons", response_model=list[CouponTemplateResponse])
async def admin_list_coupons(
    product_id: str | None = None,
    limit: int = 100,
    offset: int = 0,
    db: Session = Depends(get_db),
):
    limit = max(1, min(int(limit or 100), 500))
    offset = max(0, int(offset or 0))
    with storage_errors(db, "admin.coupons.list"):
        query = db.query(CouponTemplate)
        if product_id:
            query = query.filter(CouponTemplate.product_id == product_id)
        rows = query.order_by(CouponTemplate.created_at.desc()).offset(offset).limit(limit).all()
    return [_template_out(r) for r in rows]


@router.post("/admin/coupons", response_model=CouponTemplateResponse, status_code=201)
async def admin_create_coupon(
    body: CouponTemplateCreate,
    db: Session = Depends(get_db),
    admin: CurrentUser = Depends(require_admin),
):
    code = normalize_code_part(body.code)
    if not (code.isascii() and code.isalnum()):
        raise HTTPException(status_code=400, detail="Coupon code must be alphanumeric")
    with storage_errors(db, "admin.coupons.create"):
        _require_product(db, body.product_id)
        row = CouponTemplate(
            code=code,
            name=body.name.strip(),
            description=body.description,
            kind=body.kind.value,
            value=body.value,
            product_id=body.product_id,
            is_active=body.is_active,
            is_primary=body.is_primary,
            is_visible_to_affiliates=body.is_visible_to_affiliates,
            valid_until=body.valid_until,
            max_uses=body.max_uses,
            current_uses=0,
            created_by=admin.id,
        )
        db.add(row)
        db.commit()
        db.refresh(row)
    invalidate_catalog()
    logger.info("admin.coupons.created template_id=%s code=%s by=%s", row.id, row.code, admin.id)
    return _template_out(row)


@router.patch("/admin/coupons/{template_id}", response_model=CouponTemplateResponse)
async def admin_update_coupon(template_id: str, body: CouponTemplateUpdate, db: Session = Depends(get_db)):
    with storage_errors(db, "admin.coupons.update"):
        row = db.get(CouponTemplate, template_id)
        if row is None:
            raise HTTPException(status_code=404, detail="Coupon not found")
        changes = body.model_dump(exclude_unset=True)
        if "kind" in changes and changes["kind"] is not None:
            changes["kind"] = changes["kind"].value
        for field, value in changes.items():
            if value is None and field not in _NULLABLE_TEMPLATE_FIELDS:
                continue
            setattr(row, field, value)
        db.commit()
        db.refresh(row)
    invalidate_catalog()
    return _template_out(row)


@router.put("/admin/products/{product_id}/eligibility-policy", response_model=EligibilityPolicyResponse)
async def admin_set_eligibility_policy(product_id: str, body: EligibilityPolicyIn, db: Session = Depends(get_db)):
    minimum = body.minimum_cross_product_sales
    if minimum is None:
        minimum = settings.coupon_min_cross_product_sales
    marker = body.requires_plan_name_contains
    if marker is None:
        marker = settings.coupon_required_plan_marker
    marker = marker.strip() or None

    with storage_errors(db, "admin.policy.set"):
        _require_product(db, product_id)
        policy = db.query(EligibilityPolicy).filter(EligibilityPolicy.product_id == product_id).first()
        if policy is None:
            policy = EligibilityPolicy(product_id=product_id)
            db.add(policy)
        policy.minimum_cross_product_sales = int(minimum)
        policy.requires_plan_name_contains = marker
        db.commit()
        db.refresh(policy)
    logger.info("admin.policy.set product_id=%s minimum=%s marker=%s", product_id, minimum, marker)
    return EligibilityPolicyResponse(
        product_id=policy.product_id,
        minimum_cross_product_sales=policy.minimum_cross_product_sales,
        requires_plan_name_contains=policy.requires_plan_name_contains,
    )


@router.delete("/admin/products/{product_id}/eligibility-policy")
async def admin_delete_eligibility_policy(product_id: str, db: Session = Depends(get_db)) -> dict:
    with storage_errors(db, "admin.policy.delete"):
        deleted = db.query(EligibilityPolicy).filter(EligibilityPolicy.product_id == product_id).delete()
        db.commit()
    return {"ok": True, "deleted": int(deleted or 0)}


@router.post("/admin/affiliates/{affiliate_id}/coupons/soft-delete")
async def admin_soft_delete_affiliate_coupons(
    affiliate_id: str,
    body: SoftDeleteRequest | None = None,
    db: Session = Depends(get_db),
) -> dict:
    affiliate_id = (affiliate_id or "").strip()
    if not affiliate_id:
        raise HTTPException(status_code=400, detail="Invalid affiliate_id")
    count = soft_delete_activations(db, affiliate_id, template_id=(body.template_id if body else None))
    return {"ok": True, "deleted": count}
