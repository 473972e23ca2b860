from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from coupon_engine.core.database import get_db
from coupon_engine.core.errors import storage_errors
from coupon_engine.core.security import CurrentUser, get_current_user
from coupon_engine.models.coupon import AffiliateCoupon
from coupon_engine.models.product import Product
from coupon_engine.models.profile import Profile
from coupon_engine.schemas.coupon import (
    ActivateRequest,
    ActivateResponse,
    ActivationResponse,
    CouponBoardItem,
    EligibilityResponse,
)
from coupon_engine.services import activation_store
from coupon_engine.services.board import CouponBoardEntry, build_coupon_board
from coupon_engine.services.eligibility import EligibilityResult
from coupon_engine.services.link_composer import compose_link
from coupon_engine.services.standing import check_eligibility


router = APIRouter(dependencies=[Depends(get_current_user)])


def activation_out(row: AffiliateCoupon) -> ActivationResponse:
    return ActivationResponse(
        id=str(row.id),
        coupon_id=str(row.coupon_id),
        product_id=row.product_id,
        custom_code=row.custom_code,
        username_at_creation=row.username_at_creation,
        coupon_code_at_creation=row.coupon_code_at_creation,
        is_active=bool(row.is_active),
        state=row.state.value,
        created_at=row.created_at,
    )


def eligibility_out(product_id: str | None, result: EligibilityResult) -> EligibilityResponse:
    return EligibilityResponse(
        product_id=product_id,
        eligible=result.eligible,
        unmet_requirements=list(result.unmet_requirements),
        required_sales=result.required_sales,
        cross_product_sales=result.cross_product_sales,
        sales_remaining=result.sales_remaining,
        required_plan_marker=result.required_plan_marker,
    )


def _board_item(entry: CouponBoardEntry) -> CouponBoardItem:
    t = entry.template
    return CouponBoardItem(
        template_id=t.template_id,
        code=t.code,
        name=t.name,
        description=t.description,
        kind=t.kind,
        value=t.value,
        is_primary=t.is_primary,
        product_id=t.product_id,
        product_name=t.product_name,
        valid_until=t.valid_until,
        resolved_code=entry.code,
        link=entry.link,
        link_is_url=entry.link_is_url,
        is_preview=entry.is_preview,
        state=(entry.state.value if entry.state else None),
        activation=(activation_out(entry.activation) if entry.activation is not None else None),
        eligibility=eligibility_out(t.product_id, entry.eligibility),
    )


def _current_handle(db: Session, user_id: str) -> str | None:
    with storage_errors(db, "coupons.profile"):
        profile = db.query(Profile).filter(Profile.id == user_id).first()
    return (profile.username if profile else None) or None


@router.get("/coupons", response_model=list[CouponBoardItem])
async def coupon_board(
    product_id: str | None = None,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    handle = _current_handle(db, current_user.id)
    board = build_coupon_board(db, current_user.id, handle, product_id=product_id)
    return [_board_item(entry) for entry in board]


@router.get("/coupons/activations", response_model=list[ActivationResponse])
async def list_activations(
    product_id: str | None = None,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    rows = activation_store.list_for_affiliate(db, current_user.id, product_id=product_id)
    return [activation_out(row) for row in rows]


@router.get("/coupons/eligibility/{product_id}", response_model=EligibilityResponse)
async def product_eligibility(
    product_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return eligibility_out(product_id, check_eligibility(db, current_user.id, product_id))


@router.post("/coupons/{template_id}/activate", response_model=ActivateResponse)
async def activate_coupon(
    template_id: str,
    response: Response,
    body: ActivateRequest | None = None,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    handle = _current_handle(db, current_user.id)
    result = activation_store.activate(
        db,
        current_user.id,
        template_id,
        handle,
        product_id=(body.product_id if body else None),
    )
    row = result.activation
    landing_page_url = None
    if row.product_id:
        with storage_errors(db, "coupons.product"):
            product = db.get(Product, row.product_id)
        landing_page_url = product.landing_page_url if product else None
    response.status_code = 201 if result.created else 200
    return ActivateResponse(
        created=result.created,
        activation=activation_out(row),
        link=compose_link(landing_page_url, row.custom_code),
    )


@router.post("/coupons/activations/{activation_id}/deactivate", response_model=ActivationResponse)
async def deactivate_coupon(
    activation_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return activation_out(activation_store.deactivate(db, current_user.id, activation_id))


@router.post("/coupons/activations/{activation_id}/reactivate", response_model=ActivationResponse)
async def reactivate_coupon(
    activation_id: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    return activation_out(activation_store.reactivate(db, current_user.id, activation_id))
