from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from coupon_engine.models.coupon import ActivationState, AffiliateCoupon
from coupon_engine.services.activation_store import list_for_affiliate
from coupon_engine.services.catalog import CatalogEntry, load_catalog
from coupon_engine.services.code_generator import normalize_code_part
from coupon_engine.services.eligibility import EligibilityResult
from coupon_engine.services.link_composer import compose_link, resolve_code
from coupon_engine.services.standing import check_eligibility


@dataclass(frozen=True)
class CouponBoardEntry:
    template: CatalogEntry
    activation: AffiliateCoupon | None
    eligibility: EligibilityResult
    code: str
    link: str | None
    is_preview: bool

    @property
    def state(self) -> ActivationState | None:
        return self.activation.state if self.activation is not None else None

    @property
    def link_is_url(self) -> bool:
        return bool(self.link) and bool((self.template.landing_page_url or "").strip())


def build_coupon_board(
    db: Session,
    affiliate_id: str,
    handle: str | None,
    product_id: str | None = None,
) -> list[CouponBoardEntry]:
    catalog = load_catalog(db, product_id)

    activations: dict[str, AffiliateCoupon] = {}
    for row in list_for_affiliate(db, affiliate_id, product_id):
        # Newest first, so the first live row per template wins.
        activations.setdefault(str(row.coupon_id), row)

    eligibility_by_product: dict[str | None, EligibilityResult] = {}
    has_handle = bool(normalize_code_part(handle))

    board: list[CouponBoardEntry] = []
    for entry in catalog:
        if entry.product_id not in eligibility_by_product:
            eligibility_by_product[entry.product_id] = check_eligibility(db, affiliate_id, entry.product_id)

        activation = activations.get(entry.template_id)
        if activation is None and not has_handle:
            code = ""
        else:
            code = resolve_code(activation, handle, entry.code, entry.is_primary)

        board.append(
            CouponBoardEntry(
                template=entry,
                activation=activation,
                eligibility=eligibility_by_product[entry.product_id],
                code=code,
                link=(compose_link(entry.landing_page_url, code) if code else None),
                is_preview=activation is None,
            )
        )
    return board
