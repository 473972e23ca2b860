from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from coupon_engine.core.errors import storage_errors
from coupon_engine.core.settings import settings
from coupon_engine.models.coupon import CouponTemplate
from coupon_engine.models.product import Product
from coupon_engine.services.cache import TTLCache


@dataclass(frozen=True)
class CatalogEntry:
    template_id: str
    code: str
    name: str
    description: str | None
    kind: str
    value: float
    is_primary: bool
    product_id: str | None
    product_name: str | None
    landing_page_url: str | None
    valid_until: datetime | None
    max_uses: int | None
    current_uses: int | None
    created_at: datetime | None


_CATALOG_CACHE = TTLCache(max_items=256, ttl_s=settings.coupon_catalog_cache_ttl_s)


def _cache_key(product_id: str | None) -> str:
    return f"coupon_catalog:{product_id or '*'}"


def invalidate_catalog() -> None:
    _CATALOG_CACHE.clear()


def _to_entry(template: CouponTemplate, product: Product | None) -> CatalogEntry:
    return CatalogEntry(
        template_id=str(template.id),
        code=str(template.code or ""),
        name=str(template.name or ""),
        description=template.description,
        kind=str(template.kind or ""),
        value=float(template.value or 0),
        is_primary=bool(template.is_primary),
        product_id=template.product_id,
        product_name=(product.name if product else None),
        landing_page_url=(product.landing_page_url if product else None),
        valid_until=template.valid_until,
        max_uses=template.max_uses,
        current_uses=template.current_uses,
        created_at=template.created_at,
    )


def load_catalog(db: Session, product_id: str | None = None, *, use_cache: bool = True) -> list[CatalogEntry]:
    """Coupon templates affiliates may activate, newest first.

    Only templates that are both active and visible to affiliates are listed.
    Entries are immutable snapshots, so a cached list is safe to share.
    """
    key = _cache_key(product_id)
    if use_cache:
        cached = _CATALOG_CACHE.get(key)
        if cached is not None:
            return list(cached)

    with storage_errors(db, "catalog.load"):
        query = (
            db.query(CouponTemplate, Product)
            .outerjoin(Product, Product.id == CouponTemplate.product_id)
            .filter(CouponTemplate.is_active.is_(True))
            .filter(CouponTemplate.is_visible_to_affiliates.is_(True))
        )
        if product_id:
            query = query.filter(CouponTemplate.product_id == product_id)
        rows = query.order_by(CouponTemplate.created_at.desc(), CouponTemplate.code.asc()).all()

    entries = [_to_entry(template, product) for template, product in rows]
    if use_cache:
        _CATALOG_CACHE.set(key, tuple(entries))
    return entries
